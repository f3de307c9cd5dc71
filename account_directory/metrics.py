"""
Prometheus instrumentation for the account directory.

Metrics exported:
- Latency histograms, one per operation: ``create``, ``update``,
  ``getByNumber``, ``getByUuid``, ``delete``, and the cache round-trips
  ``redisSet``, ``redisNumberGet``, ``redisUuidGet``, ``redisDelete``.
- ``deleteCounter`` and ``deleteError``, labelled by ``country`` (E.164
  calling code) and ``reason``.
- ``migration_error`` (label ``action``), ``migration_comparisons`` and
  ``migration_mismatches`` (label ``mismatchType``). These are published
  under the names ``migration.error``, ``migration.comparisons`` and
  ``migration.mismatches`` in dashboards; the exposition format does not
  allow dots, so they are registered with underscores.
"""

from typing import ContextManager, Dict, Optional

from prometheus_client import CollectorRegistry, Counter, Histogram, REGISTRY

TIMERS = ('create', 'update', 'getByNumber', 'getByUuid', 'delete',
          'redisSet', 'redisNumberGet', 'redisUuidGet', 'redisDelete')

BUCKETS = (0.001, 0.0025, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0,
           2.5, 5.0)


class Metrics(object):
    """
    Holds the collectors used by one account directory.

    Collectors are registered with ``registry``. When none is given, a
    private :class:`CollectorRegistry` is used, which keeps independent
    instances (e.g. in tests) from colliding.
    """

    def __init__(self, registry: Optional[CollectorRegistry] = None) -> None:
        if registry is None:
            registry = CollectorRegistry()
        self.registry = registry
        self._timers: Dict[str, Histogram] = {
            name: Histogram(name, f'Latency of {name} in seconds',
                            buckets=BUCKETS, registry=registry)
            for name in TIMERS
        }
        self.deletes = Counter(
            'deleteCounter', 'Accounts deleted',
            labelnames=['country', 'reason'], registry=registry
        )
        self.delete_errors = Counter(
            'deleteError', 'Failed account deletions',
            labelnames=['country', 'reason'], registry=registry
        )
        self.migration_errors = Counter(
            'migration_error', 'Failed operations against the target store',
            labelnames=['action'], registry=registry
        )
        self.migration_comparisons = Counter(
            'migration_comparisons',
            'Results compared between the legacy and target stores',
            registry=registry
        )
        self.migration_mismatches = Counter(
            'migration_mismatches',
            'Results that differed between the legacy and target stores',
            labelnames=['mismatchType'], registry=registry
        )

    def time(self, name: str) -> ContextManager:
        """Time a block of code against the histogram ``name``."""
        return self._timers[name].time()

    def record_delete(self, country: str, reason: str) -> None:
        self.deletes.labels(country=country, reason=reason).inc()

    def record_delete_error(self, country: str, reason: str) -> None:
        self.delete_errors.labels(country=country, reason=reason).inc()

    def record_migration_error(self, action: str) -> None:
        self.migration_errors.labels(action=action).inc()

    def record_comparison(self) -> None:
        self.migration_comparisons.inc()

    def record_mismatch(self, mismatch_type: str) -> None:
        self.migration_mismatches.labels(mismatchType=mismatch_type).inc()


_default: Optional[Metrics] = None


def get_default_metrics() -> Metrics:
    """Get the process-wide :class:`.Metrics`, registered with the default
    Prometheus registry."""
    global _default
    if _default is None:
        _default = Metrics(REGISTRY)
    return _default
