"""
Dynamic configuration and experiment enrolment for the store migration.

Migration flags and enrolment are held in an immutable
:class:`DynamicConfiguration` snapshot. The
:class:`DynamicConfigurationManager` swaps in a new snapshot when it is
polled; readers take one snapshot per operation and never observe a flag
change part way through.

The document format is:

.. code-block:: json

   {"accountsDynamoDbMigration": {"readEnabled": true,
                                  "writeEnabled": true,
                                  "deleteEnabled": true,
                                  "logMismatches": false},
    "experiments": {"accountsDynamoDbMigration": {
        "enrolledUuids": ["11111111-1111-1111-1111-111111111111"],
        "enrollmentPercentage": 5}}}
"""

import hashlib
import json
import logging
import threading
from typing import Callable, Dict, FrozenSet, Mapping, NamedTuple, Optional, \
    Union
from uuid import UUID

from ..exceptions import ConfigurationError

logger = logging.getLogger(__name__)

MIGRATION_EXPERIMENT = 'accountsDynamoDbMigration'
"""Experiment that gates shadow operations for an account."""


class MigrationConfiguration(NamedTuple):
    """Flags controlling shadow traffic to the target store."""

    read_enabled: bool = False
    """Shadow-read the target store when a read misses the cache."""

    write_enabled: bool = False
    """Shadow-write the target store on create and update."""

    delete_enabled: bool = False
    """Delete from the target store when an account is deleted."""

    log_mismatches: bool = False
    """Log each mismatch, with the call chain that produced it."""

    @property
    def is_read_enabled(self) -> bool:
        return self.read_enabled

    @property
    def is_write_enabled(self) -> bool:
        """Writes take effect only while deletes are enabled too."""
        return self.write_enabled and self.delete_enabled

    @property
    def is_delete_enabled(self) -> bool:
        return self.delete_enabled

    @property
    def is_log_mismatches(self) -> bool:
        return self.log_mismatches


class ExperimentConfiguration(NamedTuple):
    """Enrolment in one experiment."""

    enrolled_uuids: FrozenSet[UUID] = frozenset()
    """Accounts that are always enrolled."""

    enrollment_percentage: int = 0
    """Share of all other accounts that are enrolled, from 0 to 100."""


class DynamicConfiguration(NamedTuple):
    """A snapshot of the dynamic configuration."""

    migration: MigrationConfiguration = MigrationConfiguration()
    experiments: Mapping[str, ExperimentConfiguration] = {}


def _section(data: Mapping, key: str) -> Mapping:
    value = data.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise ConfigurationError(f'{key} must be a JSON object')
    return value


def _flag(flags: Mapping, key: str) -> bool:
    value = flags.get(key, False)
    if not isinstance(value, bool):
        raise ConfigurationError(f'{key} must be true or false')
    return value


def load_configuration(data: Mapping) -> DynamicConfiguration:
    """
    Build a :class:`.DynamicConfiguration` from a parsed document.

    Raises
    ------
    :class:`.ConfigurationError`
        If a section is not an object, a flag is not a boolean, writes are
        enabled without deletes, or an experiment is malformed.

    """
    if not isinstance(data, Mapping):
        raise ConfigurationError('Configuration must be a JSON object')
    flags = _section(data, MIGRATION_EXPERIMENT)
    migration = MigrationConfiguration(
        read_enabled=_flag(flags, 'readEnabled'),
        write_enabled=_flag(flags, 'writeEnabled'),
        delete_enabled=_flag(flags, 'deleteEnabled'),
        log_mismatches=_flag(flags, 'logMismatches')
    )
    if migration.write_enabled and not migration.delete_enabled:
        raise ConfigurationError('writeEnabled requires deleteEnabled')

    experiments: Dict[str, ExperimentConfiguration] = {}
    for name, experiment in _section(data, 'experiments').items():
        if not isinstance(experiment, Mapping):
            raise ConfigurationError(f'Malformed experiment {name}')
        try:
            percentage = int(experiment.get('enrollmentPercentage', 0))
            enrolled = frozenset(UUID(str(u)) for u
                                 in experiment.get('enrolledUuids', []))
        except (TypeError, ValueError) as e:
            raise ConfigurationError(f'Malformed experiment {name}') from e
        if not 0 <= percentage <= 100:
            raise ConfigurationError(
                f'Enrollment percentage for {name} must be in [0, 100]'
            )
        experiments[name] = ExperimentConfiguration(
            enrolled_uuids=enrolled,
            enrollment_percentage=percentage
        )
    return DynamicConfiguration(migration=migration, experiments=experiments)


Source = Union[str, Callable[[], Mapping]]


class DynamicConfigurationManager(object):
    """
    Publishes :class:`.DynamicConfiguration` snapshots.

    ``source`` is the path of a JSON document, or a callable that returns
    the parsed document. Without a source every flag stays off until
    :meth:`set_configuration` is called.
    """

    def __init__(self, source: Optional[Source] = None,
                 configuration: Optional[DynamicConfiguration] = None) -> None:
        self._source = source
        self._lock = threading.Lock()
        self._configuration = configuration or DynamicConfiguration()
        if source is not None and configuration is None:
            self.poll()

    def get_configuration(self) -> DynamicConfiguration:
        """Get the current snapshot."""
        return self._configuration

    def set_configuration(self, configuration: DynamicConfiguration) -> None:
        """Publish a new snapshot."""
        with self._lock:
            self._configuration = configuration

    def poll(self) -> DynamicConfiguration:
        """
        Reload the configuration from the source.

        A document that cannot be read or is invalid is logged, and the
        previous snapshot stays in effect.
        """
        if self._source is None:
            return self._configuration
        try:
            if callable(self._source):
                data = self._source()
            else:
                with open(self._source) as f:
                    data = json.load(f)
            configuration = load_configuration(data)
        except (OSError, ValueError) as e:
            logger.error('Could not load dynamic configuration: %s', e)
            return self._configuration
        self.set_configuration(configuration)
        return configuration


def is_enrolled_in(configuration: DynamicConfiguration, uuid: UUID,
                   experiment: str) -> bool:
    """Determine whether ``uuid`` is enrolled in ``experiment``."""
    settings = configuration.experiments.get(experiment)
    if settings is None:
        return False
    if uuid in settings.enrolled_uuids:
        return True
    digest = hashlib.sha256(f'{experiment}:{uuid}'.encode('utf-8')).digest()
    return int.from_bytes(digest[:8], 'big') % 100 \
        < settings.enrollment_percentage


class ExperimentEnrollmentManager(object):
    """Answers enrolment questions against the current configuration."""

    def __init__(self, configuration_manager: DynamicConfigurationManager) \
            -> None:
        self.configuration_manager = configuration_manager

    def is_enrolled(self, uuid: UUID, experiment: str,
                    configuration: Optional[DynamicConfiguration] = None) \
            -> bool:
        """
        Determine whether ``uuid`` is enrolled in ``experiment``.

        Uses ``configuration`` if given, or else the current snapshot.
        """
        if configuration is None:
            configuration = self.configuration_manager.get_configuration()
        return is_enrolled_in(configuration, uuid, experiment)


class MigrationPolicy(object):
    """Resolves, per operation, whether the target store is involved."""

    def __init__(self, configuration_manager: DynamicConfigurationManager,
                 enrollment_manager: Optional[ExperimentEnrollmentManager] = None
                 ) -> None:
        self.configuration_manager = configuration_manager
        if enrollment_manager is None:
            enrollment_manager = ExperimentEnrollmentManager(
                configuration_manager
            )
        self.enrollment_manager = enrollment_manager

    def snapshot(self) -> DynamicConfiguration:
        """Take the snapshot that governs one operation."""
        return self.configuration_manager.get_configuration()

    def is_enrolled(self, configuration: DynamicConfiguration,
                    uuid: UUID) -> bool:
        return self.enrollment_manager.is_enrolled(uuid, MIGRATION_EXPERIMENT,
                                                   configuration)
