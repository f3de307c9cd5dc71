"""
Deletion of an account and everything that belongs to it.

Deletion fans out to the services that hold per-account assets, then
removes the account from the cache and the stores. The order is fixed:

1. Off-box storage and backup deletions are started in parallel.
2. Usernames, the directory queue, profiles, keys and messages are cleared,
   one after the other, on the calling thread.
3. The off-box deletions are awaited. If an earlier step fails they are
   not awaited, but a failure of theirs is still logged.
4. The cache entries are evicted, then the legacy record is deleted.
5. If enabled, the target record is deleted; a failure there is counted
   but does not fail the deletion.

Any failure in steps 1-4 fails the deletion. Deleting again is safe.
"""

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Any, NamedTuple, Optional

from .cache import AccountCache
from .domain import Account, DeletionReason
from .metrics import Metrics
from .migration.policy import DynamicConfiguration
from .stores import AccountStore
from .util import country_code

logger = logging.getLogger(__name__)


def _log_failure(future: Future, service: str, account: Account) -> Future:
    def _check(done: Future) -> None:
        if done.cancelled() or done.exception() is None:
            return
        logger.warning('Off-box %s deletion failed for account %s: %s',
                       service, account.uuid, done.exception())
    future.add_done_callback(_check)
    return future


class AssetSinks(NamedTuple):
    """Services holding per-account assets that must be deleted first."""

    storage: Any
    """Off-box storage service; ``delete_stored_data(uuid)``."""

    backups: Any
    """Off-box backup service; ``delete_backups(uuid)``."""

    usernames: Any
    """Username reservations; ``delete(uuid)``."""

    directory_queue: Any
    """Contact directory update queue; ``delete_account(account)``."""

    profiles: Any
    """Versioned profiles; ``delete_all(uuid)``."""

    keys: Any
    """Pre-keys for every device; ``delete(account)``."""

    messages: Any
    """Queued messages; ``clear(uuid)``."""


class DeletionOrchestrator(object):
    """Deletes accounts across the asset services, cache and stores."""

    def __init__(self, cache: AccountCache, legacy: AccountStore,
                 target: AccountStore, sinks: AssetSinks, metrics: Metrics,
                 executor: Optional[Executor] = None,
                 workers: int = 4) -> None:
        self.cache = cache
        self.legacy = legacy
        self.target = target
        self.sinks = sinks
        self.metrics = metrics
        if executor is None:
            executor = ThreadPoolExecutor(max_workers=workers,
                                          thread_name_prefix='account-delete')
        self.executor = executor

    def delete(self, account: Account, reason: str,
               configuration: DynamicConfiguration) -> None:
        """
        Delete ``account`` and its assets.

        Raises
        ------
        ValueError
            If ``reason`` is not one of :attr:`.DeletionReason.ALL`.

        Any error raised by an asset service, the cache eviction or the
        legacy store is re-raised after it has been counted.
        """
        if reason not in DeletionReason.ALL:
            raise ValueError(f'Unknown deletion reason: {reason}')
        country = country_code(account.number)
        try:
            storage = _log_failure(self.executor.submit(
                self.sinks.storage.delete_stored_data, account.uuid
            ), 'storage', account)
            backups = _log_failure(self.executor.submit(
                self.sinks.backups.delete_backups, account.uuid
            ), 'backup', account)

            self.sinks.usernames.delete(account.uuid)
            self.sinks.directory_queue.delete_account(account)
            self.sinks.profiles.delete_all(account.uuid)
            self.sinks.keys.delete(account)
            self.sinks.messages.clear(account.uuid)

            storage.result()
            backups.result()

            self.cache.evict(account)
            self.legacy.delete(account.uuid)

            if configuration.migration.is_delete_enabled:
                self._delete_from_target(account)
        except Exception as e:
            logger.warning('Failed to delete account %s: %s', account.uuid, e)
            self.metrics.record_delete_error(country, reason)
            raise

        self.metrics.record_delete(country, reason)

    def _delete_from_target(self, account: Account) -> None:
        try:
            self.target.delete(account.uuid)
        except Exception as e:
            logger.error('Could not delete account %s from target store: %s',
                         account.uuid, e)
            self.metrics.record_migration_error('delete')

    def shutdown(self) -> None:
        """Stop the worker threads once pending deletions finish."""
        self.executor.shutdown(wait=True)
