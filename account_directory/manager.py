"""
The account directory.

:class:`AccountsManager` is the only entry point callers need. The legacy
store is authoritative: its results are returned, its errors propagate,
and the cache is kept coherent with it. The target store only receives
shadow traffic, governed by the migration flags and experiment enrolment
in effect when each operation starts.
"""

import logging
from typing import List, Optional, Tuple, Union
from uuid import UUID

from .cache import AccountCache
from .deletion import DeletionOrchestrator
from .domain import Account
from .exceptions import ConditionalConflict, NoSuchAccount
from .legacy import LegacyAccounts
from .metrics import Metrics
from .migration.compare import compare_accounts, compare_fresh
from .migration.policy import MigrationPolicy
from .migration.shadow import ShadowRunner
from .stores import AccountStore

logger = logging.getLogger(__name__)


class AccountsManager(object):
    """Create, read, update and delete accounts during the migration."""

    def __init__(self, legacy: LegacyAccounts, target: AccountStore,
                 cache: AccountCache, policy: MigrationPolicy,
                 deletion: DeletionOrchestrator, metrics: Metrics,
                 shadow: Optional[ShadowRunner] = None) -> None:
        self.legacy = legacy
        self.target = target
        self.cache = cache
        self.policy = policy
        self.deletion = deletion
        self.metrics = metrics
        self.shadow = shadow if shadow is not None \
            else ShadowRunner(policy, metrics)

    def create(self, account: Account) -> Tuple[Account, bool]:
        """
        Register a new account.

        If the number is already registered, the legacy store keeps the
        existing id and the returned account carries it. The target store is
        given ``account`` as passed in, with the id the caller chose.

        Returns
        -------
        :class:`.Account`
            The account as stored, with the id the legacy store chose.
        bool
            ``True`` if the number was not registered before.

        Raises
        ------
        ValueError
            If the account has no devices.

        """
        if not account.devices:
            raise ValueError('An account must have at least one device')
        configuration = self.policy.snapshot()
        with self.metrics.time('create'):
            stored, fresh = self.legacy.create(account)

            if configuration.migration.is_write_enabled:
                self.shadow.run(lambda: self.target.create(account)[1],
                                account.uuid, fresh, compare_fresh, 'create',
                                configuration)

            self.cache.put(stored)
            return stored, fresh

    def update(self, account: Account) -> Account:
        """
        Store a new version of ``account``.

        The cache is written before the legacy store. If the legacy store
        has no such account, the cache entry is evicted again and
        :class:`.NoSuchAccount` propagates. Returns the account with its
        ``migration_version`` incremented.
        """
        configuration = self.policy.snapshot()
        with self.metrics.time('update'):
            updated = account._replace(
                migration_version=account.migration_version + 1
            )
            self.cache.put(updated)
            try:
                self.legacy.update(updated)
            except NoSuchAccount:
                self.cache.evict(updated)
                raise

            if configuration.migration.is_write_enabled:
                self.shadow.run(lambda: self._update_target(updated),
                                updated.uuid, True, lambda a, b: None,
                                'update', configuration)
            return updated

    def _update_target(self, account: Account) -> bool:
        try:
            self.target.update(account)
        except ConditionalConflict:
            logger.debug('Account %s not current in target store, creating',
                         account.uuid)
            self.target.create(account)
        return True

    def get_by_number(self, number: str) -> Optional[Account]:
        """Get the account registered to ``number``, if any."""
        configuration = self.policy.snapshot()
        with self.metrics.time('getByNumber'):
            account = self.cache.get_by_number(number)
            if account is not None:
                return account

            account = self.legacy.get_by_number(number)
            if account is not None:
                self.cache.put(account)

            # No id is known before the lookup, so enrolment does not apply.
            if configuration.migration.is_read_enabled:
                self.shadow.run(lambda: self.target.get_by_number(number),
                                None, account, compare_accounts,
                                'getByNumber', configuration)
            return account

    def get_by_uuid(self, uuid: UUID) -> Optional[Account]:
        """Get the account with id ``uuid``, if any."""
        configuration = self.policy.snapshot()
        with self.metrics.time('getByUuid'):
            account = self.cache.get_by_uuid(uuid)
            if account is not None:
                return account

            account = self.legacy.get_by_uuid(uuid)
            if account is not None:
                self.cache.put(account)

            if configuration.migration.is_read_enabled:
                self.shadow.run(lambda: self.target.get_by_uuid(uuid),
                                uuid, account, compare_accounts, 'getByUuid',
                                configuration)
            return account

    def get(self, identifier: Union[str, UUID]) -> Optional[Account]:
        """
        Get an account by id or by number.

        A :class:`UUID`, or a string that parses as one, is looked up as an
        id. Any other string is looked up as a number.
        """
        if isinstance(identifier, UUID):
            return self.get_by_uuid(identifier)
        try:
            uuid = UUID(identifier)
        except ValueError:
            return self.get_by_number(identifier)
        return self.get_by_uuid(uuid)

    def get_all_from(self, length: int) -> List[Account]:
        """Get the first ``length`` accounts from the legacy store."""
        return self.legacy.get_all_from(length)

    def get_all_from_uuid(self, uuid: UUID, length: int) -> List[Account]:
        """Get up to ``length`` accounts following ``uuid``."""
        return self.legacy.get_all_from_uuid(uuid, length)

    def delete(self, account: Account, reason: str) -> None:
        """
        Delete ``account`` and everything that belongs to it.

        See :mod:`account_directory.deletion` for the order of deletion and
        which failures are fatal.
        """
        configuration = self.policy.snapshot()
        with self.metrics.time('delete'):
            self.deletion.delete(account, reason, configuration)
