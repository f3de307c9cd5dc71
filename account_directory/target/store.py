"""
Accounts in the target key-value store.

Each account is a hash under ``accounts::<uuid>`` with the fields
``number``, ``data`` (the JSON encoding of the account) and
``migrationVersion``. A second key, ``phoneNumbers::<number>``, maps a
number to its account id.

Writes are conditional. They run in a WATCH/MULTI transaction, so a
concurrent writer to the same keys forces a retry, and an update only
applies over a strictly older ``migrationVersion``.
"""

import logging
from typing import Any, Mapping, Optional, Tuple
from uuid import UUID

import fakeredis
import redis

from .. import serialization
from ..domain import Account
from ..exceptions import ConditionalConflict, StoreUnavailable
from ..stores import AccountStore

logger = logging.getLogger(__name__)


def account_key(uuid: UUID) -> str:
    return f'accounts::{uuid}'


def number_key(number: str) -> str:
    return f'phoneNumbers::{number}'


def _item(account: Account, data: str) -> dict:
    return {'number': account.number, 'data': data,
            'migrationVersion': account.migration_version}


class TargetAccounts(AccountStore):
    """
    Manages a connection to the target store.

    Unlike the legacy store, :meth:`create` never changes the id of the
    account it is given.
    """

    def __init__(self, host: str = 'localhost', port: int = 6379,
                 db: int = 0, timeout: float = 2.0, fake: bool = False,
                 connection: Optional[Any] = None) -> None:
        """Open the connection to Redis."""
        if connection is not None:
            self.r = connection
        elif fake:
            logger.debug('Using fake Redis for the target store')
            self.r = fakeredis.FakeStrictRedis(server=fakeredis.FakeServer(),
                                              decode_responses=True)
        else:
            logger.debug('New Redis connection at %s, port %s', host, port)
            self.r = redis.StrictRedis(host=host, port=port, db=db,
                                       decode_responses=True,
                                       socket_timeout=timeout,
                                       socket_connect_timeout=timeout)

    def get_by_number(self, number: str) -> Optional[Account]:
        try:
            uuid = self.r.get(number_key(number))
            if uuid is None:
                return None
            return self._get(UUID(uuid))
        except redis.exceptions.RedisError as e:
            raise StoreUnavailable(f'Failed to get {number}: {e}') from e

    def get_by_uuid(self, uuid: UUID) -> Optional[Account]:
        try:
            return self._get(uuid)
        except redis.exceptions.RedisError as e:
            raise StoreUnavailable(f'Failed to get {uuid}: {e}') from e

    def create(self, account: Account) -> Tuple[Account, bool]:
        """
        Store a new account under its own id.

        If the number is already registered to an account, that account's
        data is replaced and ``False`` is returned; the id of ``account`` is
        left as it is.
        """
        data = serialization.dumps(account)

        def _create(pipe: Any) -> bool:
            existing = pipe.get(number_key(account.number))
            if existing is not None:
                pipe.multi()
                pipe.hset(account_key(UUID(existing)),
                          mapping=_item(account, data))
                return False
            pipe.multi()
            pipe.set(number_key(account.number), str(account.uuid))
            pipe.hset(account_key(account.uuid), mapping=_item(account, data))
            return True

        try:
            fresh = self.r.transaction(_create, number_key(account.number),
                                       account_key(account.uuid),
                                       value_from_callable=True)
        except redis.exceptions.RedisError as e:
            raise StoreUnavailable(f'Failed to create: {e}') from e
        return account, fresh

    def update(self, account: Account) -> None:
        """
        Replace an account that is stored with an older migration version.

        Raises
        ------
        :class:`.ConditionalConflict`
            If the account is missing, or is stored at the same or a newer
            migration version.

        """
        data = serialization.dumps(account)
        key = account_key(account.uuid)

        def _update(pipe: Any) -> None:
            number, version = pipe.hmget(key, 'number', 'migrationVersion')
            if version is None or int(version) >= account.migration_version:
                raise ConditionalConflict(
                    f'Cannot update {account.uuid} at version {version}'
                )
            pipe.multi()
            if number != account.number:
                pipe.delete(number_key(number))
                pipe.set(number_key(account.number), str(account.uuid))
            pipe.hset(key, mapping=_item(account, data))

        try:
            self.r.transaction(_update, key)
        except redis.exceptions.RedisError as e:
            raise StoreUnavailable(f'Failed to update: {e}') from e

    def delete(self, uuid: UUID) -> None:
        key = account_key(uuid)

        def _delete(pipe: Any) -> None:
            number = pipe.hget(key, 'number')
            pipe.multi()
            pipe.delete(key)
            if number is not None:
                pipe.delete(number_key(number))

        try:
            self.r.transaction(_delete, key)
        except redis.exceptions.RedisError as e:
            raise StoreUnavailable(f'Failed to delete: {e}') from e

    def _get(self, uuid: UUID) -> Optional[Account]:
        data = self.r.hget(account_key(uuid), 'data')
        if data is None:
            return None
        return serialization.loads(data, uuid)


def get_target(config: Mapping) -> TargetAccounts:
    """Get a new :class:`.TargetAccounts` configured from ``config``."""
    return TargetAccounts(
        host=config.get('TARGET_REDIS_HOST', 'localhost'),
        port=int(config.get('TARGET_REDIS_PORT', '6379')),
        db=int(config.get('TARGET_REDIS_DATABASE', '0')),
        timeout=float(config.get('TARGET_TIMEOUT', '2.0')),
        fake=str(config.get('REDIS_FAKE', '')).lower() in ('1', 'true')
    )
