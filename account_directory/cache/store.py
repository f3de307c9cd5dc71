"""
Read-through/write-through account cache in Redis.

Accounts are indexed twice in a shared cluster:

- ``AccountMap::<number>`` holds the id of the account with that number.
- ``Account3::<uuid>`` holds the JSON encoding of the account (see
  :mod:`account_directory.serialization`).

Reads never raise cache errors: a cluster failure or a malformed entry is
logged and reported as a miss, so that the caller falls back to the store.
"""

import logging
from typing import Any, Mapping, Optional
from uuid import UUID

import fakeredis
import redis
from redis.cluster import RedisCluster

from .. import serialization
from ..domain import Account
from ..exceptions import InternalError, CacheUnavailable
from ..metrics import Metrics

logger = logging.getLogger(__name__)


def number_key(number: str) -> str:
    """Key of the number → id pointer."""
    return f'AccountMap::{number}'


def entity_key(uuid: UUID) -> str:
    """Key of the serialized account."""
    return f'Account3::{uuid}'


class AccountCache(object):
    """
    Manages a connection to the cache cluster.

    The client instances are thread safe and connections are attached at the
    time a command is executed. This class simply provides a container for
    configuration and the key scheme.
    """

    def __init__(self, host: str = 'localhost', port: int = 7000,
                 cluster: bool = True, timeout: float = 1.0,
                 fake: bool = False, metrics: Optional[Metrics] = None,
                 connection: Optional[Any] = None) -> None:
        """Open the connection to Redis."""
        if connection is not None:
            self.r = connection
        elif fake:
            logger.debug('Using fake Redis for the account cache')
            self.r = fakeredis.FakeStrictRedis(server=fakeredis.FakeServer(),
                                              decode_responses=True)
        elif cluster:
            logger.debug('New Redis cluster connection at %s, port %s',
                         host, port)
            self.r = RedisCluster(host=host, port=port, decode_responses=True,
                                  socket_timeout=timeout)
        else:
            logger.debug('New Redis connection at %s, port %s', host, port)
            self.r = redis.StrictRedis(host=host, port=port,
                                       decode_responses=True,
                                       socket_timeout=timeout)
        self.metrics = metrics if metrics is not None else Metrics()

    def put(self, account: Account) -> None:
        """
        Write both index entries for ``account``.

        The account is serialized before anything is written, so a failure
        to serialize never leaves a partial entry. Writes are last-writer-wins.

        Raises
        ------
        :class:`.InternalError`
            If the account cannot be serialized.

        """
        with self.metrics.time('redisSet'):
            try:
                payload = serialization.dumps(account)
            except (TypeError, ValueError) as e:
                raise InternalError(
                    f'Could not serialize account {account.uuid}'
                ) from e
            try:
                pipe = self.r.pipeline(transaction=False)
                pipe.set(number_key(account.number), str(account.uuid))
                pipe.set(entity_key(account.uuid), payload)
                pipe.execute()
            except redis.exceptions.RedisError as e:
                logger.warning('Redis failure caching %s: %s',
                               account.uuid, e)

    def get_by_number(self, number: str) -> Optional[Account]:
        """Look up the id cached for ``number``, then the account."""
        with self.metrics.time('redisNumberGet'):
            try:
                value = self.r.get(number_key(number))
                if value is None:
                    return None
                uuid = UUID(value)
            except ValueError as e:
                logger.warning('Deserialization error for %s: %s', number, e)
                return None
            except redis.exceptions.RedisError as e:
                logger.warning('Redis failure: %s', e)
                return None
            account = self.get_by_uuid(uuid)
            # The pointer outlives a number change until the next eviction.
            if account is not None and account.number != number:
                return None
            return account

    def get_by_uuid(self, uuid: UUID) -> Optional[Account]:
        """Get a cached account by id."""
        with self.metrics.time('redisUuidGet'):
            try:
                payload = self.r.get(entity_key(uuid))
                if payload is None:
                    return None
                return serialization.loads(payload, uuid)
            except ValueError as e:
                logger.warning('Deserialization error for %s: %s', uuid, e)
                return None
            except redis.exceptions.RedisError as e:
                logger.warning('Redis failure: %s', e)
                return None

    def evict(self, account: Account) -> None:
        """
        Remove both index entries for ``account``.

        Raises
        ------
        :class:`.CacheUnavailable`
            If the cluster cannot be reached.

        """
        with self.metrics.time('redisDelete'):
            try:
                self.r.delete(number_key(account.number),
                              entity_key(account.uuid))
            except redis.exceptions.RedisError as e:
                raise CacheUnavailable(f'Failed to evict: {e}') from e


def get_cache(config: Mapping, metrics: Optional[Metrics] = None) \
        -> AccountCache:
    """Get a new :class:`.AccountCache` configured from ``config``."""
    return AccountCache(
        host=config.get('REDIS_HOST', 'localhost'),
        port=int(config.get('REDIS_PORT', '7000')),
        cluster=str(config.get('REDIS_CLUSTER', '1')) == '1',
        timeout=float(config.get('REDIS_TIMEOUT', '1.0')),
        fake=str(config.get('REDIS_FAKE', '')).lower() in ('1', 'true'),
        metrics=metrics
    )
