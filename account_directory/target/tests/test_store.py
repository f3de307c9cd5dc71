"""Tests for :mod:`account_directory.target.store`."""

from unittest import TestCase, mock
from uuid import uuid4

from redis.exceptions import ConnectionError

from ...exceptions import ConditionalConflict, StoreUnavailable
from ...tests.util import new_account
from .. import store


class TestCreate(TestCase):
    """Accounts are created under their own id."""

    def setUp(self):
        self.target = store.TargetAccounts(fake=True)

    def test_create(self):
        account = new_account()
        stored, fresh = self.target.create(account)

        self.assertTrue(fresh)
        self.assertEqual(stored, account)
        self.assertEqual(self.target.get_by_uuid(account.uuid), account)
        self.assertEqual(self.target.get_by_number(account.number), account)
        self.assertEqual(
            self.target.r.hget(store.account_key(account.uuid),
                               'migrationVersion'),
            '0'
        )

    def test_existing_number(self):
        """The id of the account is never changed."""
        existing = new_account()
        incoming = new_account(number=existing.number, profile_name='New')
        self.target.create(existing)

        stored, fresh = self.target.create(incoming)

        self.assertFalse(fresh)
        self.assertEqual(stored.uuid, incoming.uuid)
        self.assertEqual(
            self.target.get_by_uuid(existing.uuid).profile_name, 'New'
        )


class TestUpdate(TestCase):
    """Updates are conditional on the migration version."""

    def setUp(self):
        self.target = store.TargetAccounts(fake=True)
        self.account = new_account(migration_version=2)
        self.target.create(self.account)

    def test_newer_version(self):
        updated = self.account._replace(profile_name='Z', migration_version=3)
        self.target.update(updated)
        self.assertEqual(self.target.get_by_uuid(self.account.uuid), updated)

    def test_same_version(self):
        """An update must be strictly newer than the stored account."""
        with self.assertRaises(ConditionalConflict):
            self.target.update(self.account._replace(profile_name='Z'))
        self.assertEqual(self.target.get_by_uuid(self.account.uuid),
                         self.account)

    def test_older_version(self):
        with self.assertRaises(ConditionalConflict):
            self.target.update(self.account._replace(migration_version=1))

    def test_missing(self):
        with self.assertRaises(ConditionalConflict):
            self.target.update(new_account(migration_version=1))

    def test_number_change(self):
        """The number index follows the account."""
        updated = self.account._replace(number='+15550006',
                                        migration_version=3)
        self.target.update(updated)

        self.assertIsNone(self.target.get_by_number(self.account.number))
        self.assertEqual(self.target.get_by_number('+15550006'), updated)


class TestDelete(TestCase):
    """Deleting removes the account and its number."""

    def test_delete(self):
        target = store.TargetAccounts(fake=True)
        account = new_account()
        target.create(account)

        target.delete(account.uuid)
        target.delete(account.uuid)

        self.assertIsNone(target.get_by_uuid(account.uuid))
        self.assertIsNone(target.get_by_number(account.number))
        self.assertEqual(target.r.dbsize(), 0)


class TestStoreFailure(TestCase):
    """Redis errors are raised as :class:`.StoreUnavailable`."""

    def setUp(self):
        connection = mock.MagicMock()
        connection.get.side_effect = ConnectionError
        connection.hget.side_effect = ConnectionError
        connection.transaction.side_effect = ConnectionError
        self.target = store.TargetAccounts(connection=connection)

    def test_read(self):
        with self.assertRaises(StoreUnavailable):
            self.target.get_by_number('+15550001')
        with self.assertRaises(StoreUnavailable):
            self.target.get_by_uuid(uuid4())

    def test_write(self):
        account = new_account()
        with self.assertRaises(StoreUnavailable):
            self.target.create(account)
        with self.assertRaises(StoreUnavailable):
            self.target.update(account)
        with self.assertRaises(StoreUnavailable):
            self.target.delete(account.uuid)


class TestGetTarget(TestCase):
    """The target store is configured from the application config."""

    @mock.patch(f'{store.__name__}.redis')
    def test_get_target(self, mock_redis):
        store.get_target({'TARGET_REDIS_HOST': 'kv',
                          'TARGET_REDIS_PORT': '6380',
                          'TARGET_REDIS_DATABASE': '2',
                          'TARGET_TIMEOUT': '0.25'})
        mock_redis.StrictRedis.assert_called_once_with(
            host='kv', port=6380, db=2, decode_responses=True,
            socket_timeout=0.25, socket_connect_timeout=0.25
        )
