"""Tests for :mod:`account_directory.deletion`."""

import threading
from unittest import TestCase, mock

from .. import deletion
from ..domain import DeletionReason
from ..exceptions import CacheUnavailable, StoreUnavailable
from ..metrics import Metrics
from .util import configuration, new_account, sample


class TestDeletionOrchestrator(TestCase):
    """Deletion fans out in a fixed order."""

    def setUp(self):
        """Wire the orchestrator to mocks that record every call."""
        self.calls = mock.MagicMock()
        self.sinks = deletion.AssetSinks(
            storage=self.calls.storage, backups=self.calls.backups,
            usernames=self.calls.usernames,
            directory_queue=self.calls.directory_queue,
            profiles=self.calls.profiles, keys=self.calls.keys,
            messages=self.calls.messages
        )
        self.metrics = Metrics()
        self.orchestrator = deletion.DeletionOrchestrator(
            self.calls.cache, self.calls.legacy, self.calls.target,
            self.sinks, self.metrics, workers=2
        )
        self.account = new_account(number='+447700900123')

    def tearDown(self):
        self.orchestrator.shutdown()

    def test_order(self):
        """Assets go first, then the cache, then the stores."""
        self.orchestrator.delete(self.account, DeletionReason.USER_REQUEST,
                                 configuration(delete=True))
        uuid = self.account.uuid
        names = [c[0] for c in self.calls.mock_calls]

        self.assertEqual(
            [n for n in names if not n.startswith(('storage', 'backups'))],
            ['usernames.delete', 'directory_queue.delete_account',
             'profiles.delete_all', 'keys.delete', 'messages.clear',
             'cache.evict', 'legacy.delete', 'target.delete']
        )
        self.assertLess(names.index('storage.delete_stored_data'),
                        names.index('cache.evict'))
        self.assertLess(names.index('backups.delete_backups'),
                        names.index('cache.evict'))
        self.calls.storage.delete_stored_data.assert_called_once_with(uuid)
        self.calls.backups.delete_backups.assert_called_once_with(uuid)
        self.calls.directory_queue.delete_account \
            .assert_called_once_with(self.account)
        self.calls.keys.delete.assert_called_once_with(self.account)
        self.calls.legacy.delete.assert_called_once_with(uuid)
        self.assertEqual(
            sample(self.metrics, 'deleteCounter_total', country='44',
                   reason='userRequest'),
            1
        )

    def test_off_box_deletions_run_concurrently(self):
        """Storage and backup deletions overlap."""
        both_started = threading.Barrier(2, timeout=5)
        self.calls.storage.delete_stored_data.side_effect = \
            lambda uuid: both_started.wait()
        self.calls.backups.delete_backups.side_effect = \
            lambda uuid: both_started.wait()

        self.orchestrator.delete(self.account, DeletionReason.ADMIN,
                                 configuration())

        self.calls.cache.evict.assert_called_once_with(self.account)

    def test_off_box_deletions_awaited(self):
        """Off-box deletions finish before the cache is touched."""
        released = threading.Event()

        def _slow_delete(uuid):
            released.wait(5)
            self.calls.storage.finished()

        self.calls.storage.delete_stored_data.side_effect = _slow_delete
        self.calls.usernames.delete.side_effect = \
            lambda uuid: released.set()

        self.orchestrator.delete(self.account, DeletionReason.ADMIN,
                                 configuration())

        names = [c[0] for c in self.calls.mock_calls]
        self.assertLess(names.index('storage.finished'),
                        names.index('cache.evict'))

    def test_target_not_deleted_when_disabled(self):
        """The target store is left alone unless deletes are enabled."""
        self.orchestrator.delete(self.account, DeletionReason.ADMIN,
                                 configuration(delete=False))
        self.calls.target.delete.assert_not_called()

    def test_target_failure_is_swallowed(self):
        """A failing target delete is counted as a migration error."""
        self.calls.target.delete.side_effect = StoreUnavailable('down')
        self.orchestrator.delete(self.account, DeletionReason.ADMIN,
                                 configuration(delete=True))
        self.assertEqual(
            sample(self.metrics, 'migration_error_total', action='delete'), 1
        )
        self.assertEqual(
            sample(self.metrics, 'deleteCounter_total', country='44',
                   reason='admin'),
            1
        )

    def test_off_box_failure(self):
        """A failed off-box deletion aborts before the cache is evicted."""
        self.calls.backups.delete_backups.side_effect = OSError('timeout')
        with self.assertRaises(OSError):
            self.orchestrator.delete(self.account, DeletionReason.EXPIRED,
                                     configuration(delete=True))
        self.calls.cache.evict.assert_not_called()
        self.calls.legacy.delete.assert_not_called()
        self.assertEqual(
            sample(self.metrics, 'deleteError_total', country='44',
                   reason='expired'),
            1
        )

    def test_sequential_failure(self):
        """A failed asset deletion stops the ones after it."""
        self.calls.profiles.delete_all.side_effect = RuntimeError('down')
        with self.assertRaises(RuntimeError):
            self.orchestrator.delete(self.account, DeletionReason.ADMIN,
                                     configuration())
        self.calls.keys.delete.assert_not_called()
        self.calls.messages.clear.assert_not_called()
        self.calls.legacy.delete.assert_not_called()

    def test_unawaited_off_box_failure_logged(self):
        """Off-box failures are logged when an earlier step fails first."""
        self.calls.profiles.delete_all.side_effect = RuntimeError('down')
        self.calls.backups.delete_backups.side_effect = OSError('timeout')
        with self.assertLogs(deletion.__name__, level='WARNING') as logs:
            with self.assertRaises(RuntimeError):
                self.orchestrator.delete(self.account, DeletionReason.ADMIN,
                                         configuration())
            self.orchestrator.shutdown()

        failures = [line for line in logs.output
                    if 'Off-box backup deletion failed' in line]
        self.assertEqual(len(failures), 1)
        self.assertIn(str(self.account.uuid), failures[0])
        self.assertIn('timeout', failures[0])
        self.assertFalse(any('Off-box storage' in line
                             for line in logs.output))

    def test_cache_failure(self):
        """Failing to evict the cache fails the delete."""
        self.calls.cache.evict.side_effect = CacheUnavailable('down')
        with self.assertRaises(CacheUnavailable):
            self.orchestrator.delete(self.account, DeletionReason.ADMIN,
                                     configuration())
        self.calls.legacy.delete.assert_not_called()
        self.assertEqual(
            sample(self.metrics, 'deleteError_total', country='44',
                   reason='admin'),
            1
        )

    def test_legacy_failure(self):
        """Failing to delete from the legacy store fails the delete."""
        self.calls.legacy.delete.side_effect = StoreUnavailable('down')
        with self.assertRaises(StoreUnavailable):
            self.orchestrator.delete(self.account, DeletionReason.ADMIN,
                                     configuration(delete=True))
        self.calls.target.delete.assert_not_called()

    def test_unknown_reason(self):
        """Only the known deletion reasons are accepted."""
        with self.assertRaises(ValueError):
            self.orchestrator.delete(self.account, 'bored', configuration())
        self.calls.usernames.delete.assert_not_called()

    def test_unparseable_number(self):
        """Accounts with a number that does not parse count under ``0``."""
        account = new_account(number='not-a-number')
        self.orchestrator.delete(account, DeletionReason.ADMIN,
                                 configuration())
        self.assertEqual(
            sample(self.metrics, 'deleteCounter_total', country='0',
                   reason='admin'),
            1
        )

