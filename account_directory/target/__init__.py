"""
Integration with the target key-value account store.

Accounts are being migrated here from the legacy store. Until the migration
completes, the target store only receives shadow traffic: its results are
compared with the legacy store and never returned to callers.

See :mod:`.store`.
"""

from . import store
from .store import TargetAccounts, get_target
