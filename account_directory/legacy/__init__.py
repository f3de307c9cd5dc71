"""
Integration with the legacy relational account store.

The legacy database is authoritative while accounts are migrated to the
target store: every read that misses the cache, and every mutation, goes
here first.
"""

from . import accounts, models, util
from .accounts import LegacyAccounts
from .util import LegacyDatabase
