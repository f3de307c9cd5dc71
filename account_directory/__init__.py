"""
Account directory with a write-through cache and a live store migration.

Accounts are read and written through :class:`.AccountsManager`, which
keeps a Redis cache coherent with the authoritative legacy database while
shadowing traffic to the target key-value store. Use
:func:`.factory.init_app` to attach a directory to a Flask application, or
:func:`.factory.create_accounts_manager` to build one directly.
"""

from .domain import Account, DeletionReason, Device, SignedPreKey
from .manager import AccountsManager
