"""
Integration with the distributed account cache.

The cache holds the JSON encoding of each account, indexed by id and by
phone number. It is written through on every mutation and read through on
every lookup; the legacy store remains authoritative.

See :mod:`.store`.
"""

from . import store
from .store import AccountCache, get_cache
