"""
Classification of differences between legacy and target results.

:func:`compare_accounts` walks :data:`MISMATCH_CHECKS` in order and reports
the first check that fails, so each mismatch is counted under exactly one
tag. ``migrationVersion`` and ``Device.lastSeen`` are never compared.
"""

from typing import Callable, List, Optional, Tuple

from ..domain import Account
from ..serialization import comparison_bytes, devices_comparison_bytes

Check = Callable[[Account, Account], bool]
"""Returns ``True`` if the two accounts differ in the checked respect."""


def _differs(attr: str) -> Check:
    def _check(legacy: Account, target: Account) -> bool:
        return getattr(legacy, attr) != getattr(target, attr)
    return _check


def _unidentified_access_key_differs(legacy: Account, target: Account) \
        -> bool:
    legacy_key = legacy.unidentified_access_key
    target_key = target.unidentified_access_key
    if legacy_key is None and target_key is None:
        return False
    if legacy_key is None or target_key is None:
        return True
    return bytes(legacy_key) != bytes(target_key)


def _master_device_differs(attr: str) -> Check:
    def _check(legacy: Account, target: Account) -> bool:
        legacy_master = legacy.master_device
        target_master = target.master_device
        if legacy_master is None or target_master is None:
            return False
        return getattr(legacy_master, attr) != getattr(target_master, attr)
    return _check


def _devices_differ(legacy: Account, target: Account) -> bool:
    return devices_comparison_bytes(legacy.devices) \
        != devices_comparison_bytes(target.devices)


def _serialization_differs(legacy: Account, target: Account) -> bool:
    return comparison_bytes(legacy) != comparison_bytes(target)


MISMATCH_CHECKS: List[Tuple[str, Check]] = [
    ('uuid', _differs('uuid')),
    ('number', _differs('number')),
    ('identityKey', _differs('identity_key')),
    ('currentProfileVersion', _differs('current_profile_version')),
    ('profileName', _differs('profile_name')),
    ('avatar', _differs('avatar')),
    ('unidentifiedAccessKey', _unidentified_access_key_differs),
    ('unrestrictedUnidentifiedAccess',
     _differs('unrestricted_unidentified_access')),
    ('discoverableByPhoneNumber', _differs('discoverable_by_phone_number')),
    ('masterDeviceSignedPreKey', _master_device_differs('signed_pre_key')),
    ('masterDevicePushTimestamp', _master_device_differs('push_timestamp')),
    ('devices', _devices_differ),
    ('serialization', _serialization_differs),
]
"""Ordered (tag, check) pairs applied when both accounts are present."""

DB_MISSING = 'dbMissing'
DYNAMO_MISSING = 'dynamoMissing'

MISMATCH_TAGS = (DB_MISSING, DYNAMO_MISSING) \
    + tuple(tag for tag, _ in MISMATCH_CHECKS)


def compare_accounts(legacy: Optional[Account], target: Optional[Account]) \
        -> Optional[str]:
    """
    Classify the difference between a legacy and a target account.

    Parameters
    ----------
    legacy : :class:`.Account` or None
        Result from the legacy store.
    target : :class:`.Account` or None
        Result from the target store.

    Returns
    -------
    str or None
        A tag from :data:`MISMATCH_TAGS`, or ``None`` if the accounts are
        equivalent.

    """
    if legacy is None and target is None:
        return None
    if legacy is None:
        return DB_MISSING
    if target is None:
        return DYNAMO_MISSING
    for tag, differs in MISMATCH_CHECKS:
        if differs(legacy, target):
            return tag
    return None


def compare_fresh(legacy_fresh: bool, target_fresh: bool) -> Optional[str]:
    """Classify disagreement about whether a created account was new."""
    if legacy_fresh == target_fresh:
        return None
    if target_fresh:
        return 'dynamoFreshUser'
    return 'dbFreshUser'
