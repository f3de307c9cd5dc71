"""Defines account concepts for use in the account directory."""

from typing import Optional, NamedTuple, Tuple
from uuid import UUID

MASTER_DEVICE_ID = 1
"""Device slot of the primary (registering) device."""


class DeletionReason(object):
    """Reasons for which an account may be deleted; used as a metric tag."""

    ADMIN = 'admin'
    EXPIRED = 'expired'
    USER_REQUEST = 'userRequest'

    ALL = (ADMIN, EXPIRED, USER_REQUEST)


class SignedPreKey(NamedTuple):
    """A signed pre-key published by a device."""

    key_id: int
    """Identifier chosen by the device."""

    public_key: str
    """Base64-encoded public key."""

    signature: str
    """Base64-encoded signature by the account identity key."""


class Device(NamedTuple):
    """A device registered to an :class:`.Account`."""

    id: int
    """Device slot. :const:`MASTER_DEVICE_ID` is the primary device."""

    name: Optional[str] = None
    """Encrypted device name, if the device set one."""

    signed_pre_key: Optional[SignedPreKey] = None
    """Current signed pre-key, if any."""

    push_timestamp: int = 0
    """Milliseconds since epoch of the last push registration."""

    last_seen: int = 0
    """
    Milliseconds since epoch of the last time the device was seen.

    This changes constantly and is not part of migration comparison.
    """

    created: int = 0
    """Milliseconds since epoch of device registration."""

    fetches_messages: bool = False
    """Whether the device polls for messages rather than receiving pushes."""

    user_agent: Optional[str] = None
    """Client platform and version."""

    @property
    def is_master(self) -> bool:
        """Whether this is the primary device of its account."""
        return self.id == MASTER_DEVICE_ID


class Account(NamedTuple):
    """Represents an account in the directory."""

    uuid: UUID
    """Immutable, globally unique identifier of the account."""

    number: str
    """E.164 phone number. Unique, but may change over time."""

    identity_key: Optional[str] = None
    """Base64-encoded public identity key."""

    current_profile_version: Optional[str] = None
    """Version of the profile currently published by the account."""

    profile_name: Optional[str] = None
    """Encrypted profile name."""

    avatar: Optional[str] = None
    """Path of the profile avatar in off-box storage."""

    unidentified_access_key: Optional[bytes] = None
    """Key used to authorize sealed-sender delivery to this account."""

    unrestricted_unidentified_access: bool = False
    """Whether anyone may send sealed-sender messages to this account."""

    discoverable_by_phone_number: bool = True
    """Whether contact discovery may return this account."""

    registration_lock: Optional[str] = None
    """Hashed registration lock credential, if one is set."""

    devices: Tuple[Device, ...] = ()
    """Devices registered to the account, in slot order."""

    migration_version: int = 0
    """
    Incremented by every successful update.

    Used as a write precondition in the target store; never compared.
    """

    @property
    def master_device(self) -> Optional[Device]:
        """The primary device, if the account has one."""
        for device in self.devices:
            if device.is_master:
                return device
        return None
