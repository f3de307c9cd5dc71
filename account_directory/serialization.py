"""
Serialization of :class:`.domain.Account` values.

Two encodings are kept side by side, each with its own field table:

- The *storage* encoding (:func:`dumps` and :func:`loads`) is the JSON held
  in the cache and in the legacy ``data`` column. It carries every field
  except the account id, which is always the key the payload is stored
  under and is set on the account after decoding.
- The *comparison* encoding (:func:`comparison_bytes` and
  :func:`devices_comparison_bytes`) is a canonical byte string used only to
  detect divergence between the legacy and target stores. It omits
  ``migrationVersion`` and ``Device.lastSeen``.
"""

import json
from base64 import b64encode, b64decode
from typing import Any, Callable, Dict, Optional, Sequence, Tuple
from uuid import UUID

from .domain import Account, Device, SignedPreKey

FieldTable = Tuple[Tuple[str, str], ...]

DEVICE_FIELDS: FieldTable = (
    ('id', 'id'),
    ('name', 'name'),
    ('signed_pre_key', 'signedPreKey'),
    ('push_timestamp', 'pushTimestamp'),
    ('last_seen', 'lastSeen'),
    ('created', 'created'),
    ('fetches_messages', 'fetchesMessages'),
    ('user_agent', 'userAgent'),
)
"""Storage encoding of :class:`.Device`: (attribute, JSON key)."""

ACCOUNT_FIELDS: FieldTable = (
    ('number', 'number'),
    ('identity_key', 'identityKey'),
    ('current_profile_version', 'currentProfileVersion'),
    ('profile_name', 'profileName'),
    ('avatar', 'avatar'),
    ('unidentified_access_key', 'unidentifiedAccessKey'),
    ('unrestricted_unidentified_access', 'unrestrictedUnidentifiedAccess'),
    ('discoverable_by_phone_number', 'discoverableByPhoneNumber'),
    ('registration_lock', 'registrationLock'),
    ('devices', 'devices'),
    ('migration_version', 'migrationVersion'),
)
"""Storage encoding of :class:`.Account`: (attribute, JSON key)."""

COMPARISON_DEVICE_FIELDS: FieldTable = (
    ('id', 'id'),
    ('name', 'name'),
    ('signed_pre_key', 'signedPreKey'),
    ('push_timestamp', 'pushTimestamp'),
    ('created', 'created'),
    ('fetches_messages', 'fetchesMessages'),
    ('user_agent', 'userAgent'),
)
"""Comparison encoding of :class:`.Device`; ``lastSeen`` is masked."""

COMPARISON_ACCOUNT_FIELDS: FieldTable = (
    ('number', 'number'),
    ('identity_key', 'identityKey'),
    ('current_profile_version', 'currentProfileVersion'),
    ('profile_name', 'profileName'),
    ('avatar', 'avatar'),
    ('unidentified_access_key', 'unidentifiedAccessKey'),
    ('unrestricted_unidentified_access', 'unrestrictedUnidentifiedAccess'),
    ('discoverable_by_phone_number', 'discoverableByPhoneNumber'),
    ('registration_lock', 'registrationLock'),
    ('devices', 'devices'),
)
"""Comparison encoding of :class:`.Account`; ``migrationVersion`` is masked."""


def _encode_signed_pre_key(key: Optional[SignedPreKey]) -> Optional[dict]:
    if key is None:
        return None
    return {'keyId': key.key_id, 'publicKey': key.public_key,
            'signature': key.signature}


def _decode_signed_pre_key(data: Optional[dict]) -> Optional[SignedPreKey]:
    if data is None:
        return None
    return SignedPreKey(key_id=int(data['keyId']),
                        public_key=data['publicKey'],
                        signature=data['signature'])


def _encode_bytes(value: Optional[bytes]) -> Optional[str]:
    if value is None:
        return None
    return b64encode(value).decode('ascii')


def _decode_bytes(value: Optional[str]) -> Optional[bytes]:
    if value is None:
        return None
    return b64decode(value)


def _encode_device(device: Device, fields: FieldTable) -> dict:
    data = {}
    for attr, key in fields:
        value = getattr(device, attr)
        if attr == 'signed_pre_key':
            value = _encode_signed_pre_key(value)
        data[key] = value
    return data


def _encode_account(account: Account, fields: FieldTable,
                    device_fields: FieldTable) -> dict:
    data: Dict[str, Any] = {}
    for attr, key in fields:
        value = getattr(account, attr)
        if attr == 'devices':
            value = [_encode_device(d, device_fields) for d in value]
        elif attr == 'unidentified_access_key':
            value = _encode_bytes(value)
        data[key] = value
    return data


def _identity(value: Any) -> Any:
    return value


_DEVICE_DECODERS: Dict[str, Callable] = {
    'id': int,
    'signed_pre_key': _decode_signed_pre_key,
}


def _decode_device(data: dict) -> Device:
    kwargs = {}
    for attr, key in DEVICE_FIELDS:
        if key in data and data[key] is not None:
            kwargs[attr] = _DEVICE_DECODERS.get(attr, _identity)(data[key])
    return Device(**kwargs)


def _decode_devices(data: list) -> Tuple[Device, ...]:
    return tuple(_decode_device(d) for d in data)


_ACCOUNT_DECODERS: Dict[str, Callable] = {
    'unidentified_access_key': _decode_bytes,
    'devices': _decode_devices,
    'migration_version': int,
}


def dumps(account: Account) -> str:
    """
    Encode an account for the cache or the legacy ``data`` column.

    Raises
    ------
    TypeError or ValueError
        If a field holds a value that JSON cannot represent.

    """
    return json.dumps(_encode_account(account, ACCOUNT_FIELDS, DEVICE_FIELDS),
                      separators=(',', ':'), allow_nan=False)


def loads(payload: str, uuid: UUID) -> Account:
    """
    Decode an account stored under ``uuid``.

    Raises
    ------
    ValueError
        If the payload is not a well-formed account.

    """
    data = json.loads(payload)
    if not isinstance(data, dict) or 'number' not in data:
        raise ValueError('Payload is not an account')
    kwargs: Dict[str, Any] = {'uuid': uuid}
    for attr, key in ACCOUNT_FIELDS:
        if key in data and data[key] is not None:
            try:
                kwargs[attr] = _ACCOUNT_DECODERS.get(attr, _identity)(data[key])
            except (KeyError, TypeError) as e:
                raise ValueError(f'Malformed field {key}: {e}') from e
    return Account(**kwargs)


def _canonical(data: Any) -> bytes:
    return json.dumps(data, sort_keys=True, separators=(',', ':'),
                      ensure_ascii=True, allow_nan=False).encode('ascii')


def comparison_bytes(account: Account) -> bytes:
    """Canonical encoding of an account, without ``migrationVersion``."""
    return _canonical(_encode_account(account, COMPARISON_ACCOUNT_FIELDS,
                                      COMPARISON_DEVICE_FIELDS))


def devices_comparison_bytes(devices: Sequence[Device]) -> bytes:
    """Canonical encoding of a device collection, without ``lastSeen``."""
    return _canonical([_encode_device(d, COMPARISON_DEVICE_FIELDS)
                       for d in devices])
