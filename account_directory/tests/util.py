"""Testing helpers."""

import os
import random
import string
from contextlib import contextmanager
from typing import Any, Iterable, NamedTuple, Optional
from unittest import mock
from uuid import UUID, uuid4

from mimesis import Person
from mimesis.locales import Locale

from ..cache import AccountCache
from ..deletion import AssetSinks, DeletionOrchestrator
from ..domain import Account, Device, SignedPreKey, MASTER_DEVICE_ID
from ..legacy import LegacyAccounts, LegacyDatabase
from ..manager import AccountsManager
from ..metrics import Metrics
from ..migration.policy import DynamicConfiguration, \
    DynamicConfigurationManager, ExperimentConfiguration, \
    MigrationConfiguration, MigrationPolicy, MIGRATION_EXPERIMENT
from ..target import TargetAccounts

_person = Person(Locale.EN)


def new_number() -> str:
    """Generate a North American E.164 number."""
    return '+1555' + ''.join(random.choices(string.digits, k=7))


def new_device(device_id: int = MASTER_DEVICE_ID, **fields: Any) -> Device:
    values = dict(
        id=device_id,
        name=_person.first_name(),
        signed_pre_key=SignedPreKey(key_id=random.randint(1, 1 << 24),
                                    public_key='cHVibGlj',
                                    signature='c2lnbmF0dXJl'),
        push_timestamp=random.randint(1, 1 << 40),
        last_seen=random.randint(1, 1 << 40),
        created=random.randint(1, 1 << 40),
        user_agent='OWA'
    )
    values.update(fields)
    return Device(**values)


def new_account(**fields: Any) -> Account:
    """Generate an account with a master device and random profile data."""
    values = dict(
        uuid=uuid4(),
        number=new_number(),
        identity_key='aWRlbnRpdHk=',
        current_profile_version='1',
        profile_name=_person.full_name(),
        avatar=f'profiles/{uuid4().hex}',
        unidentified_access_key=os.urandom(16),
        devices=(new_device(),)
    )
    values.update(fields)
    return Account(**values)


def sample(metrics: Metrics, name: str, **labels: str) -> float:
    """Get the value of a sample, or 0 if it has not been recorded."""
    value = metrics.registry.get_sample_value(name, labels)
    return value if value is not None else 0.0


def new_sinks() -> AssetSinks:
    """Asset services that accept every deletion."""
    return AssetSinks(*(mock.MagicMock() for _ in AssetSinks._fields))


def configuration(read: bool = False, write: bool = False,
                  delete: bool = False, log_mismatches: bool = False,
                  enrolled: Iterable[UUID] = (),
                  percentage: int = 0) -> DynamicConfiguration:
    """Build a dynamic configuration snapshot."""
    return DynamicConfiguration(
        migration=MigrationConfiguration(read_enabled=read,
                                         write_enabled=write,
                                         delete_enabled=delete,
                                         log_mismatches=log_mismatches),
        experiments={MIGRATION_EXPERIMENT: ExperimentConfiguration(
            enrolled_uuids=frozenset(enrolled),
            enrollment_percentage=percentage
        )}
    )


class Directory(NamedTuple):
    """An account directory and its collaborators."""

    manager: AccountsManager
    legacy: LegacyAccounts
    target: TargetAccounts
    cache: AccountCache
    metrics: Metrics
    sinks: AssetSinks
    configuration_manager: DynamicConfigurationManager


@contextmanager
def temporary_directory(snapshot: Optional[DynamicConfiguration] = None):
    """Provide a directory backed by fake Redis and in-memory sqlite."""
    metrics = Metrics()
    db = LegacyDatabase('sqlite://')
    db.create_all()
    legacy = LegacyAccounts(db)
    target = TargetAccounts(fake=True)
    cache = AccountCache(fake=True, metrics=metrics)
    configuration_manager = DynamicConfigurationManager(
        configuration=snapshot or DynamicConfiguration()
    )
    policy = MigrationPolicy(configuration_manager)
    sinks = new_sinks()
    deletion = DeletionOrchestrator(cache, legacy, target, sinks, metrics,
                                    workers=2)
    manager = AccountsManager(legacy, target, cache, policy, deletion,
                              metrics)
    try:
        yield Directory(manager, legacy, target, cache, metrics, sinks,
                        configuration_manager)
    finally:
        deletion.shutdown()
        db.drop_all()


def total(metrics: Metrics, family: str) -> float:
    """Sum a counter over all of its label values."""
    return sum(s.value for metric in metrics.registry.collect()
               if metric.name == family
               for s in metric.samples if s.name == f'{family}_total')
