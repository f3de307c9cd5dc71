"""
Live migration of accounts from the legacy store to the target store.

- :mod:`.policy` resolves, from dynamic configuration and experiment
  enrolment, which operations involve the target store.
- :mod:`.shadow` runs those operations off the critical path.
- :mod:`.compare` classifies how the two stores disagree.
"""

from . import compare, policy, shadow
from .compare import compare_accounts, compare_fresh, MISMATCH_TAGS
from .policy import DynamicConfiguration, DynamicConfigurationManager, \
    ExperimentEnrollmentManager, MigrationConfiguration, MigrationPolicy, \
    load_configuration, MIGRATION_EXPERIMENT
from .shadow import ShadowRunner
