"""Flask configuration."""
import os

#################### Cache cluster ####################
REDIS_HOST = os.environ.get('REDIS_HOST', 'localhost')
REDIS_PORT = os.environ.get('REDIS_PORT', '7000')
REDIS_CLUSTER = os.environ.get('REDIS_CLUSTER', '1')
"""Use the Redis Cluster client for the cache. Set to ``'0'`` for a single
node."""

REDIS_TIMEOUT = os.environ.get('REDIS_TIMEOUT', '1.0')
"""Socket timeout for cache round-trips, in seconds."""

REDIS_FAKE = os.environ.get('REDIS_FAKE', False)
"""Use the FakeRedis library instead of a redis service for both the cache
and the target store.

Useful for testing, dev, beta."""


#################### Target (key-value) store ####################
TARGET_REDIS_HOST = os.environ.get('TARGET_REDIS_HOST', 'localhost')
TARGET_REDIS_PORT = os.environ.get('TARGET_REDIS_PORT', '6379')
TARGET_REDIS_DATABASE = os.environ.get('TARGET_REDIS_DATABASE', '0')
TARGET_TIMEOUT = os.environ.get('TARGET_TIMEOUT', '2.0')
"""Socket timeout for the target store. This bounds how long a shadow
operation can hold up a request."""


#################### Legacy (relational) store ####################
LEGACY_DATABASE_URI = os.environ.get('LEGACY_DATABASE_URI',
                                     'sqlite:///accounts.db')
CREATE_DB = os.environ.get('CREATE_DB', '0') == '1'
"""Create the legacy tables when the application starts."""


#################### Migration ####################
DYNAMIC_CONFIG_PATH = os.environ.get('DYNAMIC_CONFIG_PATH', None)
"""JSON document holding migration flags and experiment enrolment. If
unset, every migration flag is off."""

DELETION_WORKERS = os.environ.get('DELETION_WORKERS', '4')
"""Threads used for off-box asset deletion."""


#################### Logging ####################
LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
LOG_JSON = os.environ.get('LOG_JSON', '1')
