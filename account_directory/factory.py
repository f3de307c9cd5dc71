"""Builds the account directory and attaches it to a Flask application."""

import logging
from typing import Any, Mapping, Optional

from flask import Flask, current_app

from .cache import get_cache
from .deletion import AssetSinks, DeletionOrchestrator
from .legacy import LegacyAccounts, LegacyDatabase
from .manager import AccountsManager
from .metrics import Metrics, get_default_metrics
from .migration.policy import DynamicConfigurationManager, MigrationPolicy
from .target import get_target
from .util import get_application_config, setup_logger

logger = logging.getLogger(__name__)

EXTENSION = 'account_directory'


def _is_set(value: Any) -> bool:
    return str(value).lower() in ('1', 'true')


def create_accounts_manager(
        config: Optional[Mapping], sinks: AssetSinks,
        metrics: Optional[Metrics] = None,
        configuration_manager: Optional[DynamicConfigurationManager] = None
        ) -> AccountsManager:
    """
    Build an :class:`.AccountsManager` and its collaborators.

    Parameters
    ----------
    config : mapping
        Static configuration; see :mod:`account_directory.config`. If
        ``None``, the configuration of the current application is used, or
        the process environment outside of an application context.
    sinks : :class:`.AssetSinks`
        Services that hold per-account assets.
    metrics : :class:`.Metrics`
        Defaults to a new instance with a private registry.
    configuration_manager : :class:`.DynamicConfigurationManager`
        Defaults to one that reads ``DYNAMIC_CONFIG_PATH``, if set.

    """
    if config is None:
        config = get_application_config()
    if metrics is None:
        metrics = Metrics()

    db = LegacyDatabase(config.get('LEGACY_DATABASE_URI',
                                   'sqlite:///accounts.db'))
    if _is_set(config.get('CREATE_DB', '0')):
        logger.info('Creating legacy tables')
        db.create_all()
    legacy = LegacyAccounts(db)
    target = get_target(config)
    cache = get_cache(config, metrics)

    if configuration_manager is None:
        configuration_manager = DynamicConfigurationManager(
            config.get('DYNAMIC_CONFIG_PATH')
        )
    policy = MigrationPolicy(configuration_manager)
    deletion = DeletionOrchestrator(
        cache, legacy, target, sinks, metrics,
        workers=int(config.get('DELETION_WORKERS', '4'))
    )
    return AccountsManager(legacy, target, cache, policy, deletion, metrics)


def init_app(app: Flask, sinks: AssetSinks) -> None:
    """Set configuration defaults and attach the directory to ``app``."""
    config = get_application_config(app)
    config.setdefault('REDIS_HOST', 'localhost')
    config.setdefault('REDIS_PORT', '7000')
    config.setdefault('REDIS_CLUSTER', '1')
    config.setdefault('REDIS_TIMEOUT', '1.0')
    config.setdefault('TARGET_REDIS_HOST', 'localhost')
    config.setdefault('TARGET_REDIS_PORT', '6379')
    config.setdefault('TARGET_REDIS_DATABASE', '0')
    config.setdefault('TARGET_TIMEOUT', '2.0')
    config.setdefault('LEGACY_DATABASE_URI', 'sqlite:///accounts.db')
    config.setdefault('CREATE_DB', False)
    config.setdefault('DYNAMIC_CONFIG_PATH', None)
    config.setdefault('DELETION_WORKERS', '4')
    config.setdefault('LOG_LEVEL', 'INFO')
    config.setdefault('LOG_JSON', '1')

    setup_logger(config['LOG_LEVEL'], json_output=_is_set(config['LOG_JSON']))
    app.extensions[EXTENSION] = create_accounts_manager(
        config, sinks, metrics=get_default_metrics()
    )


def current_manager() -> AccountsManager:
    """Get the :class:`.AccountsManager` of the current application."""
    return current_app.extensions[EXTENSION]    # type: ignore
