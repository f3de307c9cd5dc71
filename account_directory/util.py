"""Helpers and Flask application integration."""

import logging
import os
from typing import Any, Mapping, Optional

import phonenumbers
from flask import current_app, has_app_context
from pythonjsonlogger import jsonlogger


def get_application_config(app: Optional[Any] = None) -> Mapping:
    """
    Get the configuration of ``app``, or of the current application.

    Falls back to the process environment outside of an application
    context.
    """
    if app is not None:
        return app.config
    if has_app_context():
        return current_app.config
    return os.environ


def country_code(number: str) -> str:
    """
    Get the E.164 country calling code of ``number``.

    Returns ``'0'`` if the number cannot be parsed.
    """
    try:
        return str(phonenumbers.parse(number, None).country_code)
    except phonenumbers.NumberParseException:
        return '0'


def setup_logger(level: str = 'INFO', json_output: bool = True) -> None:
    """Install a handler on the root logger, structured as JSON by default."""
    handler = logging.StreamHandler()
    if json_output:
        formatter: logging.Formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s',
            rename_fields={'levelname': 'level', 'asctime': 'timestamp'}
        )
    else:
        formatter = logging.Formatter(
            '%(asctime)s %(levelname)s %(name)s %(message)s'
        )
    handler.setFormatter(formatter)
    logger = logging.getLogger()
    logger.addHandler(handler)
    logger.setLevel(level)
