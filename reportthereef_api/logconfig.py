"""Logging setup from the packaged ``logging.yaml`` plus the configured level."""
import logging.config
from importlib import resources

import yaml

from .config import get_settings


def load_logging_config() -> dict:
    text = resources.files('reportthereef_api').joinpath('logging.yaml').read_text(encoding='utf-8')
    config = yaml.safe_load(text) or {}
    if not isinstance(config, dict):
        raise ValueError('Invalid logging.yaml; expected a mapping.')
    return config


def configure_logging() -> None:
    level = get_settings().log_level.upper()
    config = load_logging_config()
    config.setdefault('loggers', {}).setdefault('reportthereef_api', {})['level'] = level
    for handler in config.get('handlers', {}).values():
        if isinstance(handler, dict) and 'level' in handler:
            handler['level'] = level
    logging.config.dictConfig(config)
