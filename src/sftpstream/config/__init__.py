"""
Configuration management.

YAML file loading, environment resolution and typed property binding.
"""

from sftpstream.config.loader import Config, load_config
from sftpstream.config.properties import (
    AppProperties,
    ServerCredentials,
    SourceProperties,
    TaskLaunchRequestType,
    TransferType,
)
from sftpstream.config.resolver import resolve_config

__all__ = [
    "load_config",
    "Config",
    "resolve_config",
    "AppProperties",
    "ServerCredentials",
    "SourceProperties",
    "TaskLaunchRequestType",
    "TransferType",
]
