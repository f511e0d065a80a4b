"""
Configuration resolution and environment variable substitution.

Substitutes ``${VAR_NAME}`` with the environment value (left untouched when
unset) and ``{env}`` with the active environment name.
"""

import os
import re
from typing import Any

_ENV_VAR = re.compile(r"\${([^}]+)}")


def resolve_config(config_data: dict[str, Any], env: str = "dev") -> dict[str, Any]:
    """
    Resolve configuration placeholders.

    Args:
        config_data: Configuration dictionary
        env: Current environment name

    Returns:
        Resolved configuration (a new dict; the input is not modified)
    """
    return _resolve_value(config_data, env)


def _resolve_value(value: Any, env: str) -> Any:
    if isinstance(value, dict):
        return {k: _resolve_value(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_value(item, env) for item in value]
    if isinstance(value, str):
        result = _ENV_VAR.sub(lambda m: os.getenv(m.group(1), m.group(0)), value)
        return result.replace("{env}", env)
    return value
