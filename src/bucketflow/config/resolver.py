"""
Placeholder substitution for pipeline config files.

Credentials and endpoints are usually kept out of the YAML and referenced
as ``${AWS_SECRET_ACCESS_KEY}``; per-environment names such as
``prefix: "landing/{env}/"`` pick up the ``--env`` value.
"""

import os
import re
from typing import Any

# ${NAME} or ${NAME:-fallback}
_PLACEHOLDER = re.compile(r"\$\{(?P<name>[^}:]+)(?::-(?P<default>[^}]*))?\}")


def _substitute(match: re.Match) -> str:
    value = os.environ.get(match.group("name"))
    default = match.group("default")
    if default is not None and not value:
        return default
    if value is not None:
        return value
    # Left as-is so validation names the key that referenced it
    return match.group(0)


def resolve_config(config_data: dict[str, Any], env: str = "dev") -> dict[str, Any]:
    """
    Substitute environment placeholders throughout a loaded config tree.

    Supports ``${NAME}``, ``${NAME:-fallback}`` (used when NAME is unset or
    empty) and the ``{env}`` token. Non-string leaves are returned untouched.

    Args:
        config_data: Raw mapping from the YAML file(s)
        env: Active environment name

    Returns:
        A new mapping with every string leaf resolved
    """
    return _resolve(config_data, env)


def _resolve(value: Any, env: str) -> Any:
    if isinstance(value, dict):
        return {key: _resolve(item, env) for key, item in value.items()}
    if isinstance(value, list):
        return [_resolve(item, env) for item in value]
    if isinstance(value, str):
        return _PLACEHOLDER.sub(_substitute, value).replace("{env}", env)
    return value
