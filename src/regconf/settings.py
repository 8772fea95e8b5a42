"""RegConf settings.

Settings are resolved in order, later sources taking precedence:

1. Defaults of ``RegistrySettings``
2. A YAML settings file (a top-level ``regconf:`` section, or the whole file)
3. ``REGCONF_DATABASE`` / ``REGCONF_ENVIRONMENT`` environment variables
"""

import os
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Dict, Mapping, Optional, Union

import yaml

from .exceptions import RegConfError
from .utils import deep_merge, load_yaml

ENV_PREFIX = "REGCONF_"
SETTINGS_SECTION = "regconf"


@dataclass(frozen=True)
class RegistrySettings:
    """Settings for building a registry."""

    database: str = ":memory:"  # (SQLite database path)
    environment: Optional[str] = None  # (default section for imports)


def load_settings(
    path: Optional[Union[str, Path]] = None,
    environ: Optional[Mapping[str, str]] = None,
) -> RegistrySettings:
    """Load settings from defaults, an optional YAML file and the environment.

    Args:
        path: YAML settings file  # (skipped when None)
        environ: Environment mapping  # (os.environ when None)

    Returns:
        Resolved settings

    Raises:
        RegConfError: If the settings file is unreadable, not a mapping or has unknown keys
    """
    environ = os.environ if environ is None else environ
    data = asdict(RegistrySettings())  # Dict[str, Any] (settings as plain dict)

    if path is not None:
        try:
            with open(path, "r") as f:
                file_data = load_yaml(f) or {}
        except OSError as e:
            raise RegConfError(f"Cannot read settings file {path}: {e}") from e
        except yaml.YAMLError as e:
            raise RegConfError(f"Malformed settings file {path}: {e}") from e
        if not isinstance(file_data, dict):
            raise RegConfError(f"Settings file {path} must contain a YAML mapping at the top level.")
        file_data = file_data.get(SETTINGS_SECTION, file_data)
        data = deep_merge(data, file_data)

    data = deep_merge(data, _from_environ(environ))

    known = {f.name for f in fields(RegistrySettings)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise RegConfError(f"Unknown settings: {', '.join(unknown)}")
    return RegistrySettings(**data)


def _from_environ(environ: Mapping[str, str]) -> Dict[str, Any]:
    result = {}  # Dict[str, Any] (settings found in the environment)
    for f in fields(RegistrySettings):
        name = ENV_PREFIX + f.name.upper()
        if name in environ:
            result[f.name] = environ[name]
    return result
