"""Utility functions for RegConf."""

import re
from copy import deepcopy
from typing import Any, Dict, List, Sequence, Union

import yaml

KEY_PATH = Union[str, Sequence[Any]]


class _RegistryLoader(yaml.SafeLoader):
    """Safe loader that also reads `1e-4` style floats."""


class _RegistryDumper(yaml.SafeDumper):
    """Safe dumper that quotes strings the loader would read as floats."""


# Plain PyYAML resolves 1e-4 as a string
_EXPONENT_FLOAT = re.compile(r"^ -? [0-9]+ ( \. [0-9]* )? [eE] [-+]? [0-9]+ $", re.X)
for _cls in (_RegistryLoader, _RegistryDumper):
    _cls.add_implicit_resolver("tag:yaml.org,2002:float", _EXPONENT_FLOAT, list("-+0123456789."))


def load_yaml(stream: Any) -> Any:
    """Load YAML content from a stream.

    Args:
        stream: Stream to read YAML from  # (file-like object or string)
    Returns:
        Parsed YAML content  # (nested dict, list or scalar)
    """
    return yaml.load(stream, Loader=_RegistryLoader)


def dump_yaml(data: Any) -> str:
    """Dump data as block-style YAML text."""
    return yaml.dump(data, Dumper=_RegistryDumper, default_flow_style=False, indent=2, sort_keys=False)


def split_key_path(key_path: KEY_PATH) -> List[str]:
    """Split a key path into its keys.

    Args:
        key_path: Dot-separated string (e.g., "api.enabled") or a sequence of keys

    Returns:
        List of keys  # (non-string keys converted with str())

    Raises:
        ValueError: If the path is empty or contains an empty key
    """
    if isinstance(key_path, str):
        keys = key_path.split(".")
    else:
        keys = [str(key) for key in key_path]

    if not keys or any(key == "" for key in keys):
        raise ValueError(f"Invalid key path: {key_path!r}")
    return keys


def deep_merge(base: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
    """Deep merge two dictionaries, with update taking precedence.

    Args:
        base: Base dictionary  # (original configuration)
        update: Update dictionary (takes precedence)  # (overrides and additions)

    Returns:
        Merged dictionary  # (combined configuration with deep merging)
    """
    result = deepcopy(base)

    for key, value in update.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            # Recursively merge nested dictionaries
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = deepcopy(value)
    return result


def format_value(data: Any) -> str:
    """YAML text for display, without the document end marker PyYAML adds after scalars."""
    text = dump_yaml(data)
    if text.endswith("\n...\n"):
        text = text[: -len("...\n")]
    return text
