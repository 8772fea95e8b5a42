"""Pytest configuration and shared fixtures for RegConf tests."""

import tempfile
from pathlib import Path
from typing import Any, Dict, Iterator

import pytest
import yaml
from regconf import EntryStore, Registry, import_entries

API_CONFIG = {
    "api": {
        "enabled": True,
        "request_limit": 1,
        "auth": {
            "token": "secret",
            "empty": "",
        },
    },
    "debug": False,
}


@pytest.fixture
def temp_dir() -> Iterator[Path]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmp_dir:
        yield Path(tmp_dir)


@pytest.fixture
def store() -> Iterator[EntryStore]:
    """Create an in-memory EntryStore holding API_CONFIG."""
    with EntryStore() as entry_store:
        import_entries(entry_store, API_CONFIG)
        yield entry_store


@pytest.fixture
def registry(store: EntryStore) -> Registry:
    """Create a Registry over the populated store."""
    return Registry(store)


def write_yaml_file(file_path: Path, data: Dict[str, Any]) -> None:
    """Write data to YAML file.

    Args:
        file_path: Path to write file
        data: Data to write
    """
    with open(file_path, "w") as f:
        yaml.dump(data, f, default_flow_style=False)
