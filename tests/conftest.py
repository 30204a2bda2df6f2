"""Root conftest for the edelivery test suite."""

from __future__ import annotations

import sys
from datetime import UTC, datetime
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)


# ---------------------------------------------------------------------------
# Minimal config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a dict containing the minimum required config fields."""
    return {
        "server": {"external_url": "https://shop.example.com"},
        "database": {"database": "edelivery_test", "user": "testuser"},
        "identity": {
            "backend": "signed",
            "token_secret": "test-secret-0123456789abcdef",
        },
        "gateway": {"api_secret": "portone-test-secret"},
        "storage": {"bucket": "course-files"},
    }


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


@pytest.fixture()
def fixed_now() -> datetime:
    """A fixed 'now' used by clock-injected services."""
    return datetime(2025, 6, 15, 12, 0, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# ConfigKit singleton cleanup, autouse so every test gets a fresh slate
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def fresh_config():
    """Reset the EdeliveryConfig singleton before and after every test."""
    from edelivery.config.edelivery_config import EdeliveryConfig

    EdeliveryConfig.reset()
    yield
    EdeliveryConfig.reset()
