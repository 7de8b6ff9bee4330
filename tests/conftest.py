import logging
from datetime import datetime, timezone

import pytest

from safe_harbor.core.registry import PatternRegistry
from safe_harbor.service.config import ComplianceConfigStore
from safe_harbor.service.pipeline import RedactionService


FIXED_TIME = datetime(2024, 3, 15, 12, 30, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def registry():
    return PatternRegistry.get_instance()


@pytest.fixture(scope="session")
def detector():
    return RedactionService.get_instance()


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_TIME


@pytest.fixture
def fresh_config_store(monkeypatch):
    """Forces the compliance store singleton to reload from the environment."""
    monkeypatch.setattr(ComplianceConfigStore, "_instance", None)
    yield
    ComplianceConfigStore._instance = None


@pytest.fixture
def restore_root_logging():
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    root.handlers[:] = handlers
    root.setLevel(level)
