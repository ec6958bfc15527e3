"""Shared test fixtures: MockProvider injection, seeded store and collaborator resets."""

from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path

import pytest
from cip_protocol import CIP
from cip_protocol.llm.providers.mock import MockProvider
from cip_protocol.scaffold.matcher import clear_matcher_cache

from dealer_mcp.collaborators.costs import set_cost_attribution
from dealer_mcp.collaborators.notifications import set_notification_center
from dealer_mcp.config import DEALER_DOMAIN_CONFIG
from dealer_mcp.data.inventory import set_store
from dealer_mcp.data.kv import SqliteKeyValueStore
from dealer_mcp.data.seed import seed_demo_data
from dealer_mcp.server import set_cip_override
from dealer_mcp.workflow import events

SCAFFOLD_DIR = str(Path(__file__).resolve().parent.parent / "dealer_mcp" / "scaffolds")


@pytest.fixture()
def mock_provider() -> MockProvider:
    """A fresh MockProvider for each test."""
    return MockProvider("Mock LLM response for DealerOps.")


@pytest.fixture()
def mock_cip(mock_provider: MockProvider) -> CIP:
    """CIP instance wired with real scaffolds + MockProvider."""
    return CIP.from_config(DEALER_DOMAIN_CONFIG, SCAFFOLD_DIR, mock_provider)


@pytest.fixture(autouse=True)
def _inject_mock_cip(mock_cip: CIP):
    """Auto-inject the mock CIP into the server singleton for every test."""
    set_cip_override(mock_cip)
    yield
    set_cip_override(None)


@pytest.fixture()
def now() -> datetime:
    return datetime.now(timezone.utc)


@pytest.fixture()
def store() -> SqliteKeyValueStore:
    """The store installed for the current test."""
    from dealer_mcp.data.inventory import get_store

    return get_store()


@pytest.fixture(autouse=True)
def _inject_test_store():
    """Give every test a fresh, isolated, seeded in-memory store."""
    test_store = SqliteKeyValueStore(":memory:")
    seed_demo_data(test_store)
    set_store(test_store)
    yield
    set_store(None)
    test_store.close()


@pytest.fixture(autouse=True)
def _reset_collaborators():
    """Drop collaborator singletons and event listeners between tests."""
    set_cost_attribution(None)
    set_notification_center(None)
    events.clear_listeners()
    yield
    events.clear_listeners()
    set_cost_attribution(None)
    set_notification_center(None)


@pytest.fixture(autouse=True)
def _clear_matcher_cache():
    """Clear matcher cache before and after each test to prevent cross-test pollution."""
    clear_matcher_cache()
    yield
    clear_matcher_cache()
