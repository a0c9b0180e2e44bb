"""
Pytest configuration and shared fixtures for the flavor recommender tests.
"""
import os
import sys
from typing import Any, List
from unittest.mock import MagicMock

import pytest

# Add src to path for imports
sys.path.insert(0, os.path.join(os.path.dirname(os.path.dirname(__file__)), "src"))

# Load environment variables
from dotenv import load_dotenv
load_dotenv(os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env"))

# Settings require these; unit tests never reach the network
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SERVICE_KEY", "test-key")


# ============================================================================
# Fixtures: Test Data Factories
# ============================================================================

@pytest.fixture
def taste_keywords():
    """Taste keyword catalog as returned by FlavorRepository."""
    from recommend.models import TasteKeyword
    return [
        TasteKeyword(id="chocolate", label="초코", icon_url="https://cdn.test/choco.png", sort_order=1),
        TasteKeyword(id="strawberry", label="딸기", icon_url="https://cdn.test/berry.png", sort_order=2),
        TasteKeyword(id="vanilla", label="바닐라", icon_url=None, sort_order=3),
        TasteKeyword(id="cookies and cream", label="쿠키앤크림", icon_url=None, sort_order=4),
        TasteKeyword(id="milk tea", label="밀크티", icon_url=None, sort_order=5),
    ]


@pytest.fixture
def sample_flavor_row() -> dict:
    """One row of flavor_search_view."""
    return {
        "id": "flv-001",
        "brand": "마이프로틴",
        "product_name": "임팩트 웨이",
        "flavor_name": "초코 스무스",
        "summary_text": "진한 초코맛, 물에 타도 맛있음",
        "sweetness": "보통",
        "fishy": "없음",
        "artificial": "거의 없음",
        "bloating": "보통",
        "water": "추천",
        "milk": "추천",
        "image_url": "https://cdn.test/flv-001.png",
        "protein_type": "WPC",
        "taste_keywords": [{"id": "chocolate"}],
    }


@pytest.fixture
def flavor_rows(sample_flavor_row: dict) -> List[dict]:
    """Five candidate rows with distinct tastes."""
    specs = [
        ("flv-001", "초코 스무스", [{"id": "chocolate"}]),
        ("flv-002", "딸기 크림", [{"id": "strawberry"}]),
        ("flv-003", "바닐라", [{"id": "vanilla"}]),
        ("flv-004", "초코 딸기", [{"id": "chocolate"}, {"id": "strawberry"}]),
        ("flv-005", "쿠키앤크림", [{"id": "cookies and cream", "label": "쿠앤크"}]),
    ]
    rows = []
    for flavor_id, flavor_name, refs in specs:
        row = dict(sample_flavor_row)
        row["id"] = flavor_id
        row["flavor_name"] = flavor_name
        row["taste_keywords"] = refs
        rows.append(row)
    return rows


# ============================================================================
# Fixtures: Mock Services
# ============================================================================

@pytest.fixture
def mock_supabase_client():
    """
    Mock Supabase client whose query builder chains back to itself.

    Set `mock_supabase_client.query.execute.return_value.data` to control rows.
    """
    mock_client = MagicMock()
    query = MagicMock()
    for method in ("select", "limit", "in_", "eq", "or_", "order"):
        getattr(query, method).return_value = query
    query.execute.return_value.data = []
    mock_client.table.return_value = query
    mock_client.query = query
    return mock_client


class ScriptedLLM:
    """
    Stand-in for LLMClient.chat_json that replays queued payloads.

    Queued exceptions are raised instead of returned.
    """

    def __init__(self, *payloads: Any):
        self.payloads = list(payloads)
        self.calls: List[list] = []

    def chat_json(self, messages):
        self.calls.append(messages)
        if not self.payloads:
            raise AssertionError("Unexpected LLM call")
        payload = self.payloads.pop(0)
        if isinstance(payload, Exception):
            raise payload
        return payload


@pytest.fixture
def scripted_llm():
    """Factory for ScriptedLLM instances."""
    return ScriptedLLM


@pytest.fixture
def test_settings():
    """Settings isolated from the environment."""
    from config.settings import get_settings_for_testing
    return get_settings_for_testing()


# ============================================================================
# Markers auto-use
# ============================================================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line("markers", "unit: marks tests as unit tests")
    config.addinivalue_line("markers", "integration: marks tests as integration tests")
    config.addinivalue_line("markers", "supabase: marks tests that require Supabase")


# ============================================================================
# Skip conditions
# ============================================================================

def pytest_collection_modifyitems(config, items):
    """Auto-skip integration tests if no server URL is configured."""
    skip_integration = pytest.mark.skip(reason="Integration tests require running server")

    server_url = os.getenv("TEST_SERVER_URL")

    for item in items:
        if "integration" in item.keywords and not server_url:
            item.add_marker(skip_integration)
