"""
Pytest configuration and fixtures.
Adds the repo root to sys.path so tests can import mmbot without installing it.
"""

import sys
from pathlib import Path

import pytest

repo_root = Path(__file__).parent.parent
if str(repo_root) not in sys.path:
    sys.path.insert(0, str(repo_root))

from mmbot.state.order_store import InMemoryOrderRepository  # noqa: E402
from fakes import make_record  # noqa: E402


@pytest.fixture
def scenario_records():
    """r1 mm buy (quote 10), r2 ob sell (base 500), r3 mm sell (base 300)."""
    return [
        make_record("r1", purpose="mm", side="buy", price=0.1, base_amount=100.0, quote_amount=10.0),
        make_record("r2", purpose="ob", side="sell", price=0.2, base_amount=500.0),
        make_record("r3", purpose="mm", side="sell", price=0.2, base_amount=300.0),
    ]


@pytest.fixture
def repository(scenario_records):
    return InMemoryOrderRepository(scenario_records)
