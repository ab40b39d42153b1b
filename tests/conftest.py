"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import pytest
import sys
from pathlib import Path

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from src.playlist.models import (  # noqa: E402
    AdaptiveConfiguration,
    AdaptiveMetadata,
    AdaptiveMode,
    GateSettings,
    LearningUnit,
    UnitCategory,
)


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


def _make_unit(
    unit_id: str = "lu-1",
    sequence: int = 1,
    *,
    title: str | None = None,
    category: UnitCategory | None = UnitCategory.TOPIC,
    is_required: bool = True,
    nodes: tuple[str, ...] = (),
    is_gate: bool = False,
    max_attempts: int | None = None,
) -> LearningUnit:
    """Build a learning unit with sensible test defaults."""
    adaptive = None
    if nodes or is_gate or max_attempts is not None:
        adaptive = AdaptiveMetadata(
            teaches_nodes=nodes,
            is_gate=is_gate,
            gate=GateSettings(max_attempts=max_attempts) if max_attempts is not None else None,
        )
    return LearningUnit(
        id=unit_id,
        title=title or f"Unit {unit_id}",
        type="media",
        content_id=f"content-{unit_id}",
        category=category,
        is_required=is_required,
        sequence=sequence,
        estimated_duration=600,
        adaptive=adaptive,
    )


@pytest.fixture(scope="session")
def project_root():
    """Return the project root directory."""
    return PROJECT_ROOT


@pytest.fixture
def off_config():
    """Linear sequencing."""
    return AdaptiveConfiguration(mode=AdaptiveMode.OFF)


@pytest.fixture
def full_config():
    """Adaptive sequencing with the default 70% threshold."""
    return AdaptiveConfiguration(mode=AdaptiveMode.FULL)


@pytest.fixture
def linear_catalog():
    """Five required topic units, supplied out of order."""
    return [
        _make_unit("lu-3", 3, title="LU 3"),
        _make_unit("lu-1", 1, title="LU 1"),
        _make_unit("lu-5", 5, title="LU 5"),
        _make_unit("lu-2", 2, title="LU 2"),
        _make_unit("lu-4", 4, title="LU 4"),
    ]


@pytest.fixture
def adaptive_catalog():
    """Intro, two optional units teaching node-a/node-b, a graded quiz, a wrap-up."""
    return [
        _make_unit("intro", 1, title="Intro"),
        _make_unit("opt-a", 2, title="Optional A", is_required=False, nodes=("node-a",)),
        _make_unit("opt-b", 3, title="Optional B", is_required=False, nodes=("node-b",)),
        _make_unit("quiz", 4, title="Quiz", category=UnitCategory.GRADED),
        _make_unit("wrap", 5, title="Wrap-up"),
    ]


@pytest.fixture
def make_unit():
    """Factory for learning units."""
    return _make_unit
