from __future__ import annotations

from pathlib import Path

import pytest

from patternwiz.catalogue import Catalogue, load_catalogue
from patternwiz.pipeline import AnalysisPipeline
from tests._fixtures.clock import fixed_clock
from tests._fixtures.repo_builder import RepoBuilder


@pytest.fixture
def repo_builder(tmp_path: Path) -> RepoBuilder:
    """Provide a reusable project builder rooted at the pytest tmp_path."""
    return RepoBuilder(tmp_path)


@pytest.fixture(scope="session")
def catalogue() -> Catalogue:
    return load_catalogue()


@pytest.fixture
def pipeline() -> AnalysisPipeline:
    """Pipeline with a fixed clock and no plugin rules."""
    return AnalysisPipeline(clock=fixed_clock, plugin_rules=[])
