"""
Unit tests for contract file discovery.
"""

import pytest

from pactkit.core.locator import ContractLocator

FILE_NAME = "SF-Consumer-VAIS-Producer.json"


@pytest.fixture
def tree(tmp_path):
    """repo/Consumer/pacts/<file> with a deep working directory below repo/."""
    repo = tmp_path / "repo"
    pact_dir = repo / "Consumer" / "pacts"
    pact_dir.mkdir(parents=True)
    (pact_dir / FILE_NAME).write_text("{}")
    start = repo / "Producer" / "bin" / "Debug" / "net8.0"
    start.mkdir(parents=True)
    return repo, start


class TestContractLocator:
    """Tests for ContractLocator."""

    def test_finds_file_in_parent(self, tree):
        """Test that a contract in an ancestor directory is found."""
        repo, start = tree
        found = ContractLocator().locate(FILE_NAME, start)
        assert found == (repo / "Consumer" / "pacts" / FILE_NAME).resolve()

    def test_nearest_directory_wins(self, tree):
        """Test that the closest ancestor match is preferred."""
        repo, start = tree
        near = repo / "Producer" / "pacts"
        near.mkdir()
        (near / FILE_NAME).write_text("{}")
        found = ContractLocator().locate(FILE_NAME, start)
        assert found == (near / FILE_NAME).resolve()

    def test_depth_limit(self, tree):
        """Test that the search stops at max_depth."""
        _, start = tree
        # net8.0, Debug, bin and Producer; repo/ is the fifth level
        assert ContractLocator(max_depth=4).locate(FILE_NAME, start) is None
        assert ContractLocator(max_depth=5).locate(FILE_NAME, start) is not None

    def test_fallback_when_not_found(self, tmp_path):
        """Test that the fallback path is returned when nothing matches."""
        fallback = tmp_path / "default.json"
        locator = ContractLocator(search_dirs=["pacts"], max_depth=1, fallback=fallback)
        assert locator.locate(FILE_NAME, tmp_path) == fallback

    def test_candidates_order(self, tmp_path):
        """Test that candidates are listed nearest first, in search-dir order."""
        locator = ContractLocator(search_dirs=["pacts", "Consumer/pacts"], max_depth=2)
        candidates = locator.candidates(FILE_NAME, tmp_path)
        base = tmp_path.resolve()
        assert candidates == [
            base / "pacts" / FILE_NAME,
            base / "Consumer/pacts" / FILE_NAME,
            base.parent / "pacts" / FILE_NAME,
            base.parent / "Consumer/pacts" / FILE_NAME,
        ]

    def test_invalid_depth(self):
        """Test that a non-positive depth is rejected."""
        with pytest.raises(ValueError):
            ContractLocator(max_depth=0)

    def test_from_settings(self, settings):
        """Test that the locator is configured from Settings."""
        configured = settings.model_copy(update={
            "pact_search_dirs": "contracts, pacts",
            "pact_search_depth": 3,
            "pact_fallback_path": "/tmp/fallback.json",
        })
        locator = ContractLocator.from_settings(configured)
        assert locator.search_dirs == ["contracts", "pacts"]
        assert locator.max_depth == 3
        assert str(locator.fallback) == "/tmp/fallback.json"
