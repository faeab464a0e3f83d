"""Shared test fixtures for merkle-checkpoint."""

from pathlib import Path

import pytest
from click.testing import CliRunner


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Keep config overrides from the outer environment out of tests."""
    monkeypatch.delenv("MCKPT_COMBINER", raising=False)
    monkeypatch.delenv("MCKPT_LEAF_FORMAT", raising=False)


@pytest.fixture
def cli_runner():
    """Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def leaves_file() -> Path:
    """Path to the fixture file of ten SHA-1 hex digests, one per line."""
    return Path(__file__).parent / "fixtures" / "leaves" / "ten.txt"


@pytest.fixture
def digests(leaves_file: Path) -> list[str]:
    """The ten fixture digests as text, in file order."""
    return leaves_file.read_text().split()


@pytest.fixture
def write_leaves(tmp_path: Path):
    """Factory writing leaf signatures to a file in tmp_path, one per line."""

    def _write(name: str, leaves: list[str]) -> Path:
        path = tmp_path / name
        path.write_text("\n".join(leaves) + "\n")
        return path

    return _write
