"""Shared fixtures: a catalog store backed by a per-test library file."""

from pathlib import Path

import pytest

from shelfkeeper.core.models import Book
from shelfkeeper.core.store import CatalogStore


@pytest.fixture
def library_path(tmp_path: Path) -> Path:
    return tmp_path / "library.json"


@pytest.fixture
def store(library_path: Path) -> CatalogStore:
    return CatalogStore(library_path)


@pytest.fixture
def make_book():
    """Factory for books with sensible defaults."""

    def _make(author="Ursula K. Le Guin", title="A Wizard of Earthsea", **kwargs):
        kwargs.setdefault("genre", "Fantasy")
        kwargs.setdefault("year", 1968)
        return Book(author=author, title=title, **kwargs)

    return _make
