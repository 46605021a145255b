"""Tests for the library file format and load/save."""

import json
import os
import stat

import pytest

from shelfkeeper.core.models import Book, BookSeries, LibraryData
from shelfkeeper.core.storage import (
    CorruptLibraryError,
    PersistenceError,
    load_library,
    save_library,
)
from shelfkeeper.core.store import CatalogStore


EXISTING_FILE = {
    "books": [
        {
            "title": "T1",
            "author": "A",
            "genre": "G",
            "year": 2000,
            "read": True,
            "quotes": ["q1"],
            "series": "S",
            "series_order": 1,
        },
        {"title": "T2", "author": "B", "genre": "G", "year": 2001, "read": False, "quotes": []},
    ],
    "series": [
        {
            "name": "S",
            "books": [
                {
                    "title": "T1",
                    "author": "A",
                    "genre": "G",
                    "year": 2000,
                    "read": True,
                    "quotes": ["q1"],
                    "series": "S",
                    "series_order": 1,
                }
            ],
            "total": 1,
            "read": 1,
        }
    ],
}


class TestDocumentFormat:
    """Tests for field names in the persisted document."""

    def test_book_omits_empty_series_fields(self):
        data = Book(author="A", title="T").to_dict()
        assert "series" not in data
        assert "series_order" not in data
        assert data == {
            "title": "T",
            "author": "A",
            "genre": "",
            "year": 0,
            "read": False,
            "quotes": [],
        }

    def test_series_fields(self):
        series = BookSeries(name="S", books=[Book(author="A", title="T", read=True)])
        data = series.to_dict()
        assert data["name"] == "S"
        assert data["total"] == 1
        assert data["read"] == 1
        assert data["books"][0]["title"] == "T"

    def test_reads_existing_file(self, library_path):
        library_path.write_text(json.dumps(EXISTING_FILE))
        data = load_library(library_path)

        assert [b.title for b in data.books] == ["T1", "T2"]
        assert data.books[0].quotes == ["q1"]
        assert data.series[0].name == "S"

    def test_existing_file_round_trips(self, library_path):
        library_path.write_text(json.dumps(EXISTING_FILE))
        store = CatalogStore(library_path)
        assert store.export() == EXISTING_FILE


class TestLoad:
    """Tests for loading the library file."""

    def test_missing_file_is_empty(self, library_path):
        data = load_library(library_path)
        assert data.books == []
        assert data.series == []

    def test_malformed_json(self, library_path):
        library_path.write_text("{not json")
        with pytest.raises(CorruptLibraryError):
            load_library(library_path)

    def test_wrong_shape(self, library_path):
        library_path.write_text(json.dumps(["books"]))
        with pytest.raises(CorruptLibraryError):
            load_library(library_path)

    def test_book_without_author(self, library_path):
        library_path.write_text(json.dumps({"books": [{"title": "T"}], "series": []}))
        with pytest.raises(CorruptLibraryError):
            load_library(library_path)

    @pytest.mark.parametrize(
        "document",
        [
            {"books": [None], "series": []},
            {"books": ["T1"], "series": []},
            {"books": [], "series": ["S"]},
            {"books": [], "series": [None]},
        ],
    )
    def test_entry_not_an_object(self, library_path, document):
        library_path.write_text(json.dumps(document))
        with pytest.raises(CorruptLibraryError):
            load_library(library_path)

    @pytest.mark.parametrize(
        "entry",
        [
            {"author": "A", "title": "T", "read": "false"},
            {"author": None, "title": "T"},
            {"author": "A", "title": 7},
            {"author": "A", "title": "T", "year": "1999"},
            {"author": "A", "title": "T", "year": True},
            {"author": "A", "title": "T", "quotes": ["ok", 3]},
            {"author": "A", "title": "T", "series": ["S"]},
        ],
    )
    def test_book_field_wrong_type(self, library_path, entry):
        library_path.write_text(json.dumps({"books": [entry], "series": []}))
        with pytest.raises(CorruptLibraryError):
            load_library(library_path)

    def test_series_name_wrong_type(self, library_path):
        library_path.write_text(json.dumps({"books": [], "series": [{"name": 1, "books": []}]}))
        with pytest.raises(CorruptLibraryError):
            load_library(library_path)

    def test_store_refuses_corrupt_file(self, library_path):
        library_path.write_text("garbage")
        with pytest.raises(CorruptLibraryError):
            CatalogStore(library_path)


class TestSave:
    """Tests for writing the library file."""

    def test_save_then_load(self, library_path):
        data = LibraryData(
            books=[Book(author="A", title="T", genre="G", year=1999, quotes=["x", "y"])]
        )
        save_library(library_path, data)
        assert load_library(library_path) == data

    def test_save_is_human_readable(self, library_path):
        save_library(library_path, LibraryData(books=[Book(author="A", title="T")]))
        text = library_path.read_text()
        assert "\n  " in text

    def test_save_leaves_no_temp_files(self, library_path):
        save_library(library_path, LibraryData())
        save_library(library_path, LibraryData(books=[Book(author="A", title="T")]))
        assert [p.name for p in library_path.parent.iterdir()] == ["library.json"]

    def test_new_file_is_world_readable(self, library_path):
        save_library(library_path, LibraryData())
        assert stat.S_IMODE(library_path.stat().st_mode) == 0o644

    def test_save_keeps_existing_mode(self, library_path):
        library_path.write_text(json.dumps({"books": [], "series": []}))
        os.chmod(library_path, 0o640)
        save_library(library_path, LibraryData(books=[Book(author="A", title="T")]))
        assert stat.S_IMODE(library_path.stat().st_mode) == 0o640

    def test_save_into_unwritable_location(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("")
        with pytest.raises(PersistenceError):
            save_library(blocker / "library.json", LibraryData())


class TestReconcile:
    """Tests for rebuilding series membership on load."""

    def test_drops_members_without_books(self, library_path):
        document = {
            "books": [{"title": "T1", "author": "A", "series": "S"}],
            "series": [
                {
                    "name": "S",
                    "books": [
                        {"title": "T1", "author": "A", "series": "S"},
                        {"title": "Gone", "author": "A", "series": "S"},
                    ],
                    "total": 2,
                    "read": 0,
                }
            ],
        }
        library_path.write_text(json.dumps(document))
        store = CatalogStore(library_path)

        series = store.get_series()
        assert len(series) == 1
        assert [b.title for b in series[0].books] == ["T1"]

    def test_adds_books_missing_from_series(self, library_path):
        document = {
            "books": [
                {"title": "T1", "author": "A", "series": "S"},
                {"title": "T2", "author": "B", "series": "S", "read": True},
            ],
            "series": [],
        }
        library_path.write_text(json.dumps(document))
        store = CatalogStore(library_path)

        series = store.get_series()
        assert len(series) == 1
        assert (series[0].total, series[0].read) == (2, 1)
