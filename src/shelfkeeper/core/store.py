"""In-memory catalog of books and series, persisted on every change."""

from __future__ import annotations

from pathlib import Path

import structlog

from .locking import ReadWriteLock
from .models import Book, BookSeries, BookUpdate, LibraryData, Statistics, fold
from .stats import compute_statistics
from .storage import default_library_path, load_library, save_library

log = structlog.get_logger()


class DuplicateBookError(Exception):
    """Another book already uses the (author, title) key."""

    def __init__(self, author: str, title: str) -> None:
        super().__init__(f"Book already exists: {author} / {title}")
        self.author = author
        self.title = title


class CatalogStore:
    """Owns the book list and the series built from it.

    Series members are the store's own Book objects, so per-series totals
    and read counts follow every edit. Every method that changes the catalog
    rewrites the library file before returning and raises PersistenceError
    when that fails; the in-memory change is kept.

    Not-found is reported as ``None`` or ``False``, never as an exception.
    """

    def __init__(self, path: Path | str | None = None) -> None:
        self.path = Path(path) if path is not None else default_library_path()
        self._lock = ReadWriteLock()
        self._books: list[Book] = []
        self._series: list[BookSeries] = []

        with self._lock.write():
            self._restore(load_library(self.path))

    # -- lookup helpers (caller holds the lock) --

    def _find_book(self, author: str, title: str) -> Book | None:
        for book in self._books:
            if book.matches(author, title):
                return book
        return None

    def _find_series(self, name: str) -> BookSeries | None:
        for series in self._series:
            if fold(series.name) == fold(name):
                return series
        return None

    def _attach(self, book: Book) -> None:
        """Add ``book`` to the series it names, creating the series if needed."""
        if not book.series:
            return
        series = self._find_series(book.series)
        if series is None:
            series = BookSeries(name=book.series)
            self._series.append(series)
            log.debug("series_created", series=series.name)
        if series.has_member(book):
            return
        series.books.append(book)

    def _detach(self, book: Book) -> None:
        """Remove ``book`` from its series, dropping the series once empty."""
        if not book.series:
            return
        series = self._find_series(book.series)
        if series is None:
            return
        series.books = [member for member in series.books if member is not book]
        if not series.books:
            self._series.remove(series)
            log.debug("series_removed", series=series.name)

    def _restore(self, data: LibraryData) -> None:
        """Rebuild series membership from a loaded document.

        Members are matched to books by key in file order. Members with no
        matching book are dropped and books missing from their series are
        appended to it.
        """
        self._books = data.books
        self._series = []
        for stored in data.series:
            series = self._find_series(stored.name)
            is_new = series is None
            if is_new:
                series = BookSeries(name=stored.name)
            for member in stored.books:
                book = self._find_book(member.author, member.title)
                if book is None or fold(book.series) != fold(stored.name):
                    log.warning(
                        "series_member_dropped",
                        series=stored.name,
                        author=member.author,
                        title=member.title,
                    )
                    continue
                if not series.has_member(book):
                    series.books.append(book)
            if is_new and series.books:
                self._series.append(series)
        for book in self._books:
            self._attach(book)

    def _snapshot(self) -> LibraryData:
        return LibraryData(books=self._books, series=self._series)

    def _save(self) -> None:
        save_library(self.path, self._snapshot())

    # -- reads --

    def list_books(self) -> list[Book]:
        with self._lock.read():
            return [b.copy() for b in self._books]

    def count_books(self) -> int:
        with self._lock.read():
            return len(self._books)

    def get_book(self, author: str, title: str) -> Book | None:
        with self._lock.read():
            book = self._find_book(author, title)
            return book.copy() if book else None

    def get_quotes(self, author: str, title: str) -> list[str] | None:
        with self._lock.read():
            book = self._find_book(author, title)
            return list(book.quotes) if book else None

    def get_series(self) -> list[BookSeries]:
        with self._lock.read():
            return [s.copy() for s in self._series]

    def get_statistics(self) -> Statistics:
        with self._lock.read():
            return compute_statistics(self._books, self._series)

    def export(self) -> dict:
        """Full library document, identical to what is written to disk."""
        with self._lock.read():
            return self._snapshot().to_dict()

    # -- mutations --

    def add_book(self, book: Book) -> Book:
        """Append a new book and join it to its series.

        Raises ValueError for an empty author or title and DuplicateBookError
        when the key is taken.
        """
        if not book.author or not book.title:
            raise ValueError("author and title are required")

        with self._lock.write():
            if self._find_book(book.author, book.title) is not None:
                raise DuplicateBookError(book.author, book.title)
            stored = book.copy()
            self._books.append(stored)
            self._attach(stored)
            log.info("book_added", author=stored.author, title=stored.title, series=stored.series)
            self._save()
            return stored.copy()

    def edit_book(self, old_author: str, old_title: str, update: BookUpdate) -> Book | None:
        """Apply a partial update. Returns the edited book or None if absent.

        The read flag and quotes are never changed here.
        """
        with self._lock.write():
            book = self._find_book(old_author, old_title)
            if book is None:
                return None

            new_author = update.author or book.author
            new_title = update.title or book.title
            clash = self._find_book(new_author, new_title)
            if clash is not None and clash is not book:
                raise DuplicateBookError(new_author, new_title)

            moved = False
            if update.series:
                if fold(update.series) != fold(book.series):
                    self._detach(book)
                    moved = True
                book.series = update.series
                book.series_order = update.series_order
            elif book.series:
                self._detach(book)
                book.series = ""
                book.series_order = 0

            book.author = new_author
            book.title = new_title
            if update.genre:
                book.genre = update.genre
            if update.year is not None and update.year >= 0:
                book.year = update.year

            if moved:
                self._attach(book)

            log.info(
                "book_edited",
                old_author=old_author,
                old_title=old_title,
                author=book.author,
                title=book.title,
                series=book.series,
            )
            self._save()
            return book.copy()

    def remove_book(self, author: str, title: str) -> bool:
        with self._lock.write():
            book = self._find_book(author, title)
            if book is None:
                return False
            self._detach(book)
            self._books = [b for b in self._books if b is not book]
            log.info("book_removed", author=book.author, title=book.title)
            self._save()
            return True

    def add_quote(self, author: str, title: str, quote: str) -> bool:
        with self._lock.write():
            book = self._find_book(author, title)
            if book is None:
                return False
            book.quotes.append(quote)
            log.info("quote_added", author=book.author, title=book.title, quotes=len(book.quotes))
            self._save()
            return True

    def set_read(self, author: str, title: str, read: bool) -> bool:
        """Set the read flag; the book's series count follows it."""
        with self._lock.write():
            book = self._find_book(author, title)
            if book is None:
                return False
            if book.read != read:
                log.info("read_status_changed", author=book.author, title=book.title, read=read)
            book.read = read
            self._save()
            return True
