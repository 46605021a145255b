"""Data models for the library catalog."""

from __future__ import annotations

from dataclasses import dataclass, field, replace


def fold(value: str) -> str:
    """Case-insensitive comparison form of a name."""
    return value.casefold()


_MISSING = object()


def _typed(data: dict, name: str, kind: type, default=_MISSING):
    """Fetch ``data[name]`` and check its JSON type.

    Raises KeyError when a required field is absent and TypeError when the
    value has the wrong type. JSON booleans are not accepted as numbers.
    """
    if name not in data:
        if default is _MISSING:
            raise KeyError(name)
        return default
    value = data[name]
    if not isinstance(value, kind) or (kind is int and isinstance(value, bool)):
        raise TypeError(f"{name} must be {kind.__name__}, got {type(value).__name__}")
    return value


@dataclass
class Book:
    author: str
    title: str
    genre: str = ""
    year: int = 0
    read: bool = False
    quotes: list[str] = field(default_factory=list)
    series: str = ""
    series_order: int = 0

    @property
    def key(self) -> tuple[str, str]:
        return fold(self.author), fold(self.title)

    def matches(self, author: str, title: str) -> bool:
        return self.key == (fold(author), fold(title))

    def copy(self) -> Book:
        return replace(self, quotes=list(self.quotes))

    def to_dict(self) -> dict:
        data: dict = {
            "title": self.title,
            "author": self.author,
            "genre": self.genre,
            "year": self.year,
            "read": self.read,
            "quotes": list(self.quotes),
        }
        # Empty series fields are left out of the document entirely
        if self.series:
            data["series"] = self.series
        if self.series_order:
            data["series_order"] = self.series_order
        return data

    @classmethod
    def from_dict(cls, data: dict) -> Book:
        """Build a Book from its document form.

        Raises KeyError, TypeError or ValueError when the entry is malformed.
        """
        if not isinstance(data, dict):
            raise TypeError("book entry must be an object")
        quotes = data.get("quotes") or []
        if not isinstance(quotes, list) or not all(isinstance(q, str) for q in quotes):
            raise TypeError("quotes must be a list of strings")
        return cls(
            author=_typed(data, "author", str),
            title=_typed(data, "title", str),
            genre=_typed(data, "genre", str, ""),
            year=_typed(data, "year", int, 0),
            read=_typed(data, "read", bool, False),
            quotes=list(quotes),
            series=_typed(data, "series", str, ""),
            series_order=_typed(data, "series_order", int, 0),
        )


@dataclass
class BookUpdate:
    """Partial update applied by an edit.

    Empty strings leave author, title and genre unchanged; ``year=None``
    leaves the year unchanged. An empty series detaches the book from its
    current series.
    """

    author: str = ""
    title: str = ""
    genre: str = ""
    year: int | None = None
    series: str = ""
    series_order: int = 0


@dataclass
class BookSeries:
    """Books sharing a series name.

    Inside the store ``books`` holds the catalog's own Book objects, so
    ``total`` and ``read`` always reflect the members' current state.
    """

    name: str
    books: list[Book] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.books)

    @property
    def read(self) -> int:
        return sum(1 for b in self.books if b.read)

    def has_member(self, book: Book) -> bool:
        return any(member is book for member in self.books)

    def copy(self) -> BookSeries:
        return BookSeries(name=self.name, books=[b.copy() for b in self.books])

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "books": [b.to_dict() for b in self.books],
            "total": self.total,
            "read": self.read,
        }

    @classmethod
    def from_dict(cls, data: dict) -> BookSeries:
        if not isinstance(data, dict):
            raise TypeError("series entry must be an object")
        books = data.get("books") or []
        if not isinstance(books, list):
            raise TypeError("series books must be a list")
        return cls(name=_typed(data, "name", str), books=[Book.from_dict(b) for b in books])


@dataclass
class LibraryData:
    """The whole catalog as persisted: books plus series."""

    books: list[Book] = field(default_factory=list)
    series: list[BookSeries] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "books": [b.to_dict() for b in self.books],
            "series": [s.to_dict() for s in self.series],
        }

    @classmethod
    def from_dict(cls, data: dict) -> LibraryData:
        if not isinstance(data, dict):
            raise TypeError("library document must be an object")
        books = data.get("books") or []
        series = data.get("series") or []
        if not isinstance(books, list) or not isinstance(series, list):
            raise TypeError("books and series must be lists")
        return cls(
            books=[Book.from_dict(b) for b in books],
            series=[BookSeries.from_dict(s) for s in series],
        )


@dataclass
class SeriesStat:
    name: str
    total_books: int = 0
    read_books: int = 0
    percentage: float = 0.0

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "total_books": self.total_books,
            "read_books": self.read_books,
            "percentage": self.percentage,
        }


@dataclass
class Statistics:
    total_books: int = 0
    read_books: int = 0
    read_percentage: float = 0.0
    books_by_genre: dict[str, int] = field(default_factory=dict)
    books_by_author: dict[str, int] = field(default_factory=dict)
    total_series: int = 0
    series_stats: list[SeriesStat] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "total_books": self.total_books,
            "read_books": self.read_books,
            "read_percentage": self.read_percentage,
            "books_by_genre": dict(self.books_by_genre),
            "books_by_author": dict(self.books_by_author),
            "total_series": self.total_series,
            "series_stats": [s.to_dict() for s in self.series_stats],
        }
