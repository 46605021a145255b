"""Aggregate reading statistics."""

from __future__ import annotations

from collections import Counter

from .models import Book, BookSeries, SeriesStat, Statistics


def _percentage(part: int, whole: int) -> float:
    if whole <= 0:
        return 0.0
    return part / whole * 100


def compute_statistics(books: list[Book], series: list[BookSeries]) -> Statistics:
    """Summarize read progress across the catalog and per series."""
    read_books = sum(1 for b in books if b.read)
    stats = Statistics(
        total_books=len(books),
        read_books=read_books,
        read_percentage=_percentage(read_books, len(books)),
        books_by_genre=dict(Counter(b.genre for b in books)),
        books_by_author=dict(Counter(b.author for b in books)),
        total_series=len(series),
    )
    for s in series:
        stats.series_stats.append(
            SeriesStat(
                name=s.name,
                total_books=s.total,
                read_books=s.read,
                percentage=_percentage(s.read, s.total),
            )
        )
    return stats
