"""FastAPI web application for Shelfkeeper."""

from __future__ import annotations

import os
import time
from datetime import datetime, timezone

from dotenv import load_dotenv

import structlog
import uvicorn
from fastapi import APIRouter, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, Response
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from ..core.models import Book, BookUpdate
from ..core.storage import PersistenceError
from ..core.store import CatalogStore, DuplicateBookError

load_dotenv()

log = structlog.get_logger()

VERSION = "1.0.0"
MIN_YEAR = 0
MAX_YEAR = 9999


class AddBookRequest(BaseModel):
    author: str
    title: str
    genre: str
    year: int = Field(default=0, ge=MIN_YEAR, le=MAX_YEAR)
    series: str = ""
    series_order: int = 0


class EditBookRequest(BaseModel):
    author: str = ""
    title: str = ""
    genre: str = ""
    year: int | None = Field(default=None, ge=MIN_YEAR, le=MAX_YEAR)
    series: str = ""
    series_order: int = 0


class QuoteRequest(BaseModel):
    quote: str


class MarkReadRequest(BaseModel):
    read: bool


def _error(message: str, status_code: int) -> JSONResponse:
    return JSONResponse({"error": message}, status_code=status_code)


def _not_found() -> JSONResponse:
    return _error("Book not found", 404)


def _key(author: str, title: str) -> tuple[str, str]:
    return author.strip(), title.strip()


def create_app(store: CatalogStore | None = None) -> FastAPI:
    """Build the application around ``store`` (loaded from LIBRARY_FILE if omitted)."""
    if store is None:
        store = CatalogStore()

    app = FastAPI(title="My Library API", version=VERSION, docs_url=None, redoc_url=None)
    app.state.store = store

    @app.middleware("http")
    async def request_log(request: Request, call_next):
        started = time.perf_counter()
        response = await call_next(request)
        log.info(
            "request",
            method=request.method,
            path=request.url.path,
            status=response.status_code,
            duration_ms=round((time.perf_counter() - started) * 1000, 2),
        )
        return response

    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["X-Frame-Options"] = "DENY"
        response.headers["Referrer-Policy"] = "strict-origin-when-cross-origin"
        return response

    @app.exception_handler(RequestValidationError)
    async def validation_error(request: Request, exc: RequestValidationError):
        return JSONResponse(
            {"error": "Invalid request", "details": jsonable_encoder(exc.errors())},
            status_code=400,
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == 404:
            return _error("Endpoint not found", 404)
        return _error(str(exc.detail), exc.status_code)

    @app.exception_handler(PersistenceError)
    async def persistence_error(request: Request, exc: PersistenceError):
        log.error("persistence_failed", path=request.url.path, error=str(exc))
        return _error("Failed to save library", 500)

    @app.exception_handler(DuplicateBookError)
    async def duplicate_book(request: Request, exc: DuplicateBookError):
        return _error("Book already exists", 409)

    @app.exception_handler(Exception)
    async def unhandled_error(request: Request, exc: Exception):
        log.exception("unhandled_error", path=request.url.path)
        return _error("Internal server error", 500)

    @app.get("/")
    def index():
        return {"message": "My Library API is running", "version": VERSION}

    @app.get("/health")
    def health():
        return {
            "status": "ok",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "version": VERSION,
            "environment": os.environ.get("ENV", "dev"),
            "books": store.count_books(),
        }

    api = APIRouter(prefix="/api/v1")

    @api.get("/books")
    def list_books():
        books = store.list_books()
        return {"books": [b.to_dict() for b in books], "count": len(books)}

    @api.get("/books/{author}/{title}")
    def get_book(author: str, title: str):
        book = store.get_book(*_key(author, title))
        if book is None:
            return _not_found()
        return book.to_dict()

    @api.post("/books")
    def add_book(req: AddBookRequest):
        author, title, genre = req.author.strip(), req.title.strip(), req.genre.strip()
        if not author or not title or not genre:
            return _error("Author, title, and genre are required", 400)

        book = Book(
            author=author,
            title=title,
            genre=genre,
            year=req.year,
            series=req.series.strip(),
            series_order=req.series_order,
        )
        created = store.add_book(book)
        return JSONResponse(created.to_dict(), status_code=201)

    @api.put("/books/{author}/{title}")
    def edit_book(author: str, title: str, req: EditBookRequest):
        update = BookUpdate(
            author=req.author.strip(),
            title=req.title.strip(),
            genre=req.genre.strip(),
            year=req.year,
            series=req.series.strip(),
            series_order=req.series_order,
        )
        updated = store.edit_book(*_key(author, title), update)
        if updated is None:
            return _not_found()
        return updated.to_dict()

    @api.delete("/books/{author}/{title}")
    def remove_book(author: str, title: str):
        if not store.remove_book(*_key(author, title)):
            return _not_found()
        return Response(status_code=204)

    @api.post("/quotes/{author}/{title}")
    def add_quote(author: str, title: str, req: QuoteRequest):
        quote = req.quote.strip()
        if not quote:
            return _error("Quote is required", 400)
        if not store.add_quote(*_key(author, title), quote):
            return _not_found()
        return {"message": "Quote added"}

    @api.get("/quotes/{author}/{title}")
    def get_quotes(author: str, title: str):
        quotes = store.get_quotes(*_key(author, title))
        if quotes is None:
            return _not_found()
        return {"quotes": quotes}

    @api.post("/read/{author}/{title}")
    def mark_as_read(author: str, title: str, req: MarkReadRequest):
        if not store.set_read(*_key(author, title), req.read):
            return _not_found()
        return {"message": "Read status updated"}

    @api.get("/stats")
    def statistics():
        return store.get_statistics().to_dict()

    @api.get("/series")
    def series():
        return [s.to_dict() for s in store.get_series()]

    @api.get("/export")
    def export():
        return JSONResponse(
            store.export(),
            headers={"Content-Disposition": 'attachment; filename="library.json"'},
        )

    app.include_router(api)
    return app


app = create_app()


def main():
    port = int(os.environ.get("PORT", "3000"))
    host = os.environ.get("HOST", "0.0.0.0")
    is_dev = os.environ.get("ENV", "dev") == "dev"
    log.info("server_starting", host=host, port=port)
    uvicorn.run(
        "shelfkeeper.web.app:app",
        host=host,
        port=port,
        reload=is_dev,
    )
