"""Static HTML pages shown at the end of the browser link flow."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from fastapi import APIRouter, Query
from fastapi.responses import HTMLResponse

router = APIRouter(tags=["pages"])

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"

_STATUS_PAGES = {
    "success": "success.html",
    "error": "error.html",
    "access_denied": "access_denied.html",
}


@lru_cache(maxsize=None)
def _read_page(file_name: str) -> str:
    return (TEMPLATES_DIR / file_name).read_text(encoding="utf-8")


@router.get("/", response_class=HTMLResponse, summary="Link status page")
async def index(status: str | None = Query(None)) -> HTMLResponse:
    """Serve the page matching ``status``; anything else gets the index page."""
    file_name = _STATUS_PAGES.get(status or "", "index.html")
    return HTMLResponse(content=_read_page(file_name))
