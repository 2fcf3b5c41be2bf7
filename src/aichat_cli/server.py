"""FastAPI server for browsing saved contexts."""

import logging

from fastapi import FastAPI, HTTPException, Query
from fastapi.responses import Response

from .config import get_contexts_dir
from .export import context_to_json, context_to_markdown
from .store import ContextStore

logger = logging.getLogger(__name__)

app = FastAPI(title="aichat-cli", version="0.1.0")

# Store cache (populated on first request)
_store: ContextStore | None = None


def _get_store() -> ContextStore:
    """Lazily initialize and cache the context store."""
    global _store
    if _store is None:
        _store = ContextStore(get_contexts_dir())
        logger.info("Serving contexts from %s", _store.base_dir)
    return _store


def _summary_to_dict(summary) -> dict:
    """Convert a ContextSummary dataclass to a JSON-serializable dict."""
    return {
        "name": summary.name,
        "message_count": summary.message_count,
        "created": summary.created_at.isoformat() if summary.created_at else None,
        "updated": summary.updated_at.isoformat() if summary.updated_at else None,
    }


def _load_or_404(name: str):
    context = _get_store().load(name)
    if context is None:
        raise HTTPException(status_code=404, detail=f"Context not found: {name}")
    return context


# ── Routes ───────────────────────────────────────────────────────


@app.get("/api/contexts")
async def get_contexts(
    search: str | None = Query(None, description="Search in context names"),
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
):
    """Return saved contexts, most recently updated first."""
    summaries = _get_store().list()

    if search:
        search_lower = search.lower()
        summaries = [s for s in summaries if search_lower in s.name.lower()]

    total = len(summaries)
    summaries = summaries[offset: offset + limit]

    return {
        "total": total,
        "contexts": [_summary_to_dict(s) for s in summaries],
    }


@app.get("/api/contexts/{name}")
async def get_context(name: str):
    """Return the full transcript of a context."""
    context = _load_or_404(name)
    return {
        "name": context.name,
        "created": context.created_at.isoformat() if context.created_at else None,
        "updated": context.updated_at.isoformat() if context.updated_at else None,
        "messages": [m.to_dict() for m in context.messages],
    }


@app.delete("/api/contexts/{name}")
async def delete_context(name: str):
    """Delete a context."""
    if not _get_store().delete(name):
        raise HTTPException(status_code=404, detail=f"Context not found: {name}")
    return {"deleted": True}


@app.get("/api/export/{name}")
async def export_context(
    name: str,
    format: str = Query("md", description="Export format: md or json"),
):
    """Export a context as Markdown or JSON."""
    context = _load_or_404(name)

    if format == "json":
        return Response(
            content=context_to_json(context),
            media_type="application/json",
            headers={"Content-Disposition": f'attachment; filename="{context.name}.json"'},
        )
    return Response(
        content=context_to_markdown(context),
        media_type="text/markdown",
        headers={"Content-Disposition": f'attachment; filename="{context.name}.md"'},
    )
