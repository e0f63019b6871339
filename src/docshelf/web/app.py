"""FastAPI application exposing the library as a local JSON API."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, List

from fastapi import FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from docshelf.errors import DocumentNotFoundError
from docshelf.library import LibraryService
from docshelf.models import DocumentRecord

LOGGER = logging.getLogger(__name__)


class IngestPayload(BaseModel):
    paths: List[str]
    process: bool = True


class SearchPayload(BaseModel):
    query: str
    top_k: int = 10
    documents: List[str] | None = None


class ComparePayload(BaseModel):
    first: str
    second: str


def _document_json(record: DocumentRecord) -> dict[str, Any]:
    return {
        "id": record.id,
        "title": record.display_name,
        "emoji": record.display_emoji,
        "category": record.category,
        "tags": record.tags,
        "confidence": record.confidence,
        "status": record.status.value,
        "original_filename": record.original_filename,
        "file_size": record.file_size,
        "file_hash": record.file_hash,
        "created_at": record.created_at.isoformat(),
    }


def _service(request: Request) -> LibraryService:
    return request.app.state.service


def _get_or_404(service: LibraryService, doc_id: str) -> DocumentRecord:
    try:
        return service.get(doc_id)
    except DocumentNotFoundError as exc:
        raise HTTPException(status_code=404, detail=str(exc)) from exc


def create_app(service: LibraryService) -> FastAPI:
    """Build the API around an already constructed library service."""
    app = FastAPI(title="DocShelf", version="0.1.0")
    app.state.service = service
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/documents")
    def list_documents(request: Request) -> dict[str, Any]:
        lib = _service(request)
        return {
            "documents": [_document_json(record) for record in lib.documents()],
            "stats": lib.store.get_stats(),
        }

    @app.post("/ingest")
    def ingest(payload: IngestPayload, request: Request) -> dict[str, Any]:
        paths = [Path(p.strip()).expanduser() for p in payload.paths if p.strip()]
        if not paths:
            raise HTTPException(status_code=400, detail="No path provided")
        missing = [str(path) for path in paths if not path.exists()]
        if missing:
            raise HTTPException(status_code=404, detail=f"Path not found: {', '.join(missing)}")

        records = _service(request).ingest(paths, process=payload.process)
        return {"status": "ok", "documents": [_document_json(record) for record in records]}

    @app.post("/process")
    def process_pending(request: Request) -> dict[str, Any]:
        result = _service(request).process_pending()
        return {
            "total": result.total,
            "done": result.done,
            "errors": result.errors,
            "cancelled": result.cancelled,
            "progress": result.progress,
        }

    @app.post("/process/cancel")
    def cancel_processing(request: Request) -> dict[str, str]:
        _service(request).cancel_processing()
        return {"status": "ok"}

    @app.post("/documents/{doc_id}/reanalyze")
    def reanalyze(doc_id: str, request: Request) -> dict[str, Any]:
        lib = _service(request)
        _get_or_404(lib, doc_id)
        lib.reanalyze(doc_id)
        return _document_json(lib.get(doc_id))

    @app.post("/documents/{doc_id}/rename")
    def rename(doc_id: str, request: Request) -> dict[str, Any]:
        lib = _service(request)
        _get_or_404(lib, doc_id)
        outcome = lib.rename_to_title(doc_id)
        if not outcome.ok:
            raise HTTPException(status_code=409, detail=outcome.reason)
        return _document_json(lib.get(doc_id))

    @app.delete("/documents/{doc_id}")
    def delete_document(doc_id: str, request: Request) -> dict[str, Any]:
        lib = _service(request)
        record = _get_or_404(lib, doc_id)
        lib.delete_document(record)
        return {"status": "ok", "deleted_id": doc_id}

    @app.post("/search")
    def search(payload: SearchPayload, request: Request) -> dict[str, Any]:
        query = payload.query.strip()
        if not query:
            raise HTTPException(status_code=400, detail="Empty query")
        top_k = max(1, min(payload.top_k, 50))
        results = _service(request).search(query, top_k=top_k, scope=payload.documents)
        return {"results": results}

    @app.post("/compare")
    def compare(payload: ComparePayload, request: Request) -> dict[str, Any]:
        lib = _service(request)
        _get_or_404(lib, payload.first)
        _get_or_404(lib, payload.second)
        return {"score": lib.compare(payload.first, payload.second)}

    @app.get("/duplicates")
    def scan_duplicates(request: Request) -> dict[str, Any]:
        result = _service(request).scan_duplicates()
        return {
            "count": result.count,
            "report": result.report,
            "duplicates": [record.id for record in result.duplicates],
            "highlight": sorted(result.highlight_ids),
            "groups": result.groups,
            "failures": [
                {"id": failure.item_id, "operation": failure.operation, "reason": failure.reason}
                for failure in result.failures
            ],
        }

    @app.post("/duplicates/clean")
    def clean_duplicates(request: Request) -> dict[str, Any]:
        return {"status": "ok", "removed": _service(request).clean_duplicates()}

    @app.post("/prune")
    def prune(request: Request) -> dict[str, Any]:
        outcome = _service(request).prune()
        return {"status": "ok", **outcome.value}

    return app
