"""FastAPI application exposing a built GIR model.

This module provides read-only REST access to the entities extracted from a
GObject-Introspection document, the registry based cross-reference lookups
(class ancestry), build diagnostics, and the emitter output.

Quick start (run the server)::

    GIR_FILE=/usr/share/gir-1.0/Gtk-3.0.gir uvicorn gir_schema_api.run_server:app --reload

Core endpoints (REST):

    GET  /health                      Basic health probe
    GET  /metadata                    Namespace, prefixes, counts + ETag
    GET  /types?kind=class            Kept top-level entities (optionally by kind)
    GET  /types/{name}                One entity, fully serialized
    GET  /classes/{name}/ancestry     Parent chain resolved through the registry
    GET  /search?query=Widget         Case-insensitive name search
    GET  /diagnostics                 Non-fatal build problems
    GET  /emit                        Emitter output for the loaded document
    POST /emit                        Emitter output for a posted document

Example: conditional metadata request::

    curl -i http://localhost:8000/metadata
    curl -i http://localhost:8000/metadata -H "If-None-Match: \"<etag-from-first-call>\""

Configuration (environment):
    * ``GIR_FILE`` – document to serve. When missing or unreadable a small
      embedded document is served instead (``source == "fallback"``).
    * ``GIR_BUILDER_CONFIG`` – ``key=value`` pairs for
      :class:`~gir_schema_api.gir_parser.BuilderConfig`.

Error handling:
    * 404 and 500 are wrapped with JSON payloads for more consistent client UX.
"""

from __future__ import annotations

import hashlib
import logging
import os
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Response
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, Field

from .adapter import GIRDocument
from .cache import CachedGIRParser, builder_config_from_key
from .emitter import Emitter
from .gir_parser import BuilderConfig, GIRModel, parse_gir_buffer
from .models import Class, entity_to_dict

logger = logging.getLogger(__name__)

API_VERSION = "0.1.0"

FALLBACK_GIR = """<?xml version="1.0"?>
<repository version="1.2"
            xmlns="http://www.gtk.org/introspection/core/1.0"
            xmlns:c="http://www.gtk.org/introspection/c/1.0"
            xmlns:glib="http://www.gtk.org/introspection/glib/1.0">
  <namespace name="Fallback" version="1.0"
             c:identifier-prefixes="Fallback" c:symbol-prefixes="fallback">
    <alias name="Id" c:type="FallbackId">
      <type name="guint32" c:type="guint32"/>
    </alias>
    <class name="Object" c:type="FallbackObject" glib:type-name="FallbackObject"
           glib:get-type="fallback_object_get_type" c:symbol-prefix="object"/>
  </namespace>
</repository>
"""


app = FastAPI(
    title="GIR Schema API",
    version=API_VERSION,
    description="API for browsing entities built from GObject-Introspection documents",
    docs_url="/docs",
    redoc_url="/redoc",
)


class TypeSummary(BaseModel):
    """Listing entry for a top-level entity."""

    name: str = Field(..., description="Entity name without namespace")
    kind: str = Field(..., description="Entity kind tag")
    deprecated: bool = Field(False, description="Whether the entity is deprecated")


class AncestryResponse(BaseModel):
    """Parent chain of a class, nearest parent first."""

    name: str = Field(..., description="Class name")
    parent: str = Field("", description="Declared parent name")
    ancestry: List[str] = Field(
        default_factory=list, description="Resolved ancestors, nearest first"
    )
    complete: bool = Field(
        ..., description="False when the chain stops at an unregistered parent"
    )


class DiagnosticEntry(BaseModel):
    kind: str
    message: str
    name: Optional[str] = None
    index: Optional[int] = None


class EmitRequest(BaseModel):
    """Request model for emitting a posted document."""

    document: str = Field(..., min_length=1, description="GIR document text")


class EmitResponse(BaseModel):
    lines: List[str] = Field(..., description="Rendered lines in node order")
    unhandled: int = Field(..., description="Number of unhandled nodes")


class ModelRepository:
    """Access the model built from the configured GIR document.

    Design notes:
        * Builds go through :class:`CachedGIRParser`, so repeated repository
          construction for an unchanged file reuses the model.
        * Resilient startup: a missing or unreadable document falls back to an
          embedded minimal document so health checks still respond.
    """

    def __init__(
        self,
        gir_path: Optional[Path] = None,
        builder_config: Optional[BuilderConfig] = None,
    ) -> None:
        self.builder_config = builder_config or BuilderConfig()
        self.gir_path = Path(gir_path) if gir_path else None
        self.cached_parser = CachedGIRParser(builder_config=self.builder_config)

        model: Optional[GIRModel] = None
        if self.gir_path is not None:
            model = self.cached_parser.parse(self.gir_path)
            if model is None:
                logger.warning("Falling back to embedded document: %s unusable", self.gir_path)
        if model is None:
            self.gir_path = None
            model = parse_gir_buffer(FALLBACK_GIR, config=self.builder_config)
        if model is None:
            raise RuntimeError("Embedded fallback document could not be built")
        self.model = model
        self.metadata: Dict[str, Any] = dict(model.summary())
        self.metadata.update(
            {
                "source": str(self.gir_path) if self.gir_path else "fallback",
                "generated_at": datetime.now().isoformat(),
                "builder_config": {
                    "default_prefix": self.builder_config.default_prefix,
                    "prefix_delimiter": self.builder_config.prefix_delimiter,
                    "blacklist": sorted(self.builder_config.blacklist),
                    "error_type_name": self.builder_config.error_type_name,
                },
            }
        )
        self._calculate_etag()

    def _calculate_etag(self) -> None:
        """Compute a weak ETag using builder configuration + source."""
        content = f"{self.builder_config!r}-{self.metadata.get('source', '')}"
        if self.gir_path is not None:
            content += "-" + self.cached_parser.cache.etag(
                self.cached_parser.cache_key(self.gir_path)
            )
        self.etag = f'"{hashlib.md5(content.encode()).hexdigest()}"'
        self.last_modified = datetime.now()

    def document(self) -> Optional[GIRDocument]:
        if self.gir_path is not None:
            return GIRDocument.from_file(self.gir_path)
        return GIRDocument.from_buffer(FALLBACK_GIR)

    def find(self, name: str):
        return self.model.find(name)


@lru_cache(maxsize=1)
def get_repository() -> ModelRepository:
    gir_file = os.getenv("GIR_FILE")
    return ModelRepository(
        gir_path=Path(gir_file) if gir_file else None,
        builder_config=builder_config_from_key(os.getenv("GIR_BUILDER_CONFIG")),
    )


@app.get("/health")
def health(repo: ModelRepository = Depends(get_repository)) -> Dict[str, str]:
    """Health check endpoint."""
    return {
        "status": "healthy",
        "namespace": repo.model.prefix,
        "source": str(repo.metadata.get("source")),
    }


@app.get("/metadata")
def metadata(
    response: Response,
    if_none_match: Optional[str] = Header(None),
    repo: ModelRepository = Depends(get_repository),
) -> Dict[str, object]:
    """Namespace, prefixes and per-category counts with ETag support."""
    if if_none_match and if_none_match == repo.etag:
        response.status_code = 304
        return {}

    response.headers["ETag"] = repo.etag
    response.headers["Last-Modified"] = repo.last_modified.strftime(
        "%a, %d %b %Y %H:%M:%S GMT"
    )
    response.headers["Cache-Control"] = "public, max-age=3600"
    return repo.metadata


@app.get("/types")
def types(
    kind: Optional[str] = Query(None, description="Filter by kind tag (alias, class, ...)"),
    repo: ModelRepository = Depends(get_repository),
) -> Dict[str, List[TypeSummary]]:
    """List kept top-level entities in extraction order."""
    entries = [
        TypeSummary(
            name=entity.name,
            kind=entity.kind.value,
            deprecated=entity.deprecated is not None,
        )
        for entity in repo.model.iter_types()
        if kind is None or entity.kind.value == kind
    ]
    return {"types": entries}


@app.get("/types/{name}")
def type_detail(
    name: str, repo: ModelRepository = Depends(get_repository)
) -> Dict[str, Any]:
    """Return one entity with all nested methods and arguments."""
    entity = repo.find(name)
    if entity is None:
        raise HTTPException(status_code=404, detail=f"Type not found: {name}")
    return {"type": entity_to_dict(entity)}


@app.get("/classes/{name}/ancestry")
def class_ancestry(
    name: str, repo: ModelRepository = Depends(get_repository)
) -> AncestryResponse:
    """Resolve a class's parent chain through the type registry."""
    entity = repo.find(name)
    if not isinstance(entity, Class):
        raise HTTPException(status_code=404, detail=f"Class not found: {name}")
    chain = repo.model.registry.ancestry(entity)
    last = chain[-1] if chain else entity
    complete = not (isinstance(last, Class) and last.parent)
    return AncestryResponse(
        name=entity.name,
        parent=entity.parent,
        ancestry=[record.name for record in chain],
        complete=complete,
    )


@app.get("/search")
def search(
    query: str = Query(..., min_length=2, description="Case-insensitive name contains search"),
    kind: Optional[str] = Query(None, description="Filter by kind tag"),
    limit: int = Query(100, ge=1, le=500, description="Maximum number of results"),
    repo: ModelRepository = Depends(get_repository),
) -> Dict[str, object]:
    """Search entities by partial name.

    Example::

        curl "http://localhost:8000/search?query=button&kind=class" | jq .results
    """
    lower = query.lower()
    matches = []
    for entity in repo.model.iter_types():
        if kind and entity.kind.value != kind:
            continue
        if lower in entity.name.lower():
            matches.append({"name": entity.name, "kind": entity.kind.value})
        if len(matches) >= limit:
            break
    return {"query": query, "results": matches, "total": len(matches)}


@app.get("/diagnostics")
def diagnostics(
    repo: ModelRepository = Depends(get_repository),
) -> Dict[str, List[DiagnosticEntry]]:
    """Non-fatal problems recorded while building the model."""
    return {
        "diagnostics": [
            DiagnosticEntry(
                kind=diag.kind.value, message=diag.message, name=diag.name, index=diag.index
            )
            for diag in repo.model.diagnostics
        ]
    }


@app.get("/emit", response_class=PlainTextResponse)
def emit(repo: ModelRepository = Depends(get_repository)) -> str:
    """Emitter output for the loaded document."""
    document = repo.document()
    if document is None:
        raise HTTPException(status_code=404, detail="Source document is no longer readable")
    return Emitter().emit(document)


@app.post("/emit")
def emit_posted(request: EmitRequest) -> EmitResponse:
    """Run the emitter over a posted document."""
    document = GIRDocument.from_buffer(request.document)
    if document is None:
        raise HTTPException(status_code=422, detail="Document is not well-formed XML")
    emitter = Emitter()
    lines = list(emitter.lines(document.tree()))
    return EmitResponse(lines=lines, unhandled=emitter.unhandled)


@app.exception_handler(404)
async def not_found_handler(request, exc):
    """Custom 404 handler with more helpful error messages."""
    return JSONResponse(
        status_code=404,
        content={
            "error": "Not Found",
            "detail": (
                str(exc.detail)
                if hasattr(exc, "detail")
                else "The requested resource was not found"
            ),
            "path": str(request.url.path),
        },
    )


@app.exception_handler(500)
async def internal_error_handler(request, exc):
    """Custom 500 handler for internal errors."""
    logger.error("Unhandled error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": "Internal Server Error",
            "detail": "An unexpected error occurred processing your request",
        },
    )
