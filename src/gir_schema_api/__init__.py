"""GIR Schema API
==================

Toolkit and service layer for turning **GObject-Introspection** (GIR) XML
documents into a typed entity model, resolving cross references through an
explicit type registry, and rendering documents with a context-stack emitter.

Key capabilities
----------------
- Build immutable entities (:mod:`~gir_schema_api.models`) for aliases,
  constants, enumerations, bitfields, records and classes with their methods
  and arguments.
- First-definition-wins :class:`~gir_schema_api.registry.TypeRegistry`, either
  per document or shared across dependent documents.
- Single-pass, table driven :class:`~gir_schema_api.emitter.Emitter` that
  renders Python stub text.
- In-process caching with TTL + file staleness detection.
- FastAPI endpoints and a command line interface.

Design principles
-----------------
1. **Never abort mid-document** – missing markup becomes
   :class:`~gir_schema_api.models.Unresolved` placeholders and diagnostics.
2. **Deterministic output** – fixed category order, document order within
   each category.
3. **Explicit scope** – registries are objects passed around, never globals.

Minimal quick start
-------------------
>>> from gir_schema_api import parse_gir
>>> model = parse_gir('/usr/share/gir-1.0/GLib-2.0.gir')  # doctest: +SKIP
>>> [alias.name for alias in model.aliases][:3]  # doctest: +SKIP

FastAPI application instance (for ASGI servers like uvicorn):
>>> from gir_schema_api.app import app  # noqa: F401
"""

__version__ = "0.1.0"

from .cache import get_cached_parser
from .emitter import Emitter
from .gir_parser import BuilderConfig, GIRModel, parse_gir, parse_gir_buffer
from .registry import TypeRegistry

__all__ = [
    "BuilderConfig",
    "Emitter",
    "GIRModel",
    "TypeRegistry",
    "parse_gir",
    "parse_gir_buffer",
    "get_cached_parser",
]
