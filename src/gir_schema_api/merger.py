"""Build one or several GIR documents with an explicit registry scope.

Each call to :func:`build_model` uses a fresh
:class:`~gir_schema_api.registry.TypeRegistry`, so documents never influence
each other. :func:`build_model_set` deliberately shares one registry across
several documents so later documents can resolve names (e.g. class parents)
declared by earlier ones.

Ordering sensitivity: with a shared registry the first document that
declares a name owns it; the same name in a later document is logged and
dropped from that document's model. Pass dependencies (``GLib``, ``GObject``)
before the documents that use them.

Example:
    from pathlib import Path
    from gir_schema_api.merger import build_model_set

    models = build_model_set([Path("GObject-2.0.gir"), Path("Gtk-3.0.gir")])
    gtk = models[-1]
    button = gtk.find("Button")
    print([p.name for p in gtk.registry.ancestry(button)])
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional, Union

from .gir_parser import BuilderConfig, GIRModel, parse_gir
from .registry import TypeRegistry

logger = logging.getLogger(__name__)


def build_model(
    gir_path: Union[str, Path], config: Optional[BuilderConfig] = None
) -> Optional[GIRModel]:
    """Build a single document against its own registry."""
    return parse_gir(Path(gir_path), config=config, registry=TypeRegistry())


def build_model_set(
    gir_paths: Iterable[Union[str, Path]],
    config: Optional[BuilderConfig] = None,
    registry: Optional[TypeRegistry] = None,
) -> List[GIRModel]:
    """Build documents in order against one shared registry.

    Args:
        gir_paths: Documents to load, dependencies first.
        config: Optional :class:`BuilderConfig` applied to every document.
        registry: Registry to share; a fresh one is created when omitted.

    Returns:
        Models for the documents that could be loaded, in input order.
        Documents that fail to load are logged and skipped.
    """
    shared = registry if registry is not None else TypeRegistry()
    models: List[GIRModel] = []
    for path in gir_paths:
        model = parse_gir(Path(path), config=config, registry=shared)
        if model is None:
            logger.warning("Skipping %s: document could not be loaded", path)
            continue
        models.append(model)
    return models
