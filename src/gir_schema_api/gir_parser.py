"""Build a typed entity model from a GObject-Introspection (GIR) document.

This module converts the loosely typed, attribute based GIR markup into the
immutable entities of :mod:`gir_schema_api.models` and registers every
top-level type in a :class:`~gir_schema_api.registry.TypeRegistry`.

Design goals:
* Never abort mid-document. Missing attributes become
  :class:`~gir_schema_api.models.Unresolved` placeholders carrying the node
  index, and are reported as diagnostics.
* Deterministic output. Categories are extracted in a fixed order (aliases,
  constants, enumerations, bitfields, records, classes) and every category
  keeps document order.
* First definition wins. A later entity whose name is already registered is
  logged and dropped; the registered one is kept.

Type extraction strategy:
A node's native type is read, in order of preference, from an explicit
attribute chosen by the caller, from the node's own ``type`` attribute when
the node is an ``array``, or from its first ``type`` child (``name`` first,
then ``type``). Arguments and return values look at their children instead:
an ``array`` child yields the element types (``contained_types``) and the
outer type pair comes from the array node itself.

Typical usage:
        from pathlib import Path
        from gir_schema_api.gir_parser import parse_gir, BuilderConfig

        model = parse_gir(Path("Gtk-3.0.gir"))
        if model is not None:
                print(model.prefix, model.identifier_prefixes)
                for cls in model.classes:
                        print(cls.name, "->", cls.parent)

        # Skip some names and treat a different datatype as the error type
        config = BuilderConfig(blacklist=frozenset({"Widget"}), error_type_name="Error")
        model = parse_gir(Path("GLib-2.0.gir"), config=config)
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, FrozenSet, Iterator, List, Optional, Tuple, Union

from .adapter import (
    GIRDocument,
    attribute,
    bool_attribute,
    children,
    children_named,
    content,
    first_child_named,
    local_name,
    sorted_sub_attributes,
)
from .models import (
    Alias,
    Argument,
    Bitfield,
    Class,
    Constant,
    CType,
    Datatype,
    Diagnostic,
    DiagnosticKind,
    Enumeration,
    Method,
    Record,
    TypeRef,
    Unresolved,
    entity_to_dict,
    is_record_kind,
    type_text,
)
from .registry import TypeRegistry

logger = logging.getLogger(__name__)

DEPRECATED_DEFAULT = "This method is deprecated."


@dataclass
class BuilderConfig:
    """Configuration for model building behavior.

    Args:
        default_prefix: Path prefix bound to the document's own namespace in
            queries (``./*/gir:alias``).
        prefix_delimiter: Separator of ``identifier-prefixes`` and
            ``symbol-prefixes`` lists.
        blacklist: Names that are never registered or kept.
        error_type_name: Name of the datatype that describes the error
            type. When seen, its ``type`` becomes ``GIRModel.error_type``.
        default_error_type: ``GIRModel.error_type`` when no such datatype
            appears in the document.
    """

    default_prefix: str = "gir"
    prefix_delimiter: str = ","
    blacklist: FrozenSet[str] = frozenset()
    error_type_name: str = "Error"
    default_error_type: str = "GErrorType"


@dataclass
class GIRModel:
    """Entities extracted from one document.

    ``registry`` may be shared with other models (see
    :func:`gir_schema_api.merger.build_model_set`); the collections only ever
    hold the entities this document contributed.
    """

    source: str = "<memory>"
    prefix: str = ""
    identifier_prefixes: List[str] = field(default_factory=list)
    symbol_prefixes: List[str] = field(default_factory=list)
    aliases: List[Alias] = field(default_factory=list)
    constants: List[Constant] = field(default_factory=list)
    enumerations: List[Enumeration] = field(default_factory=list)
    bitfields: List[Bitfield] = field(default_factory=list)
    records: List[Record] = field(default_factory=list)
    classes: List[Class] = field(default_factory=list)
    error_type: str = "GErrorType"
    diagnostics: List[Diagnostic] = field(default_factory=list)
    registry: TypeRegistry = field(default_factory=TypeRegistry, repr=False, compare=False)

    def iter_types(self) -> Iterator[Datatype]:
        """Yield every kept top-level entity in extraction order."""
        yield from self.aliases
        yield from self.constants
        yield from self.enumerations
        yield from self.bitfields
        yield from self.records
        yield from self.classes

    def find(self, name: str) -> Optional[Datatype]:
        """Return the entity named ``name`` contributed by this document."""
        for entity in self.iter_types():
            if entity.name == name:
                return entity
        return None

    def summary(self) -> Dict[str, Any]:
        return {
            "source": self.source,
            "namespace": self.prefix,
            "identifier_prefixes": list(self.identifier_prefixes),
            "symbol_prefixes": list(self.symbol_prefixes),
            "error_type": self.error_type,
            "counts": {
                "aliases": len(self.aliases),
                "constants": len(self.constants),
                "enumerations": len(self.enumerations),
                "bitfields": len(self.bitfields),
                "records": len(self.records),
                "classes": len(self.classes),
            },
            "diagnostics": len(self.diagnostics),
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.summary()
        data["types"] = [entity_to_dict(entity) for entity in self.iter_types()]
        return data


class GIRParser:
    """Extract a :class:`GIRModel` from a loaded :class:`GIRDocument`.

    Example:
        from gir_schema_api.adapter import GIRDocument
        from gir_schema_api.gir_parser import GIRParser
        from gir_schema_api.registry import TypeRegistry

        registry = TypeRegistry()
        document = GIRDocument.from_file("GLib-2.0.gir")
        model = GIRParser(document, registry=registry).parse()
        print(registry.kind_of("Error"))      # EntityKind.RECORD
    """

    def __init__(
        self,
        document: GIRDocument,
        config: Optional[BuilderConfig] = None,
        registry: Optional[TypeRegistry] = None,
    ) -> None:
        self.document = document
        self.config = config or BuilderConfig()
        self.registry = registry if registry is not None else TypeRegistry()
        self.diagnostics: List[Diagnostic] = []
        self.error_type = self.config.default_error_type

    def parse(self) -> GIRModel:
        """Run the ordered extraction and return the model."""
        model = GIRModel(source=self.document.source, registry=self.registry)
        self._read_namespace(model)

        model.aliases = self._collect("alias", "alias", self._build_alias)
        model.constants = self._collect("constant", "constant", self._build_constant)
        model.enumerations = self._collect(
            "enumeration", "enum", self._build_enumeration
        )
        model.bitfields = self._collect("bitfield", "bitfield", self._build_bitfield)
        model.records = self._collect("record", "record", self._build_record)
        model.classes = self._collect("class", "class", self._build_class)

        model.error_type = self.error_type
        model.diagnostics = list(self.diagnostics)
        logger.debug(
            "Built model for %s: %d aliases, %d constants, %d enumerations, "
            "%d bitfields, %d records, %d classes (%d diagnostics)",
            model.source,
            len(model.aliases),
            len(model.constants),
            len(model.enumerations),
            len(model.bitfields),
            len(model.records),
            len(model.classes),
            len(model.diagnostics),
        )
        return model

    # ---------------- Internal helpers ---------------- #

    def _read_namespace(self, model: GIRModel) -> None:
        prefix = self.config.default_prefix
        namespace = self.document.find_first(f".//{prefix}:namespace", prefix)
        if namespace is None:
            logger.warning("No namespace element in %s", self.document.source)
            return
        model.prefix = attribute(namespace, "name") or ""
        delimiter = self.config.prefix_delimiter
        model.identifier_prefixes = sorted_sub_attributes(
            namespace, "identifier-prefixes", delimiter
        )
        model.symbol_prefixes = sorted_sub_attributes(
            namespace, "symbol-prefixes", delimiter
        )

    def _collect(
        self,
        tag: str,
        category: str,
        factory: Callable[[ET.Element, int], Any],
    ) -> List[Any]:
        """Build, filter and register every ``tag`` entity in document order."""
        prefix = self.config.default_prefix
        accepted: List[Any] = []
        for index, node in enumerate(self.document.xpath(f"./*/{prefix}:{tag}", prefix)):
            if attribute(node, "name") is None:
                self._report(
                    DiagnosticKind.MISSING_ATTRIBUTE,
                    f"{category} #{index} has no name",
                    index=index,
                )
            entity = factory(node, index)
            if entity.name in self.config.blacklist:
                logger.debug("Skipping blacklisted %s '%s'", category, entity.name)
                self._report(
                    DiagnosticKind.BLACKLISTED,
                    f"blacklisted {category} '{entity.name}' skipped",
                    name=entity.name,
                    index=index,
                )
                continue
            if not self.registry.register(entity):
                logger.warning(
                    "Duplicate type '%s' for %s ignored!", entity.name, category
                )
                self._report(
                    DiagnosticKind.DUPLICATE_DEFINITION,
                    f"duplicate type '{entity.name}' for {category} ignored",
                    name=entity.name,
                    index=index,
                )
                continue
            if is_record_kind(entity):
                self.registry.register_record(entity)
            if entity.name == self.config.error_type_name:
                self.error_type = type_text(entity.type)
            accepted.append(entity)
        return accepted

    def _report(
        self,
        kind: DiagnosticKind,
        message: str,
        name: Optional[str] = None,
        index: Optional[int] = None,
    ) -> None:
        self.diagnostics.append(Diagnostic(kind=kind, message=message, name=name, index=index))

    def _unresolved(
        self, index: int, expected: str, reason: str = "unknown", report: bool = True
    ) -> Unresolved:
        if report:
            self._report(
                DiagnosticKind.MISSING_ATTRIBUTE,
                f"{reason} {expected} at index {index}",
                index=index,
            )
        return Unresolved(index=index, expected=expected, reason=reason)

    def _thing_fields(
        self, node: ET.Element, index: int, name_attr: str = "name"
    ) -> Dict[str, Any]:
        marked = bool_attribute(node, "deprecated")
        deprecated = _documentation(node, "doc-deprecated") or None
        if deprecated is None and marked:
            deprecated = DEPRECATED_DEFAULT
        return {
            "name": attribute(node, name_attr) or f"Unknown{index}",
            "comment": _documentation(node, "doc"),
            "introspectable": bool_attribute(node, "introspectable"),
            "deprecated": deprecated,
            "marked_as_deprecated": marked,
            "version": attribute(node, "version"),
        }

    def _ctype_fields(
        self,
        node: ET.Element,
        index: int,
        type_attr: str = "type",
        ctype_attr: Optional[str] = None,
    ) -> Dict[str, Any]:
        """Fields of a CType read from ``node`` itself."""
        contained: Tuple[CType, ...] = ()
        if local_name(node) == "array":
            contained = tuple(
                CType(**self._ctype_fields(child, index, ctype_attr="type"))
                for child in children_named(node, "type")
            )
        fields = self._thing_fields(node, index)
        fields.update(
            type=attribute(node, type_attr) or "",
            ctype=self._native_type(node, index, ctype_attr),
            contained_types=contained,
        )
        return fields

    def _native_type(
        self, node: ET.Element, index: int, ctype_attr: Optional[str]
    ) -> TypeRef:
        if ctype_attr is not None:
            value = attribute(node, ctype_attr)
            return value if value is not None else self._unresolved(index, "ctype")
        if local_name(node) == "array":
            value = attribute(node, "type")
            return value if value is not None else self._unresolved(index, "ctype")
        type_entry = first_child_named(node, "type")
        if type_entry is None:
            return self._unresolved(index, "type")
        value = _first_attribute(type_entry, "name", "type")
        return value if value is not None else self._unresolved(index, "type")

    def _child_types(
        self, node: ET.Element, index: int, report: bool = True
    ) -> Tuple[TypeRef, TypeRef]:
        """Return the (type, ctype) pair described by the children of ``node``."""
        for child in children(node):
            if local_name(child) == "type":
                type_entry: Optional[ET.Element] = child
            else:
                type_entry = first_child_named(child, "type")
            if type_entry is None:
                continue
            type_name = _first_attribute(child, "name", "type")
            native = _first_attribute(type_entry, "type", "name")
            return (
                type_name if type_name is not None else self._unresolved(index, "type", report=report),
                native if native is not None else self._unresolved(index, "ctype", "untyped", report=report),
            )
        return (
            self._unresolved(index, "type", "missing", report=report),
            self._unresolved(index, "ctype", "missing", report=report),
        )

    # ---------------- Entity factories ---------------- #

    def _build_alias(self, node: ET.Element, index: int) -> Alias:
        return Alias(**self._ctype_fields(node, index))

    def _build_constant(
        self, node: ET.Element, index: int, ctype_attr: Optional[str] = None
    ) -> Constant:
        raw_value = attribute(node, "value")
        value = _parse_int(raw_value)
        return Constant(
            value=index if value is None else value,
            raw_value=raw_value,
            **self._ctype_fields(node, index, ctype_attr=ctype_attr),
        )

    def _members(self, node: ET.Element) -> Tuple[Constant, ...]:
        return tuple(
            self._build_constant(member, i, ctype_attr="identifier")
            for i, member in enumerate(children_named(node, "member"))
        )

    def _build_enumeration(self, node: ET.Element, index: int) -> Enumeration:
        return Enumeration(
            members=self._members(node),
            type=attribute(node, "type") or "",
            **self._thing_fields(node, index),
        )

    def _build_bitfield(self, node: ET.Element, index: int) -> Bitfield:
        return Bitfield(
            members=self._members(node),
            type=attribute(node, "type") or "",
            **self._thing_fields(node, index),
        )

    def _record_fields(self, node: ET.Element, index: int) -> Dict[str, Any]:
        fields = self._ctype_fields(node, index, type_attr="type-name", ctype_attr="type")
        fields.update(
            cprefix=attribute(node, "symbol-prefix") or "",
            typegetter=attribute(node, "get-type") or "",
            functions=self._methods(node, "function"),
            methods=self._methods(node, "method"),
            constructors=self._methods(node, "constructor"),
        )
        return fields

    def _build_record(self, node: ET.Element, index: int) -> Record:
        return Record(**self._record_fields(node, index))

    def _build_class(self, node: ET.Element, index: int) -> Class:
        return Class(parent=attribute(node, "parent") or "", **self._record_fields(node, index))

    def _methods(self, node: ET.Element, tag: str) -> Tuple[Method, ...]:
        return tuple(
            self.build_method(child, i) for i, child in enumerate(children_named(node, tag))
        )

    def build_method(self, node: ET.Element, index: int) -> Method:
        """Build a method, function or constructor from its element."""
        ret = first_child_named(node, "return-value")
        returns = (
            self.build_argument(ret, -1)
            if ret is not None
            else Argument(name="", type="Void", ctype="void")
        )
        parameters = first_child_named(node, "parameters")
        source = parameters if parameters is not None else node
        args = tuple(
            self.build_argument(child, i)
            for i, child in enumerate(
                c for c in children(source) if local_name(c).endswith("parameter")
            )
        )
        return Method(
            cname=attribute(node, "identifier") or "",
            returns=returns,
            args=args,
            throws_error=(_parse_int(attribute(node, "throws") or "0") or 0) != 0,
            **self._thing_fields(node, index),
        )

    def build_argument(self, node: ET.Element, index: int) -> Argument:
        """Build an argument or return value from its element."""
        varargs = (
            first_child_named(node, "varargs") is not None
            or (attribute(node, "name") or "").startswith("...")
        )
        array = first_child_named(node, "array")
        if array is not None:
            contained = tuple(
                CType(**self._ctype_fields(child, index, ctype_attr="type"))
                for child in children_named(array, "type")
            )
            native_attr = attribute(array, "type")
            native: TypeRef = (
                native_attr if native_attr is not None else self._unresolved(index, "ctype")
            )
            type_name: TypeRef = attribute(array, "name") or native
        else:
            contained = ()
            type_name, native = self._child_types(node, index, report=not varargs)
        return Argument(
            instance=local_name(node).startswith("instance"),
            varargs=varargs,
            type=type_name,
            ctype=native,
            contained_types=contained,
            **self._thing_fields(node, index),
        )


def _documentation(node: ET.Element, tag: str) -> str:
    return "\n".join(content(doc) for doc in children_named(node, tag))


def _first_attribute(node: ET.Element, *names: str) -> Optional[str]:
    for name in names:
        value = attribute(node, name)
        if value is not None:
            return value
    return None


def _parse_int(value: Optional[str]) -> Optional[int]:
    if value is None:
        return None
    try:
        return int(value.strip())
    except ValueError:
        return None


def parse_gir(
    gir_path: Union[str, Path],
    config: Optional[BuilderConfig] = None,
    registry: Optional[TypeRegistry] = None,
) -> Optional[GIRModel]:
    """Load a GIR file and build its model.

    Args:
        gir_path: Path to the ``.gir`` document.
        config: Optional :class:`BuilderConfig`.
        registry: Registry to populate; a fresh one is used when omitted.

    Returns:
        The :class:`GIRModel`, or None if the document could not be loaded.

    Example:
        from gir_schema_api.gir_parser import parse_gir

        model = parse_gir("Gtk-3.0.gir")
        print(len(model.classes) if model else "load failed")
    """
    document = GIRDocument.from_file(gir_path)
    if document is None:
        return None
    return GIRParser(document, config=config, registry=registry).parse()


def parse_gir_buffer(
    data: Union[str, bytes],
    config: Optional[BuilderConfig] = None,
    registry: Optional[TypeRegistry] = None,
) -> Optional[GIRModel]:
    """In-memory counterpart of :func:`parse_gir`."""
    document = GIRDocument.from_buffer(data)
    if document is None:
        return None
    return GIRParser(document, config=config, registry=registry).parse()
