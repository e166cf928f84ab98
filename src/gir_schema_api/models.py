"""Core data structures for representing an introspected native API.

These immutable dataclasses are produced by the GIR model builder and
consumed by higher level layers (the emitter, the CLI and the REST
endpoints). They intentionally avoid framework dependencies so they can be
serialized, cached, or transported easily.

Overview:
        * ``Thing`` holds the fields every named entity shares (name,
            documentation, deprecation, availability).
        * Every concrete entity carries an explicit ``kind`` tag
            (:class:`EntityKind`). Behavior shared across kinds lives in free
            functions (:func:`is_void`, :func:`is_array`, :func:`is_varargs`, ...)
            rather than in overridden methods.
        * Missing or malformed markup never aborts a build. Type slots that could
            not be read hold an :class:`Unresolved` value carrying the offending
            node index so consumers can branch on it.

Typical construction (simplified)::

        from gir_schema_api.models import Alias, Argument, Method, is_void

        alias = Alias(name="Quark", type="GQuark", ctype="guint32")
        ret = Argument(name="", type="Void", ctype="void")
        method = Method(name="init", cname="gtk_init", returns=ret)
        assert is_void(method.returns)

Design notes:
        * Collections are tuples so entities stay hashable and can be shared
            between cached models.
        * ``Class.parent`` is a name, not a reference: classes may be declared
            before their parent is known. Resolve it through
            :class:`~gir_schema_api.registry.TypeRegistry`.
"""

from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional, Tuple, Union


class EntityKind(str, Enum):
    """Variant tag carried by every entity."""

    ALIAS = "alias"
    CONSTANT = "constant"
    ENUMERATION = "enumeration"
    BITFIELD = "bitfield"
    RECORD = "record"
    CLASS = "class"
    METHOD = "method"
    ARGUMENT = "argument"
    DATATYPE = "datatype"


class DiagnosticKind(str, Enum):
    DUPLICATE_DEFINITION = "duplicate_definition"
    MISSING_ATTRIBUTE = "missing_attribute"
    BLACKLISTED = "blacklisted"
    UNHANDLED_NODE = "unhandled_node"


@dataclass(frozen=True)
class Unresolved:
    """Placeholder for a type slot that could not be read from the markup.

    Attributes:
        index: Positional index of the node the value was expected on.
        expected: What was missing (``"type"``, ``"ctype"``, ...).
        reason: Short qualifier rendered into the placeholder text.

    Example:
        >>> str(Unresolved(index=3, expected="type"))
        '<unknown type 3>'
    """

    index: int
    expected: str
    reason: str = "unknown"

    def __str__(self) -> str:
        return f"<{self.reason} {self.expected} {self.index}>"


TypeRef = Union[str, Unresolved]


@dataclass(frozen=True)
class Diagnostic:
    """A non-fatal problem noticed while building or emitting a model."""

    kind: DiagnosticKind
    message: str
    name: Optional[str] = None
    index: Optional[int] = None


@dataclass(frozen=True, kw_only=True)
class Thing:
    """Fields shared by every named entity.

    Attributes:
        name: Identifier without namespace prefix (never empty).
        comment: Joined ``doc`` text.
        introspectable: Whether the entity is flagged introspectable.
        deprecated: Replacement advice when deprecated, else ``None``.
        marked_as_deprecated: Whether the ``deprecated`` flag was set.
        version: Availability version string, if any.
    """

    name: str
    comment: str = ""
    introspectable: bool = False
    deprecated: Optional[str] = None
    marked_as_deprecated: bool = False
    version: Optional[str] = None


@dataclass(frozen=True, kw_only=True)
class Datatype(Thing):
    type: TypeRef = ""
    kind: EntityKind = EntityKind.DATATYPE


@dataclass(frozen=True, kw_only=True)
class CType(Datatype):
    """A type with an underlying native type.

    ``contained_types`` lists array element types in document order.
    """

    ctype: TypeRef = ""
    contained_types: Tuple["CType", ...] = ()


@dataclass(frozen=True, kw_only=True)
class Alias(CType):
    kind: EntityKind = field(default=EntityKind.ALIAS, init=False)


@dataclass(frozen=True, kw_only=True)
class Constant(CType):
    """A named constant or enumeration member.

    ``raw_value`` keeps the attribute text, which matters for constants whose
    value is not an integer (strings, floats).
    """

    value: int = 0
    raw_value: Optional[str] = None
    kind: EntityKind = field(default=EntityKind.CONSTANT, init=False)


@dataclass(frozen=True, kw_only=True)
class Enumeration(Datatype):
    members: Tuple[Constant, ...] = ()
    kind: EntityKind = field(default=EntityKind.ENUMERATION, init=False)


@dataclass(frozen=True, kw_only=True)
class Bitfield(Enumeration):
    kind: EntityKind = field(default=EntityKind.BITFIELD, init=False)


@dataclass(frozen=True, kw_only=True)
class Argument(CType):
    """A function argument or return value.

    ``varargs`` is set for an explicit ``varargs`` marker and for names
    starting with ``...``.
    """

    instance: bool = False
    varargs: bool = False
    kind: EntityKind = field(default=EntityKind.ARGUMENT, init=False)


def _void_return() -> "Argument":
    return Argument(name="", type="Void", ctype="void")


@dataclass(frozen=True, kw_only=True)
class Method(Thing):
    cname: str = ""
    returns: Argument = field(default_factory=_void_return)
    args: Tuple[Argument, ...] = ()
    throws_error: bool = False
    kind: EntityKind = field(default=EntityKind.METHOD, init=False)


Function = Method


@dataclass(frozen=True, kw_only=True)
class Record(CType):
    cprefix: str = ""
    typegetter: str = ""
    methods: Tuple[Method, ...] = ()
    functions: Tuple[Method, ...] = ()
    constructors: Tuple[Method, ...] = ()
    kind: EntityKind = field(default=EntityKind.RECORD, init=False)


@dataclass(frozen=True, kw_only=True)
class Class(Record):
    parent: str = ""
    kind: EntityKind = field(default=EntityKind.CLASS, init=False)


Entity = Union[Alias, Constant, Enumeration, Record, Class, Method, Argument]


# ---------------- Shared accessors ---------------- #


def is_unresolved(value: Any) -> bool:
    """Return True if ``value`` is an :class:`Unresolved` placeholder."""
    return isinstance(value, Unresolved)


def type_text(value: TypeRef) -> str:
    """Render a type slot as text (placeholders render their marker)."""
    return str(value)


def is_void(entity: Datatype) -> bool:
    """Return whether the entity denotes an empty/void type.

    CTypes are judged by their native type when one is present. Unresolved
    slots are never void.
    """
    candidate: TypeRef = entity.type
    if isinstance(entity, CType) and entity.ctype != "":
        candidate = entity.ctype
    if is_unresolved(candidate):
        return False
    return str(candidate).startswith(("Void", "void"))


def is_array(entity: Datatype) -> bool:
    return bool(getattr(entity, "contained_types", ()))


def is_varargs(entity: Union[Argument, Method]) -> bool:
    """Return whether an argument (or any argument of a method) is varargs."""
    if entity.kind is EntityKind.METHOD:
        return any(is_varargs(arg) for arg in entity.args)
    return entity.varargs or entity.name.startswith("...")


def is_record_kind(entity: Thing) -> bool:
    return getattr(entity, "kind", None) in (EntityKind.RECORD, EntityKind.CLASS)


def private_base_name(thing: Thing) -> Optional[str]:
    """Return the name without a ``Private`` suffix, or None if not private."""
    return _strip_suffix(thing.name, "Private")


def node_name(thing: Thing) -> str:
    """Return the type name without a ``Class``/``Iface`` suffix.

    A ``Private`` suffix is kept: ``WidgetClassPrivate`` becomes
    ``WidgetPrivate``.
    """
    base = private_base_name(thing)
    private_suffix = "Private" if base is not None else ""
    stem = base if base is not None else thing.name
    for suffix in ("Class", "Iface"):
        stripped = _strip_suffix(stem, suffix)
        if stripped is not None:
            return stripped + private_suffix
    return thing.name


def without_namespace(name: str) -> str:
    """Drop a leading ``Namespace.`` qualifier (``Gtk.Widget`` -> ``Widget``)."""
    return name.rsplit(".", 1)[-1]


def _strip_suffix(name: str, suffix: str) -> Optional[str]:
    if name.endswith(suffix) and len(name) > len(suffix):
        return name[: -len(suffix)]
    return None


# ---------------- Serialization ---------------- #


def _to_json(value: Any) -> Any:
    if isinstance(value, Unresolved):
        return {
            "unresolved": True,
            "placeholder": str(value),
            "index": value.index,
            "expected": value.expected,
        }
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, tuple):
        return [_to_json(item) for item in value]
    if dataclasses.is_dataclass(value):
        return entity_to_dict(value)
    return value


def entity_to_dict(entity: Any) -> Dict[str, Any]:
    """Convert an entity (recursively) into a JSON-serializable dictionary.

    Example:
        >>> entity_to_dict(Alias(name="Quark", type="GQuark"))["kind"]
        'alias'
    """
    return {
        f.name: _to_json(getattr(entity, f.name)) for f in dataclasses.fields(entity)
    }
