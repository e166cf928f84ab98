"""Single-pass, context-stack driven emitter for GIR documents.

The emitter walks the flat, depth-annotated node stream produced by
:meth:`GIRDocument.tree <gir_schema_api.adapter.GIRDocument.tree>` and renders
one line of Python stub text per node. Nesting is tracked with an explicit
stack of :class:`ContextFrame` objects instead of recursive descent: a frame
remembers the level of the nodes it governs, the node that opened it, and a
table mapping child tag names to handlers.

Walk rules:
* Frames deeper than the incoming node are popped first (leaving a subtree).
* If the active frame governs exactly the node's level and has a handler for
  its tag, the handler renders the line and may return a child handler
  table; the walker then pushes a frame at ``node.level + 1``.
* Anything else is rendered as ``# unhandled: <tag> @ <level>+<frame level>``
  and recorded as a diagnostic. Unhandled nodes are never fatal.

Handler tables are plain dictionaries of plain functions. Custom tables can
be passed to :class:`Emitter` to target other output.

Example:
        from gir_schema_api.adapter import GIRDocument
        from gir_schema_api.emitter import Emitter

        document = GIRDocument.from_file("Gtk-3.0.gir")
        emitter = Emitter()
        print(emitter.emit(document))
        print("unhandled nodes:", emitter.unhandled)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, Iterator, List, Mapping, Optional

from .adapter import (
    GIRDocument,
    TreeNode,
    attribute,
    children,
    content,
    first_child_named,
    local_name,
)
from .models import Diagnostic, DiagnosticKind, without_namespace

logger = logging.getLogger(__name__)

INDENT = "    "

# Fundamental GLib type names and their Python counterparts.
PYTHON_TYPES = {
    "none": "None",
    "gboolean": "bool",
    "gchar": "int",
    "guchar": "int",
    "gint": "int",
    "guint": "int",
    "gint8": "int",
    "guint8": "int",
    "gint16": "int",
    "guint16": "int",
    "gint32": "int",
    "guint32": "int",
    "gint64": "int",
    "guint64": "int",
    "glong": "int",
    "gulong": "int",
    "gsize": "int",
    "gssize": "int",
    "GType": "int",
    "gfloat": "float",
    "gdouble": "float",
    "utf8": "str",
    "filename": "str",
    "gpointer": "object",
    "gconstpointer": "object",
}


@dataclass
class HandlerResult:
    """Rendered line plus an optional handler table for the node's children."""

    line: str
    children: Optional[Mapping[str, "Handler"]] = None


Handler = Callable[[TreeNode, "ContextFrame"], HandlerResult]


@dataclass
class ContextFrame:
    """Per-scope emitter state.

    Attributes:
        handlers: Child tag → handler table for nodes at ``level``.
        level: Depth of the nodes this frame governs.
        parent: Enclosing frame (None for the root frame).
        parent_node: Node that opened this frame.
        outputs: Lines emitted while this frame was active.
    """

    handlers: Mapping[str, Handler]
    level: int = 0
    parent: Optional["ContextFrame"] = None
    parent_node: Optional[TreeNode] = None
    outputs: List[str] = field(default_factory=list)

    def push(self, node: TreeNode, handlers: Mapping[str, Handler]) -> "ContextFrame":
        return ContextFrame(handlers, level=node.level + 1, parent=self, parent_node=node)


def indent(level: int, text: str = "") -> str:
    return INDENT * level + text


# ---------------- Rendering helpers ---------------- #


def python_type(name: Optional[str]) -> str:
    if not name:
        return "Any"
    return PYTHON_TYPES.get(name, name)


def annotation(element) -> str:
    """Python annotation for a parameter, return value or field element."""
    array = first_child_named(element, "array")
    if array is not None:
        inner = first_child_named(array, "type")
        return f"list[{python_type(attribute(inner, 'name') if inner is not None else None)}]"
    type_entry = first_child_named(element, "type")
    if type_entry is not None:
        return python_type(attribute(type_entry, "name"))
    return "Any"


def parameter_list(element, receiver: Optional[str]) -> str:
    """Render the parameter list of a callable element."""
    params = [receiver] if receiver else []
    parameters = first_child_named(element, "parameters")
    source = parameters if parameters is not None else element
    for child in children(source):
        tag = local_name(child)
        if tag == "instance-parameter" or not tag.endswith("parameter"):
            continue
        name = attribute(child, "name") or "arg"
        if first_child_named(child, "varargs") is not None or name.startswith("..."):
            params.append("*args")
        else:
            params.append(f"{name}: {annotation(child)}")
    return ", ".join(params)


def return_annotation(element) -> str:
    ret = first_child_named(element, "return-value")
    return annotation(ret) if ret is not None else "None"


def _name(node: TreeNode) -> str:
    return attribute(node.node, "name") or ""


# ---------------- Handlers ---------------- #


def repository(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    return HandlerResult(
        indent(node.level, f"# {node.tag} @ {node.level}+{frame.level}"),
        NAMESPACE_HANDLERS,
    )


def namespace(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    version = attribute(node.node, "version")
    label = f"{_name(node)} {version}" if version else _name(node)
    return HandlerResult(
        indent(node.level, f"# namespace {label} @ {node.level}+{frame.level}"),
        DECLARATION_HANDLERS,
    )


def alias(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    return HandlerResult(indent(node.level, f"# alias {_name(node)}"), ALIAS_HANDLERS)


def alias_type(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    target = attribute(node.node, "name")
    alias_name = attribute(frame.parent_node.node, "name") if frame.parent_node else None
    if target and alias_name:
        return HandlerResult(indent(node.level, f"{alias_name} = {python_type(target)}"))
    return HandlerResult(
        indent(node.level, f"# error alias {alias_name!r} = {target!r}")
    )


def type_comment(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    native = attribute(node.node, "type")
    suffix = f" ({native})" if native else ""
    return HandlerResult(indent(node.level, f"# type {attribute(node.node, 'name')}{suffix}"))


def constant(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    raw = attribute(node.node, "value")
    try:
        value = str(int(raw)) if raw is not None else "..."
    except ValueError:
        value = repr(raw)
    return HandlerResult(
        indent(node.level, f"{_name(node)}: Final = {value}"), CONSTANT_HANDLERS
    )


def enumeration(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    base = "IntFlag" if node.tag == "bitfield" else "IntEnum"
    return HandlerResult(
        indent(node.level, f"class {_name(node)}({base}):"), ENUMERATION_HANDLERS
    )


def member(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    raw = attribute(node.node, "value")
    value = raw if raw is not None else "auto()"
    return HandlerResult(indent(node.level, f"{_name(node).upper()} = {value}"))


def record(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    parent = attribute(node.node, "parent")
    bases = f"({without_namespace(parent)})" if parent else ""
    return HandlerResult(
        indent(node.level, f"class {_name(node)}{bases}:"), RECORD_HANDLERS
    )


def record_field(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    return HandlerResult(indent(node.level, f"{_name(node)}: {annotation(node.node)}"))


def callable_decl(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    name = _name(node)
    if not name:
        return HandlerResult(indent(node.level, f"# empty {node.tag}"), CALLABLE_HANDLERS)
    receiver = None
    if node.tag == "method":
        receiver = "self"
    elif node.tag == "constructor":
        receiver = "cls"
    signature = f"def {name}({parameter_list(node.node, receiver)}) -> {return_annotation(node.node)}: ..."
    if attribute(node.node, "throws") not in (None, "0"):
        signature += "  # raises GLib.Error"
    return HandlerResult(indent(node.level, signature), CALLABLE_HANDLERS)


def callback(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    return HandlerResult(
        indent(node.level, f"{_name(node)} = Callable[..., {return_annotation(node.node)}]")
    )


def parameters(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    return HandlerResult(indent(node.level, "# parameters"), PARAMETER_HANDLERS)


def parameter(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    kind = "self" if node.tag == "instance-parameter" else "param"
    return HandlerResult(
        indent(node.level, f"# {kind} {_name(node)}: {annotation(node.node)}")
    )


def return_value(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    return HandlerResult(indent(node.level, f"# returns {annotation(node.node)}"))


def doc(node: TreeNode, frame: ContextFrame) -> HandlerResult:
    text = content(node.node).strip().splitlines()
    return HandlerResult(indent(node.level, f"# {text[0] if text else ''}".rstrip()))


PARAMETER_HANDLERS: Dict[str, Handler] = {
    "parameter": parameter,
    "instance-parameter": parameter,
}

CALLABLE_HANDLERS: Dict[str, Handler] = {
    "doc": doc,
    "parameters": parameters,
    "return-value": return_value,
}

RECORD_HANDLERS: Dict[str, Handler] = {
    "doc": doc,
    "field": record_field,
    "constructor": callable_decl,
    "method": callable_decl,
    "function": callable_decl,
}

ENUMERATION_HANDLERS: Dict[str, Handler] = {"doc": doc, "member": member}

CONSTANT_HANDLERS: Dict[str, Handler] = {"type": type_comment}

ALIAS_HANDLERS: Dict[str, Handler] = {"type": alias_type}

DECLARATION_HANDLERS: Dict[str, Handler] = {
    "alias": alias,
    "constant": constant,
    "enumeration": enumeration,
    "bitfield": enumeration,
    "record": record,
    "class": record,
    "function": callable_decl,
    "callback": callback,
}

NAMESPACE_HANDLERS: Dict[str, Handler] = {"namespace": namespace}

ROOT_HANDLERS: Dict[str, Handler] = {"repository": repository}


class Emitter:
    """Render a node stream into text lines using handler tables.

    Args:
        handlers: Table for the root level (defaults to ``ROOT_HANDLERS``).

    After a run, ``unhandled`` holds the number of unhandled nodes and
    ``diagnostics`` one entry per unhandled node.
    """

    def __init__(self, handlers: Optional[Mapping[str, Handler]] = None) -> None:
        self.handlers = handlers if handlers is not None else ROOT_HANDLERS
        self.unhandled = 0
        self.diagnostics: List[Diagnostic] = []
        self.root: Optional[ContextFrame] = None

    def lines(self, stream: Iterable[TreeNode]) -> Iterator[str]:
        """Lazily yield one rendered line per node of ``stream``."""
        self.unhandled = 0
        self.diagnostics = []
        self.root = ContextFrame(self.handlers)
        stack: List[ContextFrame] = [self.root]
        for node in stream:
            while len(stack) > 1 and stack[-1].level > node.level:
                stack.pop()
            frame = stack[-1]
            handler = frame.handlers.get(node.tag) if frame.level == node.level else None
            if handler is None:
                line = indent(
                    node.level, f"# unhandled: {node.tag} @ {node.level}+{frame.level}"
                )
                self.unhandled += 1
                self.diagnostics.append(
                    Diagnostic(
                        kind=DiagnosticKind.UNHANDLED_NODE,
                        message=f"no handler for '{node.tag}' at level {node.level}",
                        name=node.tag,
                    )
                )
            else:
                result = handler(node, frame)
                line = result.line
                if result.children is not None:
                    stack.append(frame.push(node, result.children))
            frame.outputs.append(line)
            yield line
        logger.debug("Emitted stream with %d unhandled nodes", self.unhandled)

    def emit(self, document: GIRDocument) -> str:
        """Return the full output for ``document``, one line per node."""
        return "".join(f"{line}\n" for line in self.lines(document.tree()))


def emit_document(document: GIRDocument) -> str:
    """Convenience wrapper around :meth:`Emitter.emit` with default tables."""
    return Emitter().emit(document)
