"""Thin XML access layer over :mod:`xml.etree.ElementTree`.

The model builder and the emitter never touch ElementTree directly; they go
through :class:`GIRDocument` and the element helpers below. The helpers mirror
the lookups an introspection document needs:

* attribute lookup that ignores namespace qualifiers (``c:type`` answers a
  lookup for ``type``; an unqualified attribute of the same name wins),
* ordered element-child iteration and local tag names,
* joined text content,
* delimiter-separated attribute lists ordered longest first,
* namespace-aware path queries with a default prefix bound to the
  document's own namespace,
* a lazily produced, depth-annotated, document-order node stream.

Example:
        from gir_schema_api.adapter import GIRDocument, attribute

        doc = GIRDocument.from_buffer(b"<repository><namespace name='Gtk'/></repository>")
        ns = doc.find_first("./gir:namespace")
        print(attribute(ns, "name"))             # Gtk
        print([n.tag for n in doc.tree()])        # ['repository', 'namespace']

Load failures are logged and reported as ``None`` instead of raising.
"""

from __future__ import annotations

import io
import logging
import xml.etree.ElementTree as ET
from pathlib import Path
from typing import Dict, Iterator, List, NamedTuple, Optional, Union

logger = logging.getLogger(__name__)

CORE_NS = "http://www.gtk.org/introspection/core/1.0"
C_NS = "http://www.gtk.org/introspection/c/1.0"
GLIB_NS = "http://www.gtk.org/introspection/glib/1.0"


class TreeNode(NamedTuple):
    """An element paired with its depth below the document root (root = 0)."""

    node: ET.Element
    level: int

    @property
    def tag(self) -> str:
        return local_name(self.node)


class GIRDocument:
    """A loaded introspection document.

    Args:
        root: Root element (normally ``repository``).
        declared_namespaces: Prefix → URI map as declared in the source.
        source: Human readable origin (file path or ``"<buffer>"``).
    """

    def __init__(
        self,
        root: ET.Element,
        declared_namespaces: Optional[Dict[str, str]] = None,
        source: str = "<memory>",
    ) -> None:
        self.root = root
        self.declared_namespaces: Dict[str, str] = dict(declared_namespaces or {})
        self.source = source

    # ---------------- Loading ---------------- #

    @classmethod
    def from_file(cls, path: Union[str, Path]) -> Optional["GIRDocument"]:
        """Parse a document from disk, returning None if it cannot be loaded."""
        path = Path(path)
        try:
            with path.open("rb") as handle:
                return cls._parse(handle, str(path))
        except OSError as exc:
            logger.error("Cannot read %s: %s", path, exc)
            return None

    @classmethod
    def from_buffer(cls, data: Union[str, bytes]) -> Optional["GIRDocument"]:
        """Parse a document held in memory, returning None if it is malformed."""
        if isinstance(data, str):
            data = data.encode("utf-8")
        return cls._parse(io.BytesIO(data), "<buffer>")

    @classmethod
    def _parse(cls, handle, source: str) -> Optional["GIRDocument"]:
        declared: Dict[str, str] = {}
        try:
            events = ET.iterparse(handle, events=("start-ns",))
            for _event, (prefix, uri) in events:
                declared.setdefault(prefix, uri)
            root = events.root
        except ET.ParseError as exc:
            logger.error("Cannot parse %s: %s", source, exc)
            return None
        return cls(root, declared, source)

    # ---------------- Queries ---------------- #

    @property
    def repository_namespace(self) -> str:
        """Namespace URI of the root element ("" when unqualified)."""
        tag = self.root.tag
        if tag.startswith("{"):
            return tag[1:].split("}", 1)[0]
        return ""

    def namespaces(self, default_prefix: str = "gir") -> Dict[str, str]:
        """Prefix map for path queries with ``default_prefix`` bound to the root namespace."""
        mapping = {prefix: uri for prefix, uri in self.declared_namespaces.items() if prefix}
        mapping[default_prefix] = self.repository_namespace
        return mapping

    def xpath(self, path: str, default_prefix: str = "gir") -> List[ET.Element]:
        """Evaluate an ElementTree path relative to the root element.

        Example:
            >>> doc.xpath("./*/gir:alias")  # doctest: +SKIP
        """
        return self.root.findall(path, self.namespaces(default_prefix))

    def find_first(self, path: str, default_prefix: str = "gir") -> Optional[ET.Element]:
        return self.root.find(path, self.namespaces(default_prefix))

    def tree(self) -> Iterator[TreeNode]:
        """Yield every element in document (pre-)order with its depth.

        The walk keeps its own stack so arbitrarily deep documents do not
        hit the interpreter recursion limit.
        """
        stack = [(self.root, 0)]
        while stack:
            node, level = stack.pop()
            yield TreeNode(node, level)
            stack.extend((child, level + 1) for child in reversed(children(node)))


# ---------------- Element helpers ---------------- #


def local_name(node: ET.Element) -> str:
    """Return the tag without its ``{namespace}`` qualifier."""
    tag = node.tag
    if isinstance(tag, str) and tag.startswith("{"):
        return tag.split("}", 1)[1]
    return tag if isinstance(tag, str) else ""


def children(node: ET.Element) -> List[ET.Element]:
    """Element children in document order (comments and PIs skipped)."""
    return [child for child in node if isinstance(child.tag, str)]


def children_named(node: ET.Element, name: str) -> List[ET.Element]:
    return [child for child in children(node) if local_name(child) == name]


def first_child_named(node: ET.Element, name: str) -> Optional[ET.Element]:
    for child in children(node):
        if local_name(child) == name:
            return child
    return None


def attribute(node: ET.Element, name: str) -> Optional[str]:
    """Look up an attribute by local name, ignoring any namespace qualifier."""
    value = node.get(name)
    if value is not None:
        return value
    suffix = "}" + name
    for key, candidate in node.attrib.items():
        if key.endswith(suffix):
            return candidate
    return None


def bool_attribute(node: ET.Element, name: str) -> bool:
    """Interpret a numeric flag attribute (nonzero → True, absent → False)."""
    raw = attribute(node, name)
    if raw is None:
        return False
    raw = raw.strip()
    try:
        return int(raw) != 0
    except ValueError:
        return raw.lower() == "true"


def content(node: ET.Element) -> str:
    return "".join(node.itertext())


def sorted_sub_attributes(
    node: ET.Element, name: str, delimiter: str = ","
) -> List[str]:
    """Split a list-valued attribute, longest entries first.

    Entries of equal length are ordered lexicographically so prefix
    stripping can try the most specific candidate first.

    Example:
        >>> sorted_sub_attributes(ET.fromstring('<n p="G,Gtk"/>'), "p")
        ['Gtk', 'G']
    """
    raw = attribute(node, name)
    if raw is None:
        return []
    parts = [part for part in raw.split(delimiter) if part]
    return sorted(parts, key=lambda part: (-len(part), part))
