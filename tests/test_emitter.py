"""Tests for the context-stack emitter."""

from pathlib import Path

from gir_schema_api.adapter import GIRDocument
from gir_schema_api.emitter import (
    ROOT_HANDLERS,
    Emitter,
    HandlerResult,
    emit_document,
)
from gir_schema_api.models import DiagnosticKind

FIXTURE_GIR = Path(__file__).resolve().parent / "fixtures" / "gir" / "Demo-1.0.gir"

CORE = "http://www.gtk.org/introspection/core/1.0"


def load(body: str) -> GIRDocument:
    document = GIRDocument.from_buffer(f'<repository xmlns="{CORE}">{body}</repository>')
    assert document is not None
    return document


def run(body: str):
    emitter = Emitter()
    lines = list(emitter.lines(load(body).tree()))
    return emitter, lines


def test_nested_alias():
    emitter, lines = run(
        '<namespace name="Demo" version="1.0">'
        '<alias name="MyAlias"><type name="gint"/></alias>'
        "</namespace>"
    )
    assert lines == [
        "# repository @ 0+0",
        "    # namespace Demo 1.0 @ 1+1",
        "        # alias MyAlias",
        "            MyAlias = int",
    ]
    assert emitter.unhandled == 0


def test_unhandled_tags_are_attributed_to_scope():
    emitter, lines = run(
        '<include name="GLib"><extra/></include>'
        '<namespace name="Demo">'
        '<alias name="A"><doc>text</doc><type name="gint"/></alias>'
        "</namespace>"
    )
    assert lines == [
        "# repository @ 0+0",
        "    # unhandled: include @ 1+1",
        "        # unhandled: extra @ 2+1",
        "    # namespace Demo @ 1+1",
        "        # alias A",
        "            # unhandled: doc @ 3+3",
        "            A = int",
    ]
    assert emitter.unhandled == 3
    assert [d.name for d in emitter.diagnostics] == ["include", "extra", "doc"]
    assert all(d.kind is DiagnosticKind.UNHANDLED_NODE for d in emitter.diagnostics)
    assert emitter.diagnostics[-1].message == "no handler for 'doc' at level 3"
    assert all(d.index is None for d in emitter.diagnostics)


def test_handled_node_without_child_table_leaves_children_unhandled():
    _, lines = run(
        '<namespace name="Demo">'
        '<enumeration name="Mode"><member name="on" value="1"><doc>On.</doc></member></enumeration>'
        "</namespace>"
    )
    assert lines[2:] == [
        "        class Mode(IntEnum):",
        "            ON = 1",
        "                # unhandled: doc @ 4+3",
    ]


def test_scope_is_restored_after_leaving_subtree():
    _, lines = run(
        '<namespace name="Demo">'
        '<constant name="MAJOR" value="3"><type name="gint" c:type="gint" '
        'xmlns:c="http://www.gtk.org/introspection/c/1.0"/></constant>'
        '<bitfield name="Flags"><member name="a" value="1"/></bitfield>'
        "</namespace>"
    )
    assert lines[2:] == [
        "        MAJOR: Final = 3",
        "            # type gint (gint)",
        "        class Flags(IntFlag):",
        "            A = 1",
    ]


def test_alias_without_target_type():
    _, lines = run('<namespace name="Demo"><alias name="A"><type/></alias></namespace>')
    assert lines[-1] == "            # error alias 'A' = None"


def test_root_frame_collects_its_own_lines():
    emitter, _ = run('<namespace name="Demo"/>')
    assert emitter.root.outputs == ["# repository @ 0+0"]
    assert emitter.root.level == 0


def test_custom_handler_table():
    def repository(node, frame):
        return HandlerResult(f"root {node.tag}")

    emitter = Emitter({"repository": repository})
    lines = list(emitter.lines(load('<namespace name="Demo"/>').tree()))
    assert lines == ["root repository", "    # unhandled: namespace @ 1+0"]
    assert emitter.unhandled == 1


def test_unknown_root_is_unhandled():
    document = GIRDocument.from_buffer("<library/>")
    emitter = Emitter()
    assert list(emitter.lines(document.tree())) == ["# unhandled: library @ 0+0"]


def test_fixture_declarations():
    document = GIRDocument.from_file(FIXTURE_GIR)
    emitter = Emitter()
    text = emitter.emit(document)
    lines = text.splitlines()

    assert text.endswith("\n")
    assert len(lines) == sum(1 for _ in document.tree())
    assert "            Id = int" in lines
    assert "        class Orientation(IntEnum):" in lines
    assert "            HORIZONTAL = 0" in lines
    assert "        class StateFlags(IntFlag):" in lines
    assert "        class Widget(Object):" in lines
    assert "        class Object(InitiallyUnowned):" in lines
    assert (
        "            def load(self, path: str) -> bool: ...  # raises GLib.Error" in lines
    )
    assert (
        "            def set_points(self, points: list[int], labels: list[str], "
        "n_points: int) -> None: ..." in lines
    )
    assert "            def log(self, format: str, *args) -> None: ..." in lines
    assert "            def new(cls) -> Object: ..." in lines
    assert "            def get_default() -> Widget: ..." in lines
    assert "            code: int" in lines
    assert "                    # self widget: Widget" in lines
    assert "                    # param path: str" in lines
    assert "                # returns bool" in lines
    assert "    # unhandled: include @ 1+1" in lines
    assert emitter.unhandled > 0


def test_emit_document_matches_emitter():
    document = GIRDocument.from_file(FIXTURE_GIR)
    assert emit_document(document) == Emitter(ROOT_HANDLERS).emit(document)


def test_lines_are_lazy():
    emitter = Emitter()
    stream = emitter.lines(GIRDocument.from_file(FIXTURE_GIR).tree())
    assert next(stream) == "# repository @ 0+0"
