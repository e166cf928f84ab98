"""Tests for building entity models from GIR documents."""

import logging
from pathlib import Path

import pytest

from gir_schema_api.gir_parser import (
    DEPRECATED_DEFAULT,
    BuilderConfig,
    parse_gir,
    parse_gir_buffer,
)
from gir_schema_api.models import (
    DiagnosticKind,
    EntityKind,
    Unresolved,
    entity_to_dict,
    is_array,
    is_unresolved,
    is_varargs,
    is_void,
)
from gir_schema_api.registry import TypeRegistry

FIXTURE_GIR = Path(__file__).resolve().parent / "fixtures" / "gir" / "Demo-1.0.gir"

CORE = "http://www.gtk.org/introspection/core/1.0"
C = "http://www.gtk.org/introspection/c/1.0"


def make_gir(body: str, namespace_attrs: str = 'name="Test"') -> str:
    return (
        f'<repository xmlns="{CORE}" xmlns:c="{C}">'
        f"<namespace {namespace_attrs}>{body}</namespace>"
        "</repository>"
    )


@pytest.fixture(scope="module")
def model():
    built = parse_gir(FIXTURE_GIR)
    assert built is not None
    return built


def _by_name(entities, name):
    return next(entity for entity in entities if entity.name == name)


# ---------------- Fixture document ---------------- #


def test_namespace_metadata(model):
    assert model.prefix == "Demo"
    assert model.identifier_prefixes == ["Demo", "D"]
    assert model.symbol_prefixes == ["demo", "d"]
    assert model.source == str(FIXTURE_GIR)


def test_duplicate_alias_is_dropped(model):
    assert [alias.name for alias in model.aliases] == ["Id", "Handle"]
    assert model.registry.lookup("Id").ctype == "guint32"
    duplicates = [d for d in model.diagnostics if d.kind is DiagnosticKind.DUPLICATE_DEFINITION]
    assert len(duplicates) == 1
    assert duplicates[0].name == "Id"
    assert duplicates[0].index == 2


def test_alias_fields(model):
    alias = model.aliases[0]
    assert alias.kind is EntityKind.ALIAS
    assert alias.type == "DemoId"
    assert alias.ctype == "guint32"
    assert alias.comment == "Identifier of a widget."
    assert not is_array(alias)


def test_constants(model):
    major, name = model.constants
    assert major.value == 3
    assert major.ctype == "gint"
    # non-numeric value falls back to the positional index
    assert name.value == 1
    assert name.raw_value == "demo"


def test_enumeration_members(model):
    (orientation,) = model.enumerations
    assert orientation.type == "DemoOrientation"
    assert [m.name for m in orientation.members] == ["horizontal", "vertical"]
    assert [m.value for m in orientation.members] == [0, 1]
    assert orientation.members[1].ctype == "DEMO_ORIENTATION_VERTICAL"


def test_bitfields_are_tagged(model):
    (flags,) = model.bitfields
    assert flags.kind is EntityKind.BITFIELD
    assert [m.value for m in flags.members] == [0, 1, 2]
    assert model.registry.kind_of("StateFlags") is EntityKind.BITFIELD


def test_record_fields(model):
    (error,) = model.records
    assert error.type == "DemoErrorType"
    assert error.ctype == "DemoError"
    assert error.cprefix == "error"
    assert error.typegetter == "demo_error_get_type"
    (copy,) = error.methods
    assert copy.cname == "demo_error_copy"
    assert copy.returns.ctype == "DemoError*"
    (instance,) = copy.args
    assert instance.instance is True
    assert instance.type == "Error"
    assert instance.ctype == "const DemoError*"


def test_error_type_is_taken_from_error_datatype(model):
    assert model.error_type == "DemoErrorType"


def test_records_and_classes_enter_record_registry(model):
    assert model.registry.is_record("Error")
    assert model.registry.is_record("Widget")
    assert not model.registry.is_record("Orientation")


def test_class_parents_are_names(model):
    assert [c.name for c in model.classes] == ["Object", "Widget", "Button"]
    widget = _by_name(model.classes, "Widget")
    assert widget.parent == "Object"
    assert widget.version == "1.2"
    assert widget.comment == "Base class for all widgets."
    button = _by_name(model.classes, "Button")
    assert [c.name for c in model.registry.ancestry(button)] == ["Widget", "Object"]


def test_methods_functions_constructors(model):
    widget = _by_name(model.classes, "Widget")
    assert [m.name for m in widget.methods] == ["load", "set_points", "log", "show"]
    assert [f.cname for f in widget.functions] == ["demo_widget_get_default"]
    obj = _by_name(model.classes, "Object")
    (new,) = obj.constructors
    assert new.cname == "demo_object_new"
    assert new.args == ()


def test_throws_flag(model):
    widget = _by_name(model.classes, "Widget")
    methods = {m.name: m for m in widget.methods}
    assert methods["load"].throws_error is True
    assert methods["show"].throws_error is False
    assert methods["set_points"].throws_error is False


def test_method_arguments(model):
    load = _by_name(_by_name(model.classes, "Widget").methods, "load")
    assert [a.name for a in load.args] == ["widget", "path"]
    assert [a.instance for a in load.args] == [True, False]
    assert load.args[1].type == "utf8"
    assert load.args[1].ctype == "const gchar*"
    assert load.returns.type == "gboolean"
    assert not is_void(load.returns)


def test_missing_return_value_is_void(model):
    show = _by_name(_by_name(model.classes, "Widget").methods, "show")
    assert show.returns.type == "Void"
    assert show.returns.ctype == "void"
    assert is_void(show.returns)


def test_array_arguments(model):
    set_points = _by_name(_by_name(model.classes, "Widget").methods, "set_points")
    args = {a.name: a for a in set_points.args}

    points = args["points"]
    assert is_array(points)
    assert points.ctype == "gint*"
    assert points.type == "gint*"
    assert [t.ctype for t in points.contained_types] == ["gint"]

    labels = args["labels"]
    assert labels.type == "GLib.HashTable"
    assert labels.ctype == "GHashTable*"
    assert [t.ctype for t in labels.contained_types] == ["gchar*", "gint"]

    assert not is_array(args["n_points"])


def test_varargs_and_deprecation(model):
    log = _by_name(_by_name(model.classes, "Widget").methods, "log")
    assert is_varargs(log)
    dots = log.args[-1]
    assert dots.varargs is True
    assert dots.type == Unresolved(index=2, expected="type", reason="missing")
    assert log.deprecated == DEPRECATED_DEFAULT
    assert log.marked_as_deprecated is True
    assert log.introspectable is False


def test_deprecation_documentation(model):
    button = _by_name(model.classes, "Button")
    assert button.deprecated == "Use Widget instead."
    assert button.marked_as_deprecated is False


def test_fixture_has_no_missing_attribute_diagnostics(model):
    assert not [d for d in model.diagnostics if d.kind is DiagnosticKind.MISSING_ATTRIBUTE]


def test_summary_and_to_dict(model):
    summary = model.summary()
    assert summary["namespace"] == "Demo"
    assert summary["counts"] == {
        "aliases": 2,
        "constants": 2,
        "enumerations": 1,
        "bitfields": 1,
        "records": 1,
        "classes": 3,
    }
    data = model.to_dict()
    assert len(data["types"]) == 10
    assert data["types"][0]["kind"] == "alias"


# ---------------- Minimal documents ---------------- #


def test_minimal_alias():
    built = parse_gir_buffer(make_gir('<alias name="MyAlias" type="gint"/>'))
    assert len(built.aliases) == 1
    alias = built.aliases[0]
    assert alias.name == "MyAlias"
    assert alias.type == "gint"
    assert built.registry.names() == ["MyAlias"]


def test_missing_type_child_is_unresolved():
    built = parse_gir_buffer(make_gir('<alias name="Bare"/>'))
    ctype = built.aliases[0].ctype
    assert is_unresolved(ctype)
    assert ctype.index == 0
    assert any(d.kind is DiagnosticKind.MISSING_ATTRIBUTE for d in built.diagnostics)


def test_constant_value_defaults_to_index():
    built = parse_gir_buffer(
        make_gir('<constant name="A"/><constant name="B" value="7"/><constant name="C"/>')
    )
    assert [c.value for c in built.constants] == [0, 7, 2]
    assert built.constants[0].raw_value is None


def test_missing_name_is_synthesized():
    built = parse_gir_buffer(make_gir('<alias type="gint"/>'))
    assert built.aliases[0].name == "Unknown0"
    assert any(
        d.kind is DiagnosticKind.MISSING_ATTRIBUTE and d.index == 0 for d in built.diagnostics
    )


@pytest.mark.parametrize(
    "throws, expected",
    [('throws="1"', True), ('throws="2"', True), ('throws="0"', False), ("", False)],
)
def test_throws_parsing(throws, expected):
    built = parse_gir_buffer(
        make_gir(f'<record name="R" c:type="R"><method name="m" {throws}/></record>')
    )
    assert built.records[0].methods[0].throws_error is expected


def test_parameters_without_wrapper():
    built = parse_gir_buffer(
        make_gir(
            '<record name="R" c:type="R"><function name="f">'
            '<parameter name="a"><type name="gint" c:type="gint"/></parameter>'
            "</function></record>"
        )
    )
    (arg,) = built.records[0].functions[0].args
    assert arg.name == "a"
    assert arg.ctype == "gint"


def test_untyped_parameter_is_unresolved():
    built = parse_gir_buffer(
        make_gir(
            '<record name="R" c:type="R"><method name="m"><parameters>'
            '<parameter name="ok"><type name="gint" c:type="gint"/></parameter>'
            '<parameter name="p"/>'
            "</parameters></method></record>"
        )
    )
    arg = built.records[0].methods[0].args[1]
    assert arg.type == Unresolved(index=1, expected="type", reason="missing")
    assert arg.ctype == Unresolved(index=1, expected="ctype", reason="missing")
    assert not is_void(arg)


def test_dotted_parameter_name_marks_varargs():
    built = parse_gir_buffer(
        make_gir(
            '<record name="R" c:type="R"><method name="m"><parameters>'
            '<parameter name="..."/>'
            "</parameters></method></record>"
        )
    )
    (arg,) = built.records[0].methods[0].args
    assert arg.varargs is True
    assert entity_to_dict(arg)["varargs"] is True
    assert is_unresolved(arg.type)
    assert not [d for d in built.diagnostics if d.kind is DiagnosticKind.MISSING_ATTRIBUTE]


def test_missing_type_attribute_defaults_to_empty():
    built = parse_gir_buffer(
        make_gir(
            '<alias name="A"><type name="gint" c:type="gint"/></alias>'
            '<enumeration name="E"/>'
            '<record name="R" c:type="R"/>'
        )
    )
    assert built.aliases[0].type == ""
    assert built.enumerations[0].type == ""
    assert built.records[0].type == ""
    assert not built.diagnostics


def test_duplicate_across_categories_is_logged(caplog):
    with caplog.at_level(logging.WARNING, logger="gir_schema_api.gir_parser"):
        built = parse_gir_buffer(
            make_gir('<alias name="X" type="gint"/><constant name="X" value="1"/>')
        )
    assert [a.name for a in built.aliases] == ["X"]
    assert built.constants == []
    assert "Duplicate type 'X' for constant ignored!" in caplog.text


def test_prefix_lists_sorted_longest_first():
    built = parse_gir_buffer(
        make_gir("", 'name="Gtk" c:identifier-prefixes="G,Gtk" c:symbol-prefixes="gtk,g"')
    )
    assert built.identifier_prefixes == ["Gtk", "G"]
    assert built.symbol_prefixes == ["gtk", "g"]


def test_custom_prefix_delimiter():
    config = BuilderConfig(prefix_delimiter=";")
    built = parse_gir_buffer(
        make_gir("", 'name="Gtk" c:identifier-prefixes="G;Gtk"'), config=config
    )
    assert built.identifier_prefixes == ["Gtk", "G"]


def test_blacklist_excludes_names():
    config = BuilderConfig(blacklist=frozenset({"Hidden"}))
    built = parse_gir_buffer(
        make_gir('<alias name="Hidden" type="gint"/><alias name="Shown" type="gint"/>'),
        config=config,
    )
    assert [a.name for a in built.aliases] == ["Shown"]
    assert "Hidden" not in built.registry
    assert [d.kind for d in built.diagnostics if d.name == "Hidden"] == [
        DiagnosticKind.BLACKLISTED
    ]


def test_error_type_default_and_override():
    plain = parse_gir_buffer(make_gir('<alias name="A" type="gint"/>'))
    assert plain.error_type == "GErrorType"

    config = BuilderConfig(error_type_name="Failure", default_error_type="Unset")
    custom = parse_gir_buffer(
        make_gir('<record name="Failure" c:type="TestFailure" glib:type-name="TestFailureType" '
                 'xmlns:glib="http://www.gtk.org/introspection/glib/1.0"/>'),
        config=config,
    )
    assert custom.error_type == "TestFailureType"
    assert parse_gir_buffer(make_gir(""), config=config).error_type == "Unset"


def test_shared_registry_first_document_wins():
    registry = TypeRegistry()
    first = parse_gir_buffer(make_gir('<alias name="A" type="gint"/>'), registry=registry)
    second = parse_gir_buffer(
        make_gir('<alias name="A" type="guint"/><alias name="B" type="gint"/>'),
        registry=registry,
    )
    assert [a.name for a in first.aliases] == ["A"]
    assert [a.name for a in second.aliases] == ["B"]
    assert registry.lookup("A").type == "gint"


def test_separate_builds_do_not_share_names():
    first = parse_gir_buffer(make_gir('<alias name="A" type="gint"/>'))
    second = parse_gir_buffer(make_gir('<alias name="A" type="guint"/>'))
    assert second.aliases[0].type == "guint"
    assert first.registry is not second.registry


def test_load_failures_return_none(tmp_path):
    assert parse_gir(tmp_path / "missing.gir") is None
    assert parse_gir_buffer("<repository>") is None
