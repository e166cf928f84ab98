"""
CLI commands for inspecting GIR documents.
"""

import argparse
import json
import logging
import sys

from .adapter import GIRDocument
from .cache import builder_config_from_key
from .emitter import Emitter
from .gir_parser import parse_gir
from .merger import build_model_set
from .models import Class, entity_to_dict


def setup_logging(verbose: bool = False):
    """Setup logging configuration."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )


def cmd_summary(args):
    """Print namespace, prefixes and per-category counts as JSON."""
    setup_logging(args.verbose)

    config = builder_config_from_key(args.config)
    models = build_model_set(args.files, config=config)
    if len(models) != len(args.files):
        print("✗ Some documents could not be loaded", file=sys.stderr)
    print(json.dumps([model.summary() for model in models], indent=2))
    return 0 if models and len(models) == len(args.files) else 1


def cmd_emit(args):
    """Write the emitter output for a document to stdout."""
    setup_logging(args.verbose)

    document = GIRDocument.from_file(args.file)
    if document is None:
        print(f"✗ Cannot load {args.file}", file=sys.stderr)
        return 1
    emitter = Emitter()
    for line in emitter.lines(document.tree()):
        print(line)
    if emitter.unhandled:
        logging.getLogger(__name__).info("%d unhandled nodes", emitter.unhandled)
    return 0


def cmd_lookup(args):
    """Print one entity as JSON."""
    setup_logging(args.verbose)

    model = parse_gir(args.file, config=builder_config_from_key(args.config))
    if model is None:
        print(f"✗ Cannot load {args.file}", file=sys.stderr)
        return 1
    entity = model.find(args.name)
    if entity is None:
        print(f"✗ No type named {args.name}", file=sys.stderr)
        return 1
    print(json.dumps(entity_to_dict(entity), indent=2))
    return 0


def cmd_ancestry(args):
    """Print a class's parent chain, one name per line."""
    setup_logging(args.verbose)

    models = build_model_set(args.files, config=builder_config_from_key(args.config))
    if not models:
        print("✗ No document could be loaded", file=sys.stderr)
        return 1
    registry = models[0].registry
    entity = registry.lookup(args.name)
    if not isinstance(entity, Class):
        print(f"✗ No class named {args.name}", file=sys.stderr)
        return 1
    print(entity.name)
    for ancestor in registry.ancestry(entity):
        print(ancestor.name)
    return 0


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="GObject-Introspection document inspection CLI",
        prog="gir-schema"
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Builder options as key=value pairs, e.g. 'blacklist=Foo|Bar'"
    )

    subparsers = parser.add_subparsers(
        dest="command",
        help="Available commands"
    )

    summary_parser = subparsers.add_parser(
        "summary",
        help="Build documents (dependencies first) and print their summaries"
    )
    summary_parser.add_argument("files", nargs="+", help="GIR documents")
    summary_parser.set_defaults(func=cmd_summary)

    emit_parser = subparsers.add_parser(
        "emit",
        help="Render a document as Python stub text"
    )
    emit_parser.add_argument("file", help="GIR document")
    emit_parser.set_defaults(func=cmd_emit)

    lookup_parser = subparsers.add_parser(
        "lookup",
        help="Show one entity of a document"
    )
    lookup_parser.add_argument("file", help="GIR document")
    lookup_parser.add_argument("name", help="Entity name without namespace")
    lookup_parser.set_defaults(func=cmd_lookup)

    ancestry_parser = subparsers.add_parser(
        "ancestry",
        help="Resolve a class's parents across documents"
    )
    ancestry_parser.add_argument("name", help="Class name")
    ancestry_parser.add_argument("files", nargs="+", help="GIR documents, dependencies first")
    ancestry_parser.set_defaults(func=cmd_ancestry)

    args = parser.parse_args(argv)

    if not hasattr(args, 'func'):
        parser.print_help()
        return 1

    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
