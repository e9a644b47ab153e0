"""CLI entrypoints for docsync commands."""

from __future__ import annotations

import argparse
import sys
from pathlib import Path

from .config import ConfigError, DocSyncConfig, load_config, parse_unit_spec
from .directives import DirectiveError, DirectiveExpander
from .errors import ResolutionError
from .logging import configure_logging
from .resolver import DocResolver


def _add_verbose_option(
    parser: argparse.ArgumentParser, *, suppress_default: bool = False
) -> None:
    kwargs: dict[str, object] = {
        "action": "store_true",
        "help": "Increase log verbosity for troubleshooting.",
    }
    if suppress_default:
        kwargs["default"] = argparse.SUPPRESS
    else:
        kwargs["default"] = False
    parser.add_argument(
        "-v",
        "--verbose",
        **kwargs,
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="docsync",
        description="Pull doc comments out of source crates and into documentation builds.",
    )
    _add_verbose_option(parser)
    parser.add_argument(
        "--config",
        type=Path,
        default=None,
        help="Path to .docsync.yml or its directory (defaults to the current directory).",
    )
    parser.add_argument(
        "-c",
        "--crate",
        dest="crates",
        action="append",
        default=[],
        metavar="SPEC",
        help="Register a unit as NAME=PATH, or PATH to read the name from Cargo.toml. Repeatable.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve_parser = subparsers.add_parser(
        "resolve",
        help="Print the documentation of one item path.",
    )
    _add_verbose_option(resolve_parser, suppress_default=True)
    resolve_parser.add_argument("path", help="Item path such as my_crate::module::Type::field.")
    resolve_parser.add_argument(
        "--comment",
        action="store_true",
        help="Print the text as a /// comment block.",
    )

    render_parser = subparsers.add_parser(
        "render",
        help="Expand directives in a markdown file.",
    )
    _add_verbose_option(render_parser, suppress_default=True)
    render_parser.add_argument("input", type=Path, help="Markdown file containing directives.")
    render_parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Write the expanded file here instead of standard output.",
    )

    check_parser = subparsers.add_parser(
        "check",
        help="Report every directive that fails to resolve.",
    )
    _add_verbose_option(check_parser, suppress_default=True)
    check_parser.add_argument("files", nargs="+", type=Path, help="Markdown files to check.")

    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP resolution service.",
    )
    _add_verbose_option(serve_parser, suppress_default=True)
    serve_parser.add_argument("--host", default="127.0.0.1", help="Interface to bind.")
    serve_parser.add_argument("--port", type=int, default=8000, help="Port to listen on.")

    return parser


def main(argv: list[str] | None = None) -> None:
    """CLI entrypoint for docsync commands."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    configure_logging(verbose=bool(args.verbose))

    try:
        config = _load_config(args)
    except ConfigError as exc:
        parser.exit(1, f"docsync: {exc}\n")

    if args.command == "serve":
        from .service import run_service

        run_service(config, host=args.host, port=args.port)
        return

    resolver = DocResolver.from_config(config)

    if args.command == "resolve":
        try:
            text = resolver.resolve_path(args.path)
        except ResolutionError as exc:
            parser.exit(1, f"docsync: [{exc.kind}] {exc}\n")
        if args.comment:
            print(f"{args.path} doc:\n")
            print(format_comment(text))
        else:
            print(text)
    elif args.command == "render":
        expander = DirectiveExpander(resolver, config.directive)
        try:
            source = args.input.read_text(encoding="utf-8")
        except OSError as exc:
            parser.exit(1, f"docsync: {exc}\n")
        try:
            rendered = expander.expand(source, source=str(args.input))
        except DirectiveError as exc:
            for failure in exc.failures:
                print(failure.describe(str(args.input)), file=sys.stderr)
            parser.exit(1, f"docsync render failed: {len(exc.failures)} unresolved directive(s)\n")
        if args.output is None:
            sys.stdout.write(rendered)
        else:
            args.output.parent.mkdir(parents=True, exist_ok=True)
            args.output.write_text(rendered, encoding="utf-8")
            print(f"Rendered {_relativize(args.input)} to {_relativize(args.output)}")
    elif args.command == "check":
        expander = DirectiveExpander(resolver, config.directive)
        failed = 0
        for path in args.files:
            try:
                text = path.read_text(encoding="utf-8")
            except OSError as exc:
                print(f"{path}: {exc}", file=sys.stderr)
                failed += 1
                continue
            for failure in expander.check(text):
                print(failure.describe(str(path)), file=sys.stderr)
                failed += 1
        if failed:
            parser.exit(1, f"docsync check failed: {failed} problem(s)\n")
        print(f"All directives resolved in {len(args.files)} file(s)")
    else:  # pragma: no cover - argparse enforces choices
        parser.exit(1, "Unknown command\n")


def format_comment(text: str) -> str:
    """Render doc text as a ``///`` comment block."""
    return "\n".join(f"/// {line}".rstrip() for line in text.split("\n"))


def _load_config(args: argparse.Namespace) -> DocSyncConfig:
    config = load_config(args.config or Path.cwd())
    for spec in args.crates:
        name, path = parse_unit_spec(spec)
        config.units[name] = path
    return config


def _relativize(path: Path) -> str:
    try:
        return str(path.resolve().relative_to(Path.cwd()))
    except ValueError:
        return str(path)


if __name__ == "__main__":
    main(sys.argv[1:])
