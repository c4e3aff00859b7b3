"""
VibeScript CLI Entrypoint.

This module provides the command-line interface for parsing VibeScript source.

Features:
    - Read source from `.vibe` files or inline strings.
    - Lex and parse the code, collecting diagnostics.
    - Print the syntax tree as JSON or as an s-expression.
    - Output to console or file.
    - Report diagnostics on stderr and signal them through the exit status.

Example usage:
    vibe hello.vibe
    vibe -s "x = 1 + 2" --format sexp
    vibe app.vibe -o app.json --fail-fast
    vibe app.vibe --config vibe.json --verbose

Functions:
    run_vibe(source: str, is_string: bool = False, fmt: str = "json", out: str | None = None,
             config: ParserConfig | None = None, pretty: bool = False) -> int:
        Executes the pipeline (read → parse → render → output) and returns the exit status.

    main() -> None:
        Parses CLI arguments and invokes `run_vibe`.
"""

import argparse
import json
import logging
import sys

from vibe.vibe_config import ConfigError, ParserConfig
from vibe.vibe_errors import LexError, ResourceLimitError, VibeSyntaxError
from vibe.vibe_parser import parse

logger = logging.getLogger(__name__)


def run_vibe(
    source: str,
    is_string: bool = False,
    fmt: str = "json",
    out: str | None = None,
    config: ParserConfig | None = None,
    pretty: bool = False,
) -> int:
    """
    Run the VibeScript front-end: read, parse, render the tree, report diagnostics.

    Args:
        source (str): VibeScript source code or path to a `.vibe` file.
        is_string (bool): If True, treats `source` as raw code instead of a file path.
        fmt (str): Tree rendering, "json" or "sexp". Defaults to "json".
        out (str | None): Optional path to write the rendered tree. If None, prints to stdout.
        config (ParserConfig | None): Parser options; defaults apply when None.
        pretty (bool): If True, prints banners around the output and indents JSON.

    Returns:
        int: 0 for a clean parse, 1 when any diagnostic was produced.

    Raises:
        ValueError: If `is_string` is False and the source does not end with '.vibe'.
    """
    if not is_string and not source.endswith(".vibe"):
        raise ValueError("Only .vibe files are supported.")
    name = "<string>"
    if not is_string:
        name = source
        with open(source, encoding="utf-8") as f:
            source = f.read()

    try:
        result = parse(source, config)
    except (LexError, VibeSyntaxError, ResourceLimitError) as e:
        print(e.diagnostic.format(name), file=sys.stderr)
        return 1

    if fmt == "sexp":
        rendered = result.tree.to_sexp()
    else:
        rendered = json.dumps(result.tree.to_dict(), indent=2 if pretty else None)

    if out:
        with open(out, "w", encoding="utf-8") as f:
            f.write(rendered + "\n")
        if pretty:
            print(f"(wrote to {out})")
    elif pretty:
        banner = "=" * 20
        print(f"{banner}\nSyntax tree\n{banner}\n{rendered}\n{banner}")
    else:
        print(rendered)

    for diagnostic in result.diagnostics:
        print(diagnostic.format(name), file=sys.stderr)
    logger.info("%s: %d node(s), %d diagnostic(s)", name, len(result.tree), len(result.diagnostics))
    return 0 if result.ok else 1


def main() -> None:
    """
    Entry point for the VibeScript CLI.

    Supported flags:
        - `-s`, `--string`: Interpret source as a raw string instead of a file path.
        - `-f`, `--format`: Tree output format ('json' or 'sexp'), default is 'json'.
        - `-o`, `--out`: Write the rendered tree to a file.
        - `-p`, `--pretty`: Indented JSON and banners.
        - `--fail-fast`: Stop at the first error instead of recovering.
        - `--max-depth`: Maximum nesting depth.
        - `--config`: JSON file with parser options; flags override it.
        - `--verbose`: Debug logging.

    Exits with status 1 when diagnostics were produced, 2 on usage errors.
    """
    parser = argparse.ArgumentParser(prog="vibe")
    parser.add_argument("source", help="Filename or raw source (with -s)")
    parser.add_argument(
        "-s", "--string", action="store_true", help="Interpret source as literal string"
    )
    parser.add_argument(
        "-f",
        "--format",
        choices=("json", "sexp"),
        default="json",
        help="Tree output format (default: json)",
    )
    parser.add_argument("-o", "--out", metavar="OUTFILE", help="Output to file")
    parser.add_argument(
        "-p", "--pretty", action="store_true", help="Indented output with banners"
    )
    parser.add_argument(
        "--fail-fast", action="store_true", help="Stop at the first error"
    )
    parser.add_argument("--max-depth", type=int, help="Maximum nesting depth")
    parser.add_argument("--config", metavar="FILE", help="JSON parser configuration")
    parser.add_argument("--verbose", action="store_true", help="Debug logging")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    try:
        options = ParserConfig.load_from_json(args.config).to_dict() if args.config else {}
        if args.fail_fast:
            options["fail_fast"] = True
        if args.max_depth is not None:
            options["max_depth"] = args.max_depth
        config = ParserConfig.from_dict(options)
    except ConfigError as e:
        for problem in e.problems:
            print(f"config: {problem}", file=sys.stderr)
        parser.error(str(e))

    try:
        status = run_vibe(
            source=args.source,
            is_string=args.string,
            fmt=args.format,
            out=args.out,
            config=config,
            pretty=args.pretty,
        )
    except (OSError, ValueError) as e:
        parser.error(str(e))
    sys.exit(status)


if __name__ == "__main__" and not any("pytest" in arg for arg in sys.argv):
    main()
