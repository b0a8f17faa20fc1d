"""Top-level CLI entrypoint dispatcher."""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence

from rich.console import Console
from rich.logging import RichHandler

from . import __version__
from .cli import run_browse, run_merge, run_normalize, run_validate
from .errors import KeymergeError

EXIT_USAGE = 2


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="keymerge",
        description="Normalize, validate and merge keyboard shortcuts from several tools.",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable debug logging")
    commands = parser.add_subparsers(dest="command", required=True)

    normalize = commands.add_parser("normalize", help="show the canonical form of key notations")
    normalize.add_argument("keys", nargs="+", metavar="KEY")
    normalize.add_argument("--format", choices=("text", "json"), default="text")
    normalize.set_defaults(handler=run_normalize)

    validate = commands.add_parser("validate", help="check keybind batches for conflicts")
    validate.add_argument("files", nargs="+", metavar="FILE")
    validate.add_argument("--config", metavar="PATH", help="TOML file with merge options and rules")
    validate.add_argument("--strict", action="store_true", help="fail on warnings too")
    validate.add_argument("--format", choices=("text", "json", "junit"), default="text")
    validate.set_defaults(handler=run_validate)

    merge = commands.add_parser("merge", help="merge per-tool keybinding layers")
    _add_merge_arguments(merge)
    merge.add_argument("--output", "-o", metavar="PATH", help="write the merged config as JSON")
    merge.add_argument("--format", choices=("text", "json"), default="text")
    merge.set_defaults(handler=run_merge)

    browse = commands.add_parser("browse", help="browse merge conflicts in the terminal")
    _add_merge_arguments(browse)
    browse.set_defaults(handler=run_browse)
    return parser


def _add_merge_arguments(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("layers", metavar="LAYERS", help="JSON file of per-tool layers")
    parser.add_argument("--config", metavar="PATH", help="TOML file with merge options and rules")
    parser.add_argument("--no-resolve", action="store_true", help="leave hard collisions unresolved")
    parser.add_argument("--no-user-priority", action="store_true", help="do not let user bindings win layering")
    parser.add_argument(
        "--allow-system-overrides",
        action="store_true",
        help="let later layers replace system bindings",
    )
    parser.add_argument("--drop-disabled", action="store_true", help="omit disabled bindings from the output")
    parser.add_argument("--no-suggestions", action="store_true", help="skip suggestion generation")


def configure_logging(verbose: bool) -> None:
    logger = logging.getLogger("keymerge")
    if verbose:
        if not any(isinstance(handler, RichHandler) for handler in logger.handlers):
            logger.addHandler(RichHandler(console=Console(stderr=True), show_path=False))
        logger.setLevel(logging.DEBUG)
    else:
        logger.setLevel(logging.WARNING)


def main(argv: Sequence[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(args.verbose)

    try:
        return args.handler(args, Console())
    except KeymergeError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return EXIT_USAGE


if __name__ == "__main__":
    raise SystemExit(main())
