"""Subcommand implementations for the keymerge command."""

from __future__ import annotations

import argparse
import json
import logging

from rich.console import Console

from .config import KeymergeConfig, load_config
from .detector import validate_configuration
from .loader import dump_merged, load_batch, load_layers, write_merged
from .merger import merge
from .models import MergedConfig, ValidationResult
from .normalizer import normalize_key
from .report import junit_report, normalized_table, render_merged, render_validation
from .rules import apply_rules
from .tui import run_browser

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_INVALID = 1


def run_normalize(args: argparse.Namespace, console: Console) -> int:
    entries = [(raw, normalize_key(raw)) for raw in args.keys]
    if args.format == "json":
        payload = [
            {
                "input": raw,
                "normalized": normalized.normalized,
                "key": normalized.key,
                "modifiers": list(normalized.ordered_modifiers),
                "sequence": list(normalized.sequence) if normalized.sequence is not None else None,
            }
            for raw, normalized in entries
        ]
        print(json.dumps(payload, indent=2, ensure_ascii=False))
    else:
        console.print(normalized_table(entries))
    return EXIT_OK


def run_validate(args: argparse.Namespace, console: Console) -> int:
    config = load_config(args.config)
    batch = [record for path in args.files for record in load_batch(path)]
    result = validate_configuration(batch)
    if config.rules:
        result.extend(apply_rules(batch, config.rules))

    if args.format == "json":
        print(json.dumps(result.to_dict(), indent=2, ensure_ascii=False))
    elif args.format == "junit":
        print(junit_report(result))
    else:
        render_validation(result, console)
    return _exit_code(result, strict=args.strict)


def run_merge(args: argparse.Namespace, console: Console) -> int:
    merged = _merge_from_args(args)
    if args.output:
        write_merged(merged, args.output)
        logger.info("wrote %s", args.output)

    if args.format == "json":
        if not args.output:
            print(dump_merged(merged))
    else:
        render_merged(merged, console)
    return _exit_code(merged.validation, strict=False)


def run_browse(args: argparse.Namespace, console: Console) -> int:
    run_browser(_merge_from_args(args))
    return EXIT_OK


def merge_config_from_args(args: argparse.Namespace) -> KeymergeConfig:
    """Load the config file and apply the command-line switches on top."""
    config = load_config(args.config)
    return config.with_overrides(
        resolve_conflicts=False if args.no_resolve else None,
        prioritize_user_config=False if args.no_user_priority else None,
        allow_system_overrides=True if args.allow_system_overrides else None,
        preserve_disabled=False if args.drop_disabled else None,
        generate_suggestions=False if args.no_suggestions else None,
    )


def _merge_from_args(args: argparse.Namespace) -> MergedConfig:
    config = merge_config_from_args(args)
    merged = merge(load_layers(args.layers), config.merge)
    if config.rules:
        merged.validation.extend(apply_rules(merged.keybinds(), config.rules))
    return merged


def _exit_code(result: ValidationResult, *, strict: bool) -> int:
    if not result.valid or (strict and result.warnings):
        return EXIT_INVALID
    return EXIT_OK
