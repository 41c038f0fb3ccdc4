"""
Command-line interface for compoundfilter.

This module provides a CLI for converting, validating and inspecting
filter trees stored as JSON.
"""

import argparse
import json
import logging
import sys
from typing import Any, Optional, Sequence

from .. import __version__
from ..config.settings import get_settings
from ..core.editor import nesting_depth
from ..core.errors import FilterError
from ..core.models import CompoundFilter, node_from_dict
from ..core.rewrite import convert_to_wire
from ..core.validation import validate_structure
from ..infrastructure.logging_config import setup_logging, get_logger


logger = get_logger(__name__)


def create_parser() -> argparse.ArgumentParser:
    """
    Create the argument parser for the CLI.

    Returns:
        Configured ArgumentParser.
    """
    parser = argparse.ArgumentParser(
        prog="compoundfilter",
        description="Compound filter conversion and validation tool"
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"compoundfilter {__version__}"
    )

    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable verbose logging"
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Convert command
    convert_parser = subparsers.add_parser("convert", help="Convert a filter tree to the API format")
    convert_parser.add_argument("file", help="Filter tree JSON file ('-' for stdin)")
    convert_parser.add_argument("--max-depth", type=int, default=None,
                                help="Maximum compound nesting of the output")
    convert_parser.add_argument("--max-leaves", type=int, default=None,
                                help="Maximum conditions produced by expansion")

    # Validate command
    validate_parser = subparsers.add_parser("validate", help="Validate a filter tree")
    validate_parser.add_argument("file", help="Filter tree JSON file ('-' for stdin)")

    # Depth command
    depth_parser = subparsers.add_parser("depth", help="Print the nesting depth of a filter tree")
    depth_parser.add_argument("file", help="Filter tree JSON file ('-' for stdin)")

    return parser


def _read_json(source: str) -> Any:
    if source == "-":
        return json.load(sys.stdin)
    with open(source, 'r', encoding='utf-8') as f:
        return json.load(f)


def load_filter(source: str) -> CompoundFilter:
    """
    Load a filter tree from a JSON file.

    Args:
        source: Path to the file, or '-' to read standard input.

    Returns:
        The filter tree.

    Raises:
        OSError: If the file cannot be read.
        json.JSONDecodeError: If the file is not JSON.
        InvalidStructureError: If the JSON does not describe a filter tree.
    """
    return node_from_dict(_read_json(source))


def cmd_convert(args: argparse.Namespace) -> int:
    """
    Convert a filter tree and print the wire filter.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success).
    """
    settings = get_settings()
    max_depth = args.max_depth if args.max_depth is not None else settings.api_max_depth
    max_leaves = args.max_leaves if args.max_leaves is not None else settings.max_expanded_leaves

    if max_depth < 1:
        logger.error(f"--max-depth must be at least 1, got {max_depth}")
        return 1

    root = load_filter(args.file)
    wire = convert_to_wire(root, max_depth=max_depth, max_leaves=max_leaves)
    print(json.dumps(wire, indent=2, ensure_ascii=False))
    return 0


def cmd_validate(args: argparse.Namespace) -> int:
    """
    Validate a filter tree.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for a valid tree).
    """
    root = load_filter(args.file)
    result = validate_structure(root)

    if result.valid:
        print("✓ Filter is valid")
        return 0

    location = f" at path {list(result.path)}" if result.path is not None else ""
    print(f"✗ {result.error}{location}")
    return 1


def cmd_depth(args: argparse.Namespace) -> int:
    """
    Print the group nesting depth of a filter tree.

    Args:
        args: Parsed command-line arguments.

    Returns:
        Exit code (0 for success).
    """
    root = load_filter(args.file)
    print(nesting_depth(root))
    return 0


_COMMANDS = {
    "convert": cmd_convert,
    "validate": cmd_validate,
    "depth": cmd_depth,
}


def main(argv: Optional[Sequence[str]] = None) -> int:
    """
    Main entry point for the CLI.

    Args:
        argv: Arguments to parse. Defaults to sys.argv.

    Returns:
        Exit code.
    """
    parser = create_parser()
    args = parser.parse_args(argv)

    # Setup logging
    settings = get_settings()
    log_level = logging.DEBUG if args.verbose else settings.log_level
    setup_logging(
        level=log_level,
        log_file=settings.log_file_path,
        log_to_file=settings.log_to_file
    )

    handler = _COMMANDS.get(args.command)
    if handler is None:
        parser.print_help()
        return 0

    try:
        return handler(args)
    except FilterError as e:
        logger.error(str(e))
        return 1
    except OSError as e:
        logger.error(f"Could not read {args.file}: {e}")
        return 1
    except json.JSONDecodeError as e:
        logger.error(f"Invalid JSON in {args.file}: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
