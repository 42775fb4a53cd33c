"""
Command-line interface for Makegen.

This module provides the `makegen` CLI tool for generating Makefiles from
resolved project models.
"""

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from makegen import __version__
from makegen.build import MakefileBackend
from makegen.cli_utils import (
    ConfigResolver,
    ErrorFormatter,
    PathValidator,
    build_config,
)
from makegen.errors import MakegenError
from makegen.project import load_project


@dataclass
class GenerateArgs:
    """Arguments for the generate command."""

    model: Path
    config: Optional[Path] = None
    makefile: Optional[str] = None
    check_module: Optional[str] = None
    automatic_dependencies: bool = True
    verbose: bool = False
    generator_arguments: str = ""


def generate_command(args: GenerateArgs) -> None:
    """Generate a Makefile for a project model.

    Examples:
        makegen generate project.json                  # Write the project's makefile
        makegen generate project.json -o build.mak     # Write to another file
        makegen generate project.json -c makegen.ini   # Use a configuration file
        makegen generate project.json --check-module foo
        makegen generate project.json --no-auto-deps
    """
    print(f"Makegen Makefile Generator v{__version__}")
    print()

    try:
        config = build_config(
            args.model,
            config_path=args.config,
            makefile=args.makefile,
            verbose=args.verbose,
            check_module=args.check_module,
            automatic_dependencies=args.automatic_dependencies,
            generator_arguments=args.generator_arguments,
        )
        project = load_project(args.model)

        if args.verbose:
            print(f"Project: {project.name}")
            print(f"Model: {args.model}")
            print()

        backend = MakefileBackend(project, config)
        result = backend.process()

        if result.makefile is not None:
            ErrorFormatter.print_success("Makefile generated!")
            print()
            print(f"Makefile: {result.makefile}")
            print(f"Generation time: {result.generation_time:.2f}s")
        if result.touched_files and args.verbose:
            print(f"Sources touched by dependency check: {len(result.touched_files)}")
        sys.exit(0)

    except MakegenError as e:
        ErrorFormatter.handle_makegen_error(e)
    except KeyboardInterrupt:
        ErrorFormatter.handle_keyboard_interrupt()
    except Exception as e:
        ErrorFormatter.handle_unexpected_error(e, args.verbose)


def main(argv: Optional[List[str]] = None) -> None:
    """Makegen - Makefile generator for mingw project builds."""
    if argv is None:
        argv = sys.argv[1:]

    parser = argparse.ArgumentParser(
        prog="makegen",
        description="Makegen - Makefile generator for mingw project builds",
    )
    parser.add_argument(
        "--version",
        action="version",
        version=f"makegen {__version__}",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    generate_parser = subparsers.add_parser(
        "generate",
        help="Generate a Makefile from a project model",
    )
    generate_parser.add_argument(
        "model",
        type=Path,
        help="Project model file (JSON)",
    )
    generate_parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=None,
        help="Configuration file (default: makegen.ini beside the model, if present)",
    )
    generate_parser.add_argument(
        "-o",
        "--output",
        default=None,
        help="Makefile to write (default: the project's makefile)",
    )
    generate_parser.add_argument(
        "--check-module",
        default=None,
        metavar="NAME",
        help="Only check automatic dependencies of one module",
    )
    generate_parser.add_argument(
        "--no-auto-deps",
        action="store_true",
        help="Skip the automatic dependency check",
    )
    generate_parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show verbose output",
    )

    parsed_args = parser.parse_args(argv)

    if not parsed_args.command:
        parser.print_help()
        sys.exit(0)

    logging.basicConfig(
        level=logging.DEBUG if parsed_args.verbose else logging.WARNING,
        format="%(levelname)s: %(message)s",
    )

    if parsed_args.command == "generate":
        PathValidator.validate_model_file(parsed_args.model)
        generate_args = GenerateArgs(
            model=parsed_args.model,
            config=parsed_args.config,
            makefile=parsed_args.output,
            check_module=parsed_args.check_module,
            automatic_dependencies=not parsed_args.no_auto_deps,
            verbose=parsed_args.verbose,
            generator_arguments=ConfigResolver.generator_arguments(argv),
        )
        generate_command(generate_args)


if __name__ == "__main__":
    main()
