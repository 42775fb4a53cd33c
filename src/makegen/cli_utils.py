"""CLI utility functions for Makegen.

This module provides common utilities used by the CLI commands:
- Generator configuration assembly from the environment, an INI file and flags
- Error handling and formatting
- Model path validation
"""

import shlex
import sys
from pathlib import Path
from typing import List, Optional

from makegen.config import GeneratorConfig
from makegen.errors import MakegenError

DEFAULT_CONFIG_NAME = "makegen.ini"
RUN_ONLY_FLAGS = ("-v", "--verbose", "--no-auto-deps")


class ConfigResolver:
    """Builds the GeneratorConfig for a CLI run."""

    @staticmethod
    def find_config_file(model_path: Path, config_path: Optional[Path] = None) -> Optional[Path]:
        """Return the INI file to use, if any.

        An explicit path is used as given. Otherwise a makegen.ini beside the
        model file is picked up when present.
        """
        if config_path is not None:
            return config_path
        candidate = model_path.parent / DEFAULT_CONFIG_NAME
        return candidate if candidate.exists() else None

    @staticmethod
    def generator_arguments(argv: List[str]) -> str:
        """Arguments for re-running the generator from inside make.

        Options that only affect this run are left out so that a
        `<module>_depends` target can append its own --check-module and
        still have the dependency check enabled.
        """
        kept = []
        skip_next = False
        for arg in argv:
            if skip_next:
                skip_next = False
                continue
            if arg == "--check-module":
                skip_next = True
                continue
            if arg.startswith("--check-module=") or arg in RUN_ONLY_FLAGS:
                continue
            kept.append(arg)
        return " ".join(shlex.quote(arg) for arg in kept)


class ErrorFormatter:
    """Formats and displays error messages with ANSI color codes."""

    # ANSI color codes
    RED = "\033[1;31m"
    GREEN = "\033[1;32m"
    YELLOW = "\033[1;33m"
    RESET = "\033[0m"

    @staticmethod
    def print_error(title: str, message: str) -> None:
        """Print formatted error message.

        Args:
            title: Error title (e.g., "Generation failed")
            message: Error message details
        """
        print()
        print(f"{ErrorFormatter.RED}✗ {title}{ErrorFormatter.RESET}")
        print()
        print(message)
        print()

    @staticmethod
    def print_success(message: str) -> None:
        print()
        print(f"{ErrorFormatter.GREEN}✓ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def print_warning(message: str) -> None:
        print()
        print(f"{ErrorFormatter.YELLOW}✗ {message}{ErrorFormatter.RESET}")

    @staticmethod
    def handle_makegen_error(error: MakegenError) -> None:
        """Report a fatal generation error and exit with status 1."""
        ErrorFormatter.print_error("Generation failed!", str(error))
        sys.exit(1)

    @staticmethod
    def handle_keyboard_interrupt() -> None:
        """Handle KeyboardInterrupt with standard formatting."""
        ErrorFormatter.print_warning("Generation interrupted")
        sys.exit(130)  # Standard exit code for SIGINT

    @staticmethod
    def handle_unexpected_error(error: Exception, verbose: bool = False) -> None:
        """Handle unexpected errors with standard formatting.

        Args:
            error: The exception to handle
            verbose: Whether to print traceback
        """
        message = f"{type(error).__name__}: {error}"
        ErrorFormatter.print_error("Unexpected error", message)

        if verbose:
            import traceback

            print("Traceback:")
            print(traceback.format_exc())

        sys.exit(1)


class PathValidator:
    """Validates input paths."""

    @staticmethod
    def validate_model_file(model_path: Path) -> None:
        """Exit with status 2 unless `model_path` is an existing file."""
        if not model_path.exists():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path does not exist: {model_path}{ErrorFormatter.RESET}"
            )
            sys.exit(2)
        if not model_path.is_file():
            print(
                f"{ErrorFormatter.RED}✗ Error: Path is not a file: {model_path}{ErrorFormatter.RESET}"
            )
            sys.exit(2)


def build_config(
    model_path: Path,
    config_path: Optional[Path] = None,
    makefile: Optional[str] = None,
    verbose: bool = False,
    check_module: Optional[str] = None,
    automatic_dependencies: bool = True,
    generator_arguments: str = "",
) -> GeneratorConfig:
    """Layer defaults, environment, INI file and command-line flags.

    Raises:
        ConfigurationError: If the INI file is missing or malformed
    """
    config = GeneratorConfig.from_environment(project_root=model_path.resolve().parent)
    ini_path = ConfigResolver.find_config_file(model_path, config_path)
    if ini_path is not None:
        config.load_ini(ini_path)

    if makefile:
        config.makefile = makefile
    if verbose:
        config.verbose = True
    if check_module:
        config.check_dependencies_for_module_only = check_module
    if not automatic_dependencies:
        config.automatic_dependencies = False
    config.generator_arguments = generator_arguments
    return config
