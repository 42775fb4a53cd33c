"""
Generator configuration.

Settings come from three layers, later layers overriding earlier ones:
built-in defaults, environment variables for the directory roots, and an
optional INI file with a [makegen] section:

    [makegen]
    intermediate = obj-i386
    output = output-i386
    install = reactos
    automatic_dependencies = yes
    proxy_makefiles_in_source_tree = no
    make_handles_install_directories = no
    verbose = no
"""

import configparser
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Mapping, Optional

from ..errors import ConfigurationError

INTERMEDIATE_VARIABLE = "$(INTERMEDIATE)"
OUTPUT_VARIABLE = "$(OUTPUT)"
INSTALL_VARIABLE = "$(INSTALL)"

ENV_INTERMEDIATE = "MAKEGEN_INTERMEDIATE"
ENV_OUTPUT = "MAKEGEN_OUTPUT"
ENV_INSTALL = "MAKEGEN_INSTALL"

DEFAULT_INTERMEDIATE = "obj-i386"
DEFAULT_OUTPUT = "output-i386"
DEFAULT_INSTALL = "reactos"

SECTION = "makegen"


@dataclass
class GeneratorConfig:
    """Options controlling a generation run.

    Attributes:
        project_root: Directory that module and install paths are relative to
        intermediate_path: Root for object files
        output_path: Root for linked artifacts
        install_path: Root of the install tree
        makefile: Output Makefile path (defaults to the project's makefile)
        verbose: Report every created directory and dependency update
        automatic_dependencies: Run the header dependency check after generation
        check_dependencies_for_module_only: Only check dependencies of this module
        proxy_makefiles_in_source_tree: Write proxy makefiles next to the sources
        make_handles_install_directories: Leave install directories to make
        generator_arguments: Arguments that re-run the generator on the same
            model, used by the per-module dependency targets
    """

    project_root: Path = field(default_factory=Path.cwd)
    intermediate_path: str = DEFAULT_INTERMEDIATE
    output_path: str = DEFAULT_OUTPUT
    install_path: str = DEFAULT_INSTALL
    makefile: Optional[str] = None
    verbose: bool = False
    automatic_dependencies: bool = True
    check_dependencies_for_module_only: Optional[str] = None
    proxy_makefiles_in_source_tree: bool = False
    make_handles_install_directories: bool = False
    generator_arguments: str = ""

    @property
    def roots(self) -> Dict[str, str]:
        """Placeholder to configured root path, in substitution order."""
        return {
            INTERMEDIATE_VARIABLE: self.intermediate_path,
            OUTPUT_VARIABLE: self.output_path,
            INSTALL_VARIABLE: self.install_path,
        }

    @classmethod
    def from_environment(
        cls,
        environ: Optional[Mapping[str, str]] = None,
        **overrides,
    ) -> "GeneratorConfig":
        """Create a configuration with root paths taken from the environment."""
        env = os.environ if environ is None else environ
        config = cls(
            intermediate_path=env.get(ENV_INTERMEDIATE) or DEFAULT_INTERMEDIATE,
            output_path=env.get(ENV_OUTPUT) or DEFAULT_OUTPUT,
            install_path=env.get(ENV_INSTALL) or DEFAULT_INSTALL,
        )
        for key, value in overrides.items():
            setattr(config, key, value)
        return config

    def load_ini(self, ini_path: Path) -> "GeneratorConfig":
        """Apply settings from the [makegen] section of an INI file.

        Args:
            ini_path: Path to the INI file

        Returns:
            self, for chaining

        Raises:
            ConfigurationError: If the file doesn't exist or cannot be parsed
        """
        ini_path = Path(ini_path)
        if not ini_path.exists():
            raise ConfigurationError(f"Configuration file not found: {ini_path}")

        parser = configparser.ConfigParser(
            allow_no_value=True, interpolation=configparser.ExtendedInterpolation()
        )
        try:
            parser.read(ini_path, encoding="utf-8")
        except configparser.Error as e:
            raise ConfigurationError(f"Failed to parse {ini_path}: {e}") from e

        if SECTION not in parser:
            return self

        section = parser[SECTION]
        try:
            for key in ("intermediate", "output", "install"):
                if section.get(key):
                    setattr(self, f"{key}_path", section.get(key).strip())
            if section.get("makefile"):
                self.makefile = section.get("makefile").strip()
            if section.get("project_root"):
                self.project_root = (ini_path.parent / section.get("project_root").strip()).resolve()
            if section.get("check_dependencies_for_module_only"):
                self.check_dependencies_for_module_only = section.get(
                    "check_dependencies_for_module_only"
                ).strip()
            for key in (
                "verbose",
                "automatic_dependencies",
                "proxy_makefiles_in_source_tree",
                "make_handles_install_directories",
            ):
                if key in section:
                    setattr(self, key, section.getboolean(key))
        except ValueError as e:
            raise ConfigurationError(f"Invalid value in {ini_path}: {e}") from e

        return self
