"""Generation context shared by the backend components.

One GenerationContext is created per run by the orchestrator and passed to
every handler. It owns the probed toolchain, the three directory trees and
the Makefile emitter; nothing is kept in module-level state.
"""

from dataclasses import dataclass, field
from typing import Optional

from ..config.generator_config import (
    INSTALL_VARIABLE,
    INTERMEDIATE_VARIABLE,
    OUTPUT_VARIABLE,
    GeneratorConfig,
)
from ..project.model import Module, Project
from ..toolchain.probe import Toolchain
from .build_utils import directory_of, join_path, normalize_filename
from .directory_tree import Directory
from .emitter import MakefileEmitter


@dataclass
class GenerationContext:
    """State of a single generation run."""

    project: Project
    config: GeneratorConfig
    toolchain: Toolchain
    intermediate_directory: Directory = field(
        default_factory=lambda: Directory(INTERMEDIATE_VARIABLE)
    )
    output_directory: Directory = field(
        default_factory=lambda: Directory(OUTPUT_VARIABLE)
    )
    install_directory: Directory = field(
        default_factory=lambda: Directory(INSTALL_VARIABLE)
    )
    emitter: Optional[MakefileEmitter] = None

    def add_directory_target(self, directory: str, tree: Directory) -> str:
        """Register a relative directory in `tree`.

        Returns:
            Logical path of the directory (the tree root for "")
        """
        directory = normalize_filename(directory)
        if directory:
            tree.add(directory)
        return join_path(tree.name, directory)

    def add_file_directory(self, filename: str, tree: Directory) -> str:
        """Register the directory holding `filename` in `tree`.

        Returns:
            Logical path of the file below the tree root
        """
        self.add_directory_target(directory_of(filename), tree)
        return join_path(tree.name, normalize_filename(filename))

    @staticmethod
    def logical_path(path: str, tree: Directory) -> str:
        """Path below a tree root, without registering anything."""
        return join_path(tree.name, normalize_filename(path))

    def freeze_directories(self) -> None:
        self.intermediate_directory.freeze()
        self.output_directory.freeze()
        self.install_directory.freeze()

    def locate_enabled_module(self, name: str) -> Optional[Module]:
        module = self.project.locate_module(name)
        if module is None or not module.enabled:
            return None
        return module
