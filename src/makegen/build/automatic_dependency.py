"""
Automatic header dependency checking.

The generated rules only list a source file as an object's prerequisite, so
make would not rebuild an object when one of the headers it includes
changes. This module closes that gap from the generator side:

- Scan each enabled module's sources for quoted `#include "..."` directives
- Follow them recursively through headers found next to the including file or
  in the module's (and project's) include directories
- If any reached header is newer than the source, bump the source's
  modification time so make recompiles it
"""

import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Optional, Set

from ..project.model import Module, Project
from .build_utils import normalize_filename

INCLUDE_PATTERN = re.compile(r'^\s*#\s*include\s*"([^"]+)"', re.MULTILINE)

SCANNED_EXTENSIONS = {".c", ".cpp", ".cc", ".cxx", ".s", ".S", ".rc", ".h", ".hpp"}


class AutomaticDependency:
    """
    Checks module sources against the headers they include.

    Example usage:
        checker = AutomaticDependency(project, Path("."))
        touched = checker.check_automatic_dependencies(verbose=True)
    """

    def __init__(self, project: Project, project_root: Path):
        """
        Initialize dependency checker.

        Args:
            project: Project whose modules are checked
            project_root: Directory the module paths are relative to
        """
        self.project = project
        self.project_root = Path(project_root)
        self._includes_cache: Dict[Path, List[str]] = {}

    def include_directories(self, module: Module) -> List[Path]:
        includes = module.non_if_data.includes + self.project.non_if_data.includes
        return [self.project_root / normalize_filename(i) for i in includes]

    def _parse_includes(self, path: Path) -> List[str]:
        if path not in self._includes_cache:
            try:
                text = path.read_text(encoding="utf-8", errors="ignore")
            except OSError as e:
                logging.debug(f"Cannot read {path}: {e}")
                text = ""
            self._includes_cache[path] = INCLUDE_PATTERN.findall(text)
        return self._includes_cache[path]

    @staticmethod
    def _resolve_include(
        name: str, directory: Path, include_directories: List[Path]
    ) -> Optional[Path]:
        for candidate_dir in [directory] + include_directories:
            candidate = candidate_dir / name
            if candidate.is_file():
                return candidate
        return None

    def collect_headers(self, source: Path, include_directories: List[Path]) -> Set[Path]:
        """All headers reachable from `source` through quoted includes."""
        headers: Set[Path] = set()
        pending = [source]
        while pending:
            current = pending.pop()
            for name in self._parse_includes(current):
                header = self._resolve_include(name, current.parent, include_directories)
                if header is None or header in headers:
                    continue
                headers.add(header)
                pending.append(header)
        return headers

    def check_automatic_dependencies_for_file(
        self, source: Path, include_directories: List[Path], verbose: bool = False
    ) -> bool:
        """Touch `source` if a header it depends on is newer.

        Returns:
            True if the source's timestamp was updated
        """
        if not source.is_file():
            logging.debug(f"Skipping missing source {source}")
            return False

        headers = self.collect_headers(source, include_directories)
        if not headers:
            return False

        newest_header = max(headers, key=lambda h: h.stat().st_mtime)
        if newest_header.stat().st_mtime <= source.stat().st_mtime:
            return False

        os.utime(source, None)
        if verbose:
            print(f"Touched {source} (newer header {newest_header})")
        logging.info(f"Touched {source} because {newest_header} is newer")
        return True

    def check_automatic_dependencies_for_module(
        self, module: Module, verbose: bool = False
    ) -> List[Path]:
        """Check all sources of one module.

        Returns:
            Sources whose timestamps were updated
        """
        include_directories = self.include_directories(module)
        touched = []
        for filename in module.files:
            source = self.project_root / normalize_filename(filename)
            if source.suffix not in SCANNED_EXTENSIONS:
                continue
            if self.check_automatic_dependencies_for_file(source, include_directories, verbose):
                touched.append(source)
        return touched

    def check_automatic_dependencies(self, verbose: bool = False) -> List[Path]:
        """Check every enabled module of the project."""
        touched = []
        for module in self.project.enabled_modules():
            touched.extend(self.check_automatic_dependencies_for_module(module, verbose))
        return touched
