"""Proxy makefile generation.

A proxy makefile lets a developer run `make` from inside a module's
directory. It points back to the top of the tree and builds that module by
default:

    TOP = ../..
    DEFAULT = foo
    include $(TOP)/proxy.mak
"""

import logging
import os
from pathlib import Path
from typing import List

from ..errors import AccessDeniedError
from ..project.model import Module, Project
from .build_utils import join_path, normalize_filename

PROXY_MAKEFILE_NAME = "makefile"


class ProxyMakefile:
    """Writes a proxy makefile for every enabled module that has a directory."""

    def __init__(self, project: Project, project_root: Path):
        self.project = project
        self.project_root = Path(project_root)

    def proxy_directory(self, module: Module, proxy_tree: str) -> Path:
        relative = join_path(proxy_tree, normalize_filename(module.path))
        return self.project_root / relative

    def generate_proxy_makefile(self, module: Module, proxy_tree: str) -> Path:
        directory = self.proxy_directory(module, proxy_tree)
        top = Path(os.path.relpath(self.project_root, directory)).as_posix()
        content = (
            "# This file is automatically generated.\n"
            "\n"
            f"TOP = {top}\n"
            f"DEFAULT = {module.name}\n"
            "include $(TOP)/proxy.mak\n"
        )

        makefile = directory / PROXY_MAKEFILE_NAME
        try:
            directory.mkdir(parents=True, exist_ok=True)
            if not makefile.exists() or makefile.read_text(encoding="utf-8") != content:
                makefile.write_text(content, encoding="utf-8")
        except OSError as e:
            raise AccessDeniedError(str(makefile), e.strerror or str(e)) from e
        return makefile

    def generate_proxy_makefiles(self, verbose: bool, proxy_tree: str) -> List[Path]:
        """Write proxy makefiles below `proxy_tree` ("" for the source tree).

        Returns:
            Paths of all proxy makefiles
        """
        makefiles = []
        for module in self.project.enabled_modules():
            if not normalize_filename(module.path):
                continue
            makefile = self.generate_proxy_makefile(module, proxy_tree)
            if verbose:
                print(f"Generated proxy makefile {makefile}")
            logging.debug(f"Proxy makefile for {module.name}: {makefile}")
            makefiles.append(makefile)
        return makefiles
