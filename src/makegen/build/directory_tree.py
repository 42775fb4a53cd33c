"""Directory tree for generated build directories.

Every intermediate, output and install directory referenced by the project is
merged into one tree per root ($(INTERMEDIATE), $(OUTPUT), $(INSTALL)). The
tree is then used twice:

- generate_tree() creates the directories on disk, parents first.
- create_rule() writes one make rule per directory whose order-only
  prerequisite is the parent directory. make resolves a prerequisite using
  the first rule it has read, so a parent's rule is always written before
  any child rule that names it.

Paths are inserted as literal relative paths. A path that still contains a
make variable cannot be mapped to a filesystem location and is rejected.
"""

import logging
import os
from pathlib import Path
from typing import Dict, Iterator, List, Mapping, Optional, Tuple

from ..errors import AccessDeniedError, InvalidPathError
from .emitter import BuildTarget, MakefileEmitter, escape_spaces

SEPARATORS = "/\\"


def replace_variable(name: str, value: str, path: str) -> str:
    """Replace the first occurrence of `name` in `path` with `value`."""
    index = path.find(name)
    if index == -1:
        return path
    return path[:index] + value + path[index + len(name):]


def resolve_variables(path: str, roots: Mapping[str, str]) -> str:
    """Substitute root placeholders such as $(INTERMEDIATE) in a path.

    Args:
        path: Logical path, e.g. "$(INTERMEDIATE)/lib/foo"
        roots: Placeholder to root path, applied in order

    Returns:
        Path with each known placeholder replaced once
    """
    for name, value in roots.items():
        path = replace_variable(name, value, path)
    return path


def _split_first(path: str) -> Tuple[str, str]:
    for index, char in enumerate(path):
        if char in SEPARATORS:
            return path[:index], path[index + 1:]
    return path, ""


class Directory:
    """A node in the directory tree.

    Children are exclusively owned by their parent and always visited in
    name order, so output does not depend on insertion order.
    """

    def __init__(self, name: str):
        self.name = name
        self.subdirs: Dict[str, "Directory"] = {}
        self._frozen = False

    @property
    def frozen(self) -> bool:
        return self._frozen

    def freeze(self) -> None:
        """Make the tree read-only; later add() calls raise RuntimeError."""
        self._frozen = True
        for subdir in self.subdirs.values():
            subdir.freeze()

    def add(self, path: str) -> None:
        """Insert a relative path, reusing nodes that already exist.

        Args:
            path: Slash (or backslash) separated relative path

        Raises:
            InvalidPathError: If the path contains a variable reference;
                the tree is left unchanged
        """
        if "$" in path:
            raise InvalidPathError(path)
        if self._frozen:
            raise RuntimeError(f"Directory tree {self.name} is read-only")

        head, rest = _split_first(path)
        if not head:
            if rest:
                self.add(rest)
            return

        subdir = self.subdirs.get(head)
        if subdir is None:
            subdir = Directory(head)
            self.subdirs[head] = subdir
        if rest:
            subdir.add(rest)

    def children(self) -> List["Directory"]:
        return [self.subdirs[name] for name in sorted(self.subdirs)]

    def contains(self, path: str) -> bool:
        head, rest = _split_first(path)
        if not head:
            return True if not rest else self.contains(rest)
        subdir = self.subdirs.get(head)
        if subdir is None:
            return False
        return subdir.contains(rest) if rest else True

    def walk(self, parent: str = "") -> Iterator[str]:
        """Yield the logical path of every node, parents before children."""
        path = f"{parent}/{self.name}" if parent else self.name
        yield path
        for subdir in self.children():
            yield from subdir.walk(path)

    @staticmethod
    def _make_directory(path: Path) -> bool:
        if path.is_dir():
            return False
        try:
            os.mkdir(path)
        except FileExistsError:
            if not path.is_dir():
                raise AccessDeniedError(str(path), "not a directory")
            return False
        except OSError as e:
            raise AccessDeniedError(str(path), e.strerror or str(e)) from e
        return True

    @classmethod
    def create_directory(cls, path: Path) -> bool:
        """Create `path` and any missing parents.

        Returns:
            True if the final directory was created by this call

        Raises:
            AccessDeniedError: On any failure other than the directory
                already existing
        """
        parts = path.parts
        created = False
        for index in range(1, len(parts) + 1):
            created = cls._make_directory(Path(*parts[:index]))
        return created

    def generate_tree(
        self,
        roots: Mapping[str, str],
        verbose: bool = False,
        parent: str = "",
        base: Optional[Path] = None,
    ) -> List[Path]:
        """Create this node and its children on disk, depth-first.

        Args:
            roots: Placeholder to root path used to resolve logical paths
            verbose: Print each directory that gets created
            parent: Logical path of the parent node ("" for a root)
            base: Directory that relative resolved paths are relative to

        Returns:
            Directories created by this call, in creation order

        Raises:
            AccessDeniedError: If a directory cannot be created
        """
        path = f"{parent}/{self.name}" if parent else self.name
        resolved = Path(resolve_variables(path, roots))
        if base is not None and not resolved.is_absolute():
            resolved = base / resolved

        created = []
        if self.create_directory(resolved):
            created.append(resolved)
            if verbose:
                print(f"Created {resolved}")
            logging.debug(f"Created directory {resolved}")

        for subdir in self.children():
            created.extend(subdir.generate_tree(roots, verbose, path, base))
        return created

    def create_rule(self, emitter: MakefileEmitter, parent: str = "") -> None:
        """Write directory-creation rules for this node and its children.

        Args:
            emitter: Makefile emitter
            parent: Logical path of the parent node ("" for a root)
        """
        if parent:
            escaped_parent = escape_spaces(parent)
            path = f"{parent}/{self.name}"
            emitter.write_rule(
                BuildTarget(
                    name=f"{escaped_parent}/{escape_spaces(self.name)}",
                    order_only=[escaped_parent],
                    recipe=["$(ECHO_MKDIR)", "${mkdir} $@"],
                )
            )
        else:
            path = self.name
            emitter.write_rule(
                BuildTarget(
                    name=escape_spaces(self.name),
                    recipe=["$(ECHO_MKDIR)", "${mkdir} $@"],
                )
            )

        for subdir in self.children():
            subdir.create_rule(emitter, path)
