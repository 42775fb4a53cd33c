"""Makefile emitter.

The emitter is the only component that writes the generated Makefile. All
other components hand it text, macros or BuildTarget rules, and it appends
them in the order received.

Write Policy:
    Output goes to a temporary file next to the target path. close()
    atomically renames it over the target; abort() (or an exception inside a
    `with` block) deletes it, so a failed run never leaves a truncated
    Makefile behind and any previous Makefile stays untouched.
"""

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import IO, Iterable, List, Optional

from ..errors import AccessDeniedError


@dataclass
class BuildTarget:
    """A single make rule.

    Attributes:
        name: Target (may be several space-separated targets or a macro)
        prerequisites: Ordinary prerequisites
        order_only: Prerequisites that must exist but never force a rebuild
        recipe: Recipe lines, written tab-indented
        wrap_at: Wrap the prerequisite list every this many words (0: never)
    """

    name: str
    prerequisites: List[str] = field(default_factory=list)
    order_only: List[str] = field(default_factory=list)
    recipe: List[str] = field(default_factory=list)
    wrap_at: int = 0

    def render(self) -> str:
        line = f"{self.name}:"
        prerequisites = join_wrapped(self.prerequisites, self.wrap_at)
        if prerequisites:
            line += f" {prerequisites}"
        order_only = join_wrapped(self.order_only)
        if order_only:
            line += f" | {order_only}"
        lines = [line]
        lines.extend(f"\t{command}" for command in self.recipe)
        return "\n".join(lines) + "\n"


def join_wrapped(items: Iterable[str], wrap_at: int = 0) -> str:
    """Join words with spaces, wrapping every `wrap_at` words.

    Empty items are skipped. Wrapped lines continue with a backslash and two
    tabs of indentation.

    Example:
        >>> join_wrapped(["a", "", "b"])
        'a b'
    """
    result = ""
    count = 0
    for item in items:
        if not item:
            continue
        if wrap_at > 0 and count == wrap_at:
            result += " \\\n\t\t"
            count = 0
        elif result:
            result += " "
        result += item
        count += 1
    return result


def escape_spaces(path: str) -> str:
    """Escape spaces so make treats the path as a single word."""
    return path.replace(" ", "\\ ")


class MakefileEmitter:
    """Append-only writer for the generated Makefile.

    Example usage:
        with MakefileEmitter(Path("makefile.auto")) as emitter:
            emitter.write_line("# generated")
            emitter.write_rule(BuildTarget("all", ["$(FOO_TARGET)"]))
    """

    def __init__(self, path: Path):
        """
        Initialize emitter.

        Args:
            path: Final location of the Makefile
        """
        self.path = Path(path)
        self._file: Optional[IO[str]] = None
        self._temp_path: Optional[Path] = None

    @property
    def is_open(self) -> bool:
        return self._file is not None

    def open(self) -> None:
        """Create the temporary output file.

        Raises:
            AccessDeniedError: If the output directory is not writable
        """
        directory = self.path.parent if str(self.path.parent) else Path(".")
        try:
            fd, temp_name = tempfile.mkstemp(
                prefix=f".{self.path.name}.", suffix=".tmp", dir=directory
            )
            self._file = os.fdopen(fd, "w", encoding="utf-8", newline="\n")
        except OSError as e:
            raise AccessDeniedError(str(self.path), e.strerror or str(e)) from e
        self._temp_path = Path(temp_name)

    def write(self, text: str) -> None:
        if self._file is None:
            raise RuntimeError(f"Makefile {self.path} is not open")
        self._file.write(text)

    def write_line(self, text: str = "") -> None:
        self.write(f"{text}\n")

    def write_macro(
        self, name: str, values: Iterable[str], operator: str = ":=", wrap_at: int = 0
    ) -> None:
        """Write `NAME op value value ...`."""
        value = join_wrapped(values, wrap_at)
        if value:
            self.write_line(f"{name} {operator} {value}")
        else:
            self.write_line(f"{name} {operator}")

    def write_rule(self, target: BuildTarget) -> None:
        self.write(target.render())

    def close(self) -> None:
        """Finish writing and move the Makefile into place.

        Raises:
            AccessDeniedError: If the Makefile cannot be replaced
        """
        if self._file is None:
            return
        self._file.close()
        self._file = None
        try:
            os.replace(self._temp_path, self.path)
        except OSError as e:
            self._remove_temp()
            raise AccessDeniedError(str(self.path), e.strerror or str(e)) from e
        logging.debug(f"Wrote {self.path}")
        self._temp_path = None

    def abort(self) -> None:
        """Discard everything written so far."""
        if self._file is not None:
            self._file.close()
            self._file = None
        self._remove_temp()

    def _remove_temp(self) -> None:
        if self._temp_path is not None:
            try:
                self._temp_path.unlink()
            except FileNotFoundError:
                pass
            self._temp_path = None

    def __enter__(self) -> "MakefileEmitter":
        self.open()
        return self

    def __exit__(self, exc_type, exc_value, traceback) -> None:
        if exc_type is None:
            self.close()
        else:
            logging.debug(f"Discarding partial {self.path}: {exc_value}")
            self.abort()
