"""Host toolchain detection.

This module probes the host for the compiler, binutils and assembler that the
generated Makefile will invoke, plus a couple of compiler capabilities.

Detection Policy:
    - Each tool has an ordered list of candidate commands. A candidate is
      run with a capability-query flag and its output discarded; exit status
      zero means the tool works and probing for that tool stops.
    - The MAKEGEN_PREFIX environment variable supplies a cross-toolchain
      prefix that is tried before the built-in candidates.
    - A compiler or assembler that cannot be found is NOT fatal. The tool is
      recorded as not detected and generation carries on; the build fails
      later, when the Makefile actually runs the missing command.
    - Binutils versions known to be broken are fatal
      (UnsupportedToolchainError).
"""

import logging
import os
import subprocess
import sys
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

from ..errors import UnsupportedToolchainError

ENV_PREFIX = "MAKEGEN_PREFIX"

DEFAULT_PREFIX = "mingw32"

# Binutils snapshots in this range produce broken images
BROKEN_BINUTILS_FIRST = "20040902"
BROKEN_BINUTILS_LAST = "20041008"
OLDEST_SUPPORTED_BINUTILS = "20031001"


@dataclass(frozen=True)
class ToolchainInfo:
    """Result of probing for one tool.

    Attributes:
        command: Command the Makefile will run (the last candidate tried
            when nothing was detected)
        prefix: Toolchain prefix the command was built from
        detected: Whether the command answered the capability query
        version: Version token, for tools whose version is checked
    """

    command: str
    prefix: str = ""
    detected: bool = False
    version: Optional[str] = None


@dataclass(frozen=True)
class Toolchain:
    """Everything learned about the host toolchain in one run."""

    compiler: ToolchainInfo
    binutils: ToolchainInfo
    assembler: ToolchainInfo
    use_pipe: bool = False
    use_pch: bool = False

    @property
    def prefix(self) -> str:
        return self.compiler.prefix


def prefixed(prefix: str, tool: str) -> str:
    """Build a tool command from a toolchain prefix (e.g. mingw32-gcc)."""
    return f"{prefix}-{tool}" if prefix else tool


def is_supported_binutils_version(version: str) -> bool:
    """Check a binutils version token against the known-bad list.

    Versions are opaque tokens compared as strings, not numbers.

    Example:
        >>> is_supported_binutils_version("20040905")
        False
        >>> is_supported_binutils_version("20050101")
        True
    """
    if BROKEN_BINUTILS_FIRST <= version <= BROKEN_BINUTILS_LAST:
        return False
    if version < OLDEST_SUPPORTED_BINUTILS:
        return False
    return True


def parse_version_banner(banner: str) -> str:
    """Return the last whitespace-delimited token of a version banner."""
    tokens = banner.split()
    if not tokens:
        return ""
    return tokens[-1].rstrip()


class ToolchainProbe:
    """Detects the host toolchain by running candidate commands.

    Example usage:
        probe = ToolchainProbe()
        toolchain = probe.probe()
        if not toolchain.compiler.detected:
            print("build will fail when the compiler is needed")
    """

    def __init__(
        self,
        environ: Optional[Mapping[str, str]] = None,
        platform: Optional[str] = None,
    ):
        """Initialize the probe.

        Args:
            environ: Environment to read MAKEGEN_PREFIX from (default os.environ)
            platform: Host platform name (default sys.platform)
        """
        self.environ = os.environ if environ is None else environ
        self.platform = platform or sys.platform

    @property
    def is_windows(self) -> bool:
        return self.platform.startswith("win")

    def candidate_prefixes(self) -> List[str]:
        """Toolchain prefixes to try, in order."""
        prefixes = []
        override = self.environ.get(ENV_PREFIX, "")
        if override:
            prefixes.append(override)
        if self.is_windows:
            prefixes.append("")
        prefixes.append(DEFAULT_PREFIX)
        return prefixes

    def assembler_candidates(self) -> List[str]:
        candidates = ["nasm"]
        if self.is_windows:
            candidates.append("nasmw")
        candidates.append("yasm")
        return candidates

    @staticmethod
    def try_command(args: Sequence[str]) -> bool:
        """Run a command with its output discarded.

        Returns:
            True if the command exited with status zero
        """
        try:
            result = subprocess.run(
                list(args),
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
                check=False,
            )
        except OSError as e:
            logging.debug(f"Probe command {args[0]} could not be run: {e}")
            return False
        return result.returncode == 0

    def _detect_prefixed(self, tool: str, query_flag: str) -> ToolchainInfo:
        info = None
        for prefix in self.candidate_prefixes():
            command = prefixed(prefix, tool)
            if self.try_command([command, query_flag]):
                return ToolchainInfo(command=command, prefix=prefix, detected=True)
            info = ToolchainInfo(command=command, prefix=prefix, detected=False)
        return info

    def detect_compiler(self) -> ToolchainInfo:
        """Detect the C compiler. Not finding one is not an error."""
        print("Detecting compiler...", end="", flush=True)
        info = self._detect_prefixed("gcc", "-v")
        if info.detected:
            print(f"detected ({info.command})")
        else:
            print("not detected")
            logging.warning(
                f"No compiler detected; rules using {info.command} will fail at build time"
            )
        return info

    def get_binutils_version(self, command: str) -> str:
        """Read the version token from `<command> -v`."""
        try:
            result = subprocess.run(
                [command, "-v"],
                capture_output=True,
                text=True,
                check=False,
            )
        except OSError as e:
            logging.debug(f"Could not read version of {command}: {e}")
            return ""
        return parse_version_banner(result.stdout)

    def detect_binutils(self) -> ToolchainInfo:
        """Detect binutils and validate its version.

        Raises:
            UnsupportedToolchainError: If the detected version is known to be broken
        """
        print("Detecting binutils...", end="", flush=True)
        info = self._detect_prefixed("ld", "-v")
        if not info.detected:
            print("not detected")
            logging.warning(f"No binutils detected; rules using {info.command} will fail at build time")
            return info

        version = self.get_binutils_version(info.command)
        info = ToolchainInfo(
            command=info.command, prefix=info.prefix, detected=True, version=version
        )
        if not is_supported_binutils_version(version):
            print(f"detected ({info.command}), but with unsupported version ({version})")
            raise UnsupportedToolchainError(info.command, version)

        print(f"detected ({info.command})")
        return info

    def detect_assembler(self) -> ToolchainInfo:
        """Detect the netwide assembler. Not finding one is not an error."""
        print("Detecting netwide assembler...", end="", flush=True)
        info = None
        for command in self.assembler_candidates():
            if self.try_command([command, "-h"]):
                info = ToolchainInfo(command=command, detected=True)
                break
            info = ToolchainInfo(command=command, detected=False)

        if info.detected:
            print(f"detected ({info.command})")
        else:
            print("not detected")
            logging.warning(
                f"No assembler detected; rules using {info.command} will fail at build time"
            )
        return info

    def detect_pipe_support(self, compiler: ToolchainInfo) -> bool:
        """Check whether the compiler accepts -pipe."""
        print("Detecting compiler -pipe support...", end="", flush=True)
        supported = False
        if compiler.detected:
            with tempfile.TemporaryDirectory(prefix="makegen-pipe-") as temp_dir:
                source = Path(temp_dir) / "pipe_detection.c"
                source.write_text("int main(void) { return 0; }\n")
                obj = source.with_suffix(".o")
                ok = self.try_command(
                    [compiler.command, "-pipe", "-c", str(source), "-o", str(obj)]
                )
                supported = ok and obj.exists()
        print("detected" if supported else "not detected")
        return supported

    def detect_pch_support(self, compiler: ToolchainInfo) -> bool:
        """Check whether the compiler can produce pre-compiled headers."""
        print("Detecting compiler pre-compiled header support...", end="", flush=True)
        supported = False
        if compiler.detected:
            with tempfile.TemporaryDirectory(prefix="makegen-pch-") as temp_dir:
                header = Path(temp_dir) / "pch_detection.h"
                header.write_text("int pch_detection(void);\n")
                self.try_command([compiler.command, "-c", str(header)])
                supported = Path(f"{header}.gch").exists()
        print("detected" if supported else "not detected")
        return supported

    def probe(self) -> Toolchain:
        """Run all detections once.

        Raises:
            UnsupportedToolchainError: If binutils has an unsupported version
        """
        compiler = self.detect_compiler()
        binutils = self.detect_binutils()
        assembler = self.detect_assembler()
        use_pipe = self.detect_pipe_support(compiler)
        use_pch = self.detect_pch_support(compiler)
        return Toolchain(
            compiler=compiler,
            binutils=binutils,
            assembler=assembler,
            use_pipe=use_pipe,
            use_pch=use_pch,
        )
