"""Shared fixtures for the makegen test suite."""

from pathlib import Path
from typing import List

import pytest

from makegen.build.emitter import MakefileEmitter
from makegen.config import GeneratorConfig
from makegen.toolchain import Toolchain, ToolchainInfo, ToolchainProbe


class MemoryEmitter(MakefileEmitter):
    """Emitter that keeps everything written in memory."""

    def __init__(self):
        super().__init__(Path("memory.mak"))
        self.chunks: List[str] = []

    @property
    def is_open(self) -> bool:
        return True

    def write(self, text: str) -> None:
        self.chunks.append(text)

    @property
    def text(self) -> str:
        return "".join(self.chunks)


class FixedProbe(ToolchainProbe):
    """Probe that reports a fixed toolchain without running anything."""

    def __init__(self, toolchain: Toolchain):
        super().__init__(environ={}, platform="linux")
        self.toolchain = toolchain
        self.calls = 0

    def probe(self) -> Toolchain:
        self.calls += 1
        return self.toolchain


@pytest.fixture
def memory_emitter():
    return MemoryEmitter()


@pytest.fixture
def toolchain():
    """A fully detected mingw32 toolchain without pipe or PCH support."""
    return Toolchain(
        compiler=ToolchainInfo(command="mingw32-gcc", prefix="mingw32", detected=True),
        binutils=ToolchainInfo(
            command="mingw32-ld", prefix="mingw32", detected=True, version="20050101"
        ),
        assembler=ToolchainInfo(command="nasm", detected=True),
    )


@pytest.fixture
def fixed_probe(toolchain):
    return FixedProbe(toolchain)


@pytest.fixture
def generator_config(tmp_path):
    """Configuration rooted in a temporary project directory."""
    return GeneratorConfig(project_root=tmp_path, automatic_dependencies=False)


@pytest.fixture
def probe_for():
    """Factory for a probe that reports a given toolchain."""
    return FixedProbe
