"""Host toolchain detection for Makegen."""

from .probe import (
    ENV_PREFIX,
    Toolchain,
    ToolchainInfo,
    ToolchainProbe,
    is_supported_binutils_version,
    parse_version_banner,
    prefixed,
)

__all__ = [
    "ENV_PREFIX",
    "Toolchain",
    "ToolchainInfo",
    "ToolchainProbe",
    "is_supported_binutils_version",
    "parse_version_banner",
    "prefixed",
]
