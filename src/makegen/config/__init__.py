"""Configuration modules for Makegen."""

from .generator_config import (
    INSTALL_VARIABLE,
    INTERMEDIATE_VARIABLE,
    OUTPUT_VARIABLE,
    GeneratorConfig,
)

__all__ = [
    "GeneratorConfig",
    "INTERMEDIATE_VARIABLE",
    "OUTPUT_VARIABLE",
    "INSTALL_VARIABLE",
]
