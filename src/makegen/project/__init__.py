"""Project model and model loading for Makegen."""

from .loader import load_project, project_from_dict
from .model import (
    Condition,
    Define,
    IfableData,
    InstallFile,
    Invocation,
    Module,
    ModuleType,
    Project,
    Property,
)

__all__ = [
    "Condition",
    "Define",
    "IfableData",
    "InstallFile",
    "Invocation",
    "Module",
    "ModuleType",
    "Project",
    "Property",
    "load_project",
    "project_from_dict",
]
