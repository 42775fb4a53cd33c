"""
Loader for resolved project models stored as JSON.

The project description format itself is parsed elsewhere; this loader only
reads a model that has already been resolved into plain data, for example:

    {
        "name": "demo",
        "makefile": "makefile.auto",
        "modules": [
            {"name": "foo", "type": "staticlibrary", "path": "lib/foo",
             "files": ["lib/foo/foo.c"]}
        ]
    }
"""

import json
from pathlib import Path
from typing import Any, Dict, List

from ..errors import ConfigurationError
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


def _parse_ifable_data(data: Dict[str, Any]) -> IfableData:
    defines = []
    for define in data.get("defines", []):
        if isinstance(define, str):
            defines.append(Define(define))
        elif isinstance(define, list) and len(define) == 2:
            defines.append(Define(define[0], str(define[1])))
        else:
            value = define.get("value")
            defines.append(Define(define["name"], None if value is None else str(value)))

    return IfableData(
        includes=list(data.get("includes", [])),
        defines=defines,
        compiler_flags=list(data.get("compiler_flags", [])),
        properties=[
            Property(name, str(value))
            for name, value in data.get("properties", {}).items()
        ],
        ifs=[
            Condition(
                property=block["property"],
                value=str(block["value"]),
                data=_parse_ifable_data(block),
            )
            for block in data.get("ifs", [])
        ],
    )


def _parse_module_type(module_name: str, value: str) -> ModuleType:
    try:
        return ModuleType(value.lower())
    except ValueError:
        raise ConfigurationError(
            f"Module '{module_name}' has unsupported module type: {value}"
        )


def _parse_enabled(module_name: str, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ConfigurationError(
            f"Module '{module_name}' has non-boolean 'enabled' value: {value!r}"
        )
    return value


def _parse_module(data: Dict[str, Any]) -> Module:
    name = data["name"]
    return Module(
        name=name,
        type=_parse_module_type(name, data["type"]),
        path=data.get("path", ""),
        files=list(data.get("files", [])),
        enabled=_parse_enabled(name, data.get("enabled", True)),
        install_base=data.get("install_base", ""),
        install_name=data.get("install_name", ""),
        aliased_module_name=data.get("aliased_module_name", ""),
        extension=data.get("extension"),
        dependencies=list(data.get("dependencies", [])),
        libraries=list(data.get("libraries", [])),
        invocations=[
            Invocation(
                executable=invocation["executable"],
                arguments=invocation.get("arguments", ""),
                outputs=list(invocation.get("outputs", [])),
            )
            for invocation in data.get("invocations", [])
        ],
        non_if_data=_parse_ifable_data(data),
        linker_flags=list(data.get("linker_flags", [])),
        precompiled_header=data.get("precompiled_header", ""),
    )


def project_from_dict(data: Dict[str, Any]) -> Project:
    """Build a Project from already-decoded JSON data.

    Raises:
        ConfigurationError: If required keys are missing or a module type
            is unknown
    """
    try:
        modules: List[Module] = [_parse_module(m) for m in data.get("modules", [])]
        project = Project(
            name=data["name"],
            makefile=data.get("makefile", "makefile.auto"),
            modules=modules,
            non_if_data=_parse_ifable_data(data),
            linker_flags=list(data.get("linker_flags", [])),
            install_files=[
                InstallFile(
                    path=f["path"],
                    base=f.get("base", ""),
                    newname=f.get("newname", ""),
                )
                for f in data.get("install_files", [])
            ],
        )
    except KeyError as e:
        raise ConfigurationError(f"Project model is missing required key: {e}") from e

    if "registry_source_files" in data:
        project.registry_source_files = list(data["registry_source_files"])

    return project


def load_project(model_path: Path) -> Project:
    """Load a resolved project model from a JSON file.

    Args:
        model_path: Path to the JSON model

    Returns:
        Project instance

    Raises:
        ConfigurationError: If the file is missing or not a valid model
    """
    model_path = Path(model_path)
    if not model_path.exists():
        raise ConfigurationError(f"Project model not found: {model_path}")

    try:
        data = json.loads(model_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Failed to parse {model_path}: {e}") from e

    return project_from_dict(data)
