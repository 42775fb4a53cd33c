"""
In-memory project model.

The model is produced by an external loader and treated as read-only input by
the generator. It describes the modules of a project, their compiler settings
(with arbitrarily nested conditional blocks) and the files to install.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional


class ModuleType(Enum):
    """Closed set of module kinds understood by the generator."""

    PROGRAM = "program"
    DYNAMIC_LIBRARY = "dynamiclibrary"
    STATIC_LIBRARY = "staticlibrary"
    OBJECT_LIBRARY = "objectlibrary"
    KERNEL = "kernel"
    KERNEL_MODE_DLL = "kernelmodedll"
    KERNEL_MODE_DRIVER = "kernelmodedriver"
    BOOT_LOADER = "bootloader"
    BOOT_SECTOR = "bootsector"
    ISO = "iso"
    LIVE_ISO = "liveiso"
    BUILD_TOOL = "buildtool"
    TEST = "test"
    ALIAS = "alias"


@dataclass
class Define:
    """A preprocessor define, optionally with a value."""

    name: str
    value: Optional[str] = None

    def to_flag(self) -> str:
        if self.value is None or self.value == "":
            return f"-D{self.name}"
        return f"-D{self.name}={self.value}"


@dataclass
class Property:
    """A named make variable assigned once at the top of the Makefile."""

    name: str
    value: str


@dataclass
class IfableData:
    """Compiler settings plus conditional blocks nested under them.

    Attributes:
        includes: Include directories
        defines: Preprocessor defines
        compiler_flags: Raw compiler flags
        properties: Make variables
        ifs: Conditional blocks, each applying only when a variable
            has a given value
    """

    includes: List[str] = field(default_factory=list)
    defines: List[Define] = field(default_factory=list)
    compiler_flags: List[str] = field(default_factory=list)
    properties: List[Property] = field(default_factory=list)
    ifs: List["Condition"] = field(default_factory=list)


@dataclass
class Condition:
    """Settings that apply when `$(property)` equals `value`."""

    property: str
    value: str
    data: IfableData = field(default_factory=IfableData)


@dataclass
class Invocation:
    """A build tool run during the build to produce generated files."""

    executable: str
    arguments: str = ""
    outputs: List[str] = field(default_factory=list)


@dataclass
class Module:
    """A unit of the project: a library, program, driver, image or alias.

    Attributes:
        name: Unique module name
        type: Module kind, selects the generation strategy
        path: Source directory relative to the project root
        files: Source files relative to the project root
        enabled: Disabled modules are ignored entirely
        install_base: Directory below the install root (may be empty)
        install_name: File name in the install tree (empty: not installed)
        aliased_module_name: For alias modules, the module providing the artifact
        extension: Output file extension override (e.g. ".exe")
        dependencies: Modules whose targets must be built first
        libraries: Modules linked into this module
        invocations: Build tools run for this module
        non_if_data: Module-scoped compiler settings
        linker_flags: Extra linker flags
        precompiled_header: Header to pre-compile when the compiler supports it
    """

    name: str
    type: ModuleType
    path: str = ""
    files: List[str] = field(default_factory=list)
    enabled: bool = True
    install_base: str = ""
    install_name: str = ""
    aliased_module_name: str = ""
    extension: Optional[str] = None
    dependencies: List[str] = field(default_factory=list)
    libraries: List[str] = field(default_factory=list)
    invocations: List[Invocation] = field(default_factory=list)
    non_if_data: IfableData = field(default_factory=IfableData)
    linker_flags: List[str] = field(default_factory=list)
    precompiled_header: str = ""


@dataclass
class InstallFile:
    """A file copied into the install tree that is not built by a module."""

    path: str
    base: str = ""
    newname: str = ""

    def __post_init__(self):
        if not self.newname:
            self.newname = self.path.replace("\\", "/").rsplit("/", 1)[-1]


DEFAULT_REGISTRY_SOURCE_FILES = [
    "bootdata/hivecls.inf",
    "bootdata/hivedef.inf",
    "bootdata/hiveinst.inf",
    "bootdata/hivesft.inf",
    "bootdata/hivesys.inf",
]


@dataclass
class Project:
    """The fully resolved description of a project."""

    name: str
    makefile: str = "makefile.auto"
    modules: List[Module] = field(default_factory=list)
    non_if_data: IfableData = field(default_factory=IfableData)
    linker_flags: List[str] = field(default_factory=list)
    install_files: List[InstallFile] = field(default_factory=list)
    registry_source_files: List[str] = field(
        default_factory=lambda: list(DEFAULT_REGISTRY_SOURCE_FILES)
    )

    def locate_module(self, name: str) -> Optional[Module]:
        """Find a module by name.

        Returns:
            The module, or None if no module has that name
        """
        for module in self.modules:
            if module.name == name:
                return module
        return None

    def enabled_modules(self) -> List[Module]:
        return [module for module in self.modules if module.enabled]
