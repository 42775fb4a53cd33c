"""
Per-module Makefile generation.

Each enabled module is handled by exactly one ModuleHandler subclass, chosen
from the HANDLERS registry by the module's type. Handlers are created (and
validated) for every module before the Makefile is opened, so a bad module
aborts the run without producing any output.

Generation happens in two phases across all modules:

1. generate_object_macro() for every module, then generate_target_macro()
   for every module. Later rules may reference any module's target macro.
2. generate_other_macros() for every module, then for each module in turn:
   precondition dependencies, the main rules (process()), invocation rules,
   clean target, install target and dependency-check target.

Example usage:
    handlers = [create_handler(module, context) for module in modules]
    for handler in handlers:
        handler.generate_object_macro()
"""

import posixpath
from abc import ABC, abstractmethod
from typing import Dict, List, Optional, Type

from ..errors import ConfigurationError, DanglingAliasError, UnknownModuleTypeError
from ..project.model import Module, ModuleType
from .build_utils import (
    join_path,
    macro_prefix,
    normalize_filename,
    replace_extension,
)
from .context import GenerationContext
from .emitter import BuildTarget, MakefileEmitter, escape_spaces, join_wrapped
from .flag_builder import FlagBuilder

C_EXTENSIONS = (".c",)
CXX_EXTENSIONS = (".cpp", ".cc", ".cxx")
GAS_EXTENSIONS = (".s", ".S")
NASM_EXTENSIONS = (".asm",)
RC_EXTENSIONS = (".rc",)
SOURCE_EXTENSIONS = (
    C_EXTENSIONS + CXX_EXTENSIONS + GAS_EXTENSIONS + NASM_EXTENSIONS + RC_EXTENSIONS
)


def target_macro(module_name: str) -> str:
    """Make reference to a module's target macro, e.g. $(FOO_TARGET)."""
    return f"$({macro_prefix(module_name)}_TARGET)"


def install_target_path(context: GenerationContext, base: str, name: str) -> str:
    """Logical install path; an empty base puts the file at the install root."""
    return context.logical_path(join_path(base, name), context.install_directory)


class ModuleHandler(ABC):
    """Base class for all module generation strategies.

    Class attributes describe the module family:
        default_extension: Output file extension when the module sets none
        include_in_all: Whether the module's target is part of `make all`
        compiles_sources: Whether the module's files are compiled to objects
        host: Whether the module is built with the host compiler
    """

    default_extension = ""
    include_in_all = True
    compiles_sources = True
    host = False

    def __init__(self, module: Module, context: GenerationContext):
        self.module = module
        self.context = context
        self.prefix = macro_prefix(module.name)

    @property
    def emitter(self) -> MakefileEmitter:
        return self.context.emitter

    # Macro names

    @property
    def objs_macro_name(self) -> str:
        return f"{self.prefix}_OBJS"

    @property
    def objs_macro(self) -> str:
        return f"$({self.objs_macro_name})"

    @property
    def target_macro_name(self) -> str:
        return f"{self.prefix}_TARGET"

    @property
    def target_macro(self) -> str:
        return f"$({self.target_macro_name})"

    @property
    def cflags_macro_name(self) -> str:
        return f"{self.prefix}_CFLAGS"

    @property
    def lflags_macro_name(self) -> str:
        return f"{self.prefix}_LFLAGS"

    @property
    def libs_macro_name(self) -> str:
        return f"{self.prefix}_LIBS"

    @property
    def precondition_macro_name(self) -> str:
        return f"{self.prefix}_PRECONDITION"

    @property
    def invocations_macro_name(self) -> str:
        return f"{self.prefix}_INVOCATIONS"

    # Paths

    def target_filename(self) -> str:
        extension = self.module.extension
        if extension is None:
            extension = self.default_extension
        return f"{self.module.name}{extension}"

    def output_directory_path(self) -> str:
        return self.context.logical_path(self.module.path, self.context.output_directory)

    def target_path(self) -> str:
        return join_path(self.output_directory_path(), self.target_filename())

    def source_files(self) -> List[str]:
        return [normalize_filename(f) for f in self.module.files]

    def object_file(self, source: str) -> str:
        return self.context.logical_path(
            replace_extension(source, ".o"), self.context.intermediate_directory
        )

    def object_files(self) -> List[str]:
        if not self.compiles_sources:
            return []
        return [escape_spaces(self.object_file(source)) for source in self.source_files()]

    def invocation_outputs(self) -> List[str]:
        outputs = []
        for invocation in self.module.invocations:
            for output in invocation.outputs:
                outputs.append(
                    self.context.logical_path(
                        join_path(self.module.path, output),
                        self.context.intermediate_directory,
                    )
                )
        return outputs

    def precompiled_header_path(self) -> Optional[str]:
        if not self.module.precompiled_header or not self.context.toolchain.use_pch:
            return None
        header = normalize_filename(self.module.precompiled_header)
        return self.context.logical_path(
            f"{header}.gch", self.context.intermediate_directory
        )

    # Validation and directory registration

    def _require_module(self, name: str, role: str) -> Module:
        module = self.context.locate_enabled_module(name)
        if module is None:
            raise ConfigurationError(
                f"Module '{self.module.name}' references unknown or disabled "
                f"{role} module '{name}'"
            )
        return module

    def validate(self) -> None:
        """Check the module can be generated.

        Raises:
            ConfigurationError: On unsupported sources or dangling references
        """
        if self.compiles_sources:
            for source in self.source_files():
                if posixpath.splitext(source)[1] not in SOURCE_EXTENSIONS:
                    raise ConfigurationError(
                        f"Module '{self.module.name}' has unsupported source file: {source}"
                    )
        for name in self.module.libraries:
            self._require_module(name, "library")
        for name in self.module.dependencies:
            self._require_module(name, "dependency")
        for invocation in self.module.invocations:
            tool = self._require_module(invocation.executable, "build tool")
            if tool.type != ModuleType.BUILD_TOOL:
                raise ConfigurationError(
                    f"Module '{self.module.name}' invokes '{tool.name}', "
                    "which is not a build tool"
                )
            if not invocation.outputs:
                raise ConfigurationError(
                    f"Invocation of '{tool.name}' in module '{self.module.name}' "
                    "has no outputs"
                )

    def register_directories(self) -> None:
        """Add every directory this module writes into to the directory trees."""
        context = self.context
        if self.compiles_sources:
            for source in self.source_files():
                context.add_file_directory(
                    replace_extension(source, ".o"), context.intermediate_directory
                )
        for invocation in self.module.invocations:
            for output in invocation.outputs:
                context.add_file_directory(
                    join_path(self.module.path, output), context.intermediate_directory
                )
        if self.precompiled_header_path():
            context.add_file_directory(
                self.module.precompiled_header, context.intermediate_directory
            )
        context.add_directory_target(self.module.path, context.output_directory)

    # Phase 1

    def generate_object_macro(self) -> None:
        if self.compiles_sources:
            self.emitter.write_macro(self.objs_macro_name, self.object_files(), ":=", 5)

    def generate_target_macro(self) -> None:
        self.emitter.write_macro(self.target_macro_name, [self.target_path()], ":=")

    # Phase 2

    def base_cflags(self) -> List[str]:
        return [] if self.host else ["$(PROJECT_CFLAGS)"]

    def base_lflags(self) -> List[str]:
        return [] if self.host else ["$(PROJECT_LFLAGS)"]

    def type_lflags(self) -> List[str]:
        return []

    def generate_other_macros(self) -> None:
        if not self.compiles_sources:
            return
        emitter = self.emitter
        cflags = list(self.base_cflags())
        pch = self.precompiled_header_path()
        if pch:
            cflags.insert(0, f"-I{posixpath.dirname(pch)}")
        emitter.write_macro(self.cflags_macro_name, cflags, ":=")

        flag_builder = FlagBuilder(emitter)
        flag_builder.write_cflags_and_properties(
            self.cflags_macro_name, self.module.non_if_data, "+="
        )
        flag_builder.write_compiler_flags(
            self.cflags_macro_name, self.module.non_if_data, "+="
        )

        emitter.write_macro(
            self.lflags_macro_name,
            self.base_lflags() + self.type_lflags() + self.module.linker_flags,
            ":=",
        )
        emitter.write_macro(
            self.libs_macro_name,
            [target_macro(name) for name in self.module.libraries],
            ":=",
        )
        emitter.write_line()

    def precondition_prerequisites(self) -> List[str]:
        prerequisites = []
        if not self.host:
            prerequisites.append("$(INIT)")
        prerequisites.extend(target_macro(name) for name in self.module.dependencies)
        if self.module.invocations:
            prerequisites.append(f"$({self.invocations_macro_name})")
        pch = self.precompiled_header_path()
        if pch:
            prerequisites.append(pch)
        return prerequisites

    def generate_precondition_dependencies(self) -> None:
        if not self.object_files():
            return
        prerequisites = self.precondition_prerequisites()
        if not prerequisites:
            return
        self.emitter.write_macro(self.precondition_macro_name, prerequisites, ":=")
        self.emitter.write_rule(
            BuildTarget(
                name=self.objs_macro,
                order_only=[f"$({self.precondition_macro_name})"],
            )
        )
        self.emitter.write_line()

    def compiler_commands(self) -> Dict[str, str]:
        if self.host:
            return {"cc": "${host_gcc}", "cxx": "${host_gpp}"}
        return {"cc": "${gcc}", "cxx": "${gpp}"}

    def compilation_recipe(self, source: str) -> List[str]:
        extension = posixpath.splitext(source)[1]
        commands = self.compiler_commands()
        cflags = f"$({self.cflags_macro_name})"
        if extension in C_EXTENSIONS:
            return ["$(ECHO_CC)", f"{commands['cc']} -c $< -o $@ {cflags}"]
        if extension in CXX_EXTENSIONS:
            return ["$(ECHO_CC)", f"{commands['cxx']} -c $< -o $@ {cflags}"]
        if extension in GAS_EXTENSIONS:
            return [
                "$(ECHO_GAS)",
                f"{commands['cc']} -x assembler-with-cpp -c $< -o $@ -D__ASM__ {cflags}",
            ]
        if extension in NASM_EXTENSIONS:
            return ["$(ECHO_NASM)", "${nasm} -f win32 $< -o $@"]
        if extension in RC_EXTENSIONS:
            return ["$(ECHO_RC)", "${windres} $(PROJECT_RCFLAGS) -i $< -o $@"]
        raise ConfigurationError(
            f"Module '{self.module.name}' has unsupported source file: {source}"
        )

    def generate_compile_rule(self, source: str) -> None:
        obj = self.object_file(source)
        self.emitter.write_rule(
            BuildTarget(
                name=escape_spaces(obj),
                prerequisites=[escape_spaces(source)],
                order_only=[escape_spaces(posixpath.dirname(obj))],
                recipe=self.compilation_recipe(source),
            )
        )

    def generate_precompiled_header_rule(self) -> None:
        pch = self.precompiled_header_path()
        if not pch:
            return
        header = normalize_filename(self.module.precompiled_header)
        self.emitter.write_rule(
            BuildTarget(
                name=pch,
                prerequisites=[header],
                order_only=[posixpath.dirname(pch)],
                recipe=[
                    "$(ECHO_PCH)",
                    f"{self.compiler_commands()['cc']} -o $@ $({self.cflags_macro_name}) -g $<",
                ],
            )
        )

    @abstractmethod
    def generate_link_rule(self) -> None:
        """Write the rule that produces the module's target."""

    def process(self) -> None:
        if self.compiles_sources:
            self.generate_precompiled_header_rule()
            for source in self.source_files():
                self.generate_compile_rule(source)
        self.generate_link_rule()
        self.emitter.write_line()

    def generate_invocations(self) -> None:
        if not self.module.invocations:
            return
        emitter = self.emitter
        emitter.write_macro(self.invocations_macro_name, self.invocation_outputs(), ":=")
        for invocation in self.module.invocations:
            tool_macro = target_macro(invocation.executable)
            outputs = [
                self.context.logical_path(
                    join_path(self.module.path, output),
                    self.context.intermediate_directory,
                )
                for output in invocation.outputs
            ]
            directories = sorted({posixpath.dirname(output) for output in outputs})
            command = f"{tool_macro} {invocation.arguments}".rstrip()
            emitter.write_rule(
                BuildTarget(
                    name=join_wrapped(outputs),
                    prerequisites=[tool_macro],
                    order_only=directories,
                    recipe=["$(ECHO_INVOKE)", command],
                )
            )
        emitter.write_line()

    def clean_files(self) -> List[str]:
        files = [self.target_macro]
        if self.compiles_sources and self.module.files:
            files.append(self.objs_macro)
        if self.module.invocations:
            files.append(f"$({self.invocations_macro_name})")
        return files

    def generate_clean_target(self) -> None:
        files = self.clean_files()
        if not files:
            return
        name = f"{self.module.name}_clean"
        self.emitter.write_line(f".PHONY: {name}")
        self.emitter.write_rule(
            BuildTarget(
                name=name,
                recipe=[f"-@${{rm}} {join_wrapped(files)} 2>$(NUL)"],
            )
        )
        self.emitter.write_line(f"clean: {name}")
        self.emitter.write_line()

    def generate_install_target(self) -> None:
        if not self.module.install_name:
            return
        name = f"{self.module.name}_install"
        self.emitter.write_line(f".PHONY: {name}")
        self.emitter.write_rule(
            BuildTarget(
                name=name,
                prerequisites=[
                    install_target_path(
                        self.context, self.module.install_base, self.module.install_name
                    )
                ],
            )
        )
        self.emitter.write_line()

    def generate_depends_target(self) -> None:
        if not self.compiles_sources or not self.module.files:
            return
        name = f"{self.module.name}_depends"
        self.emitter.write_line(f".PHONY: {name}")
        self.emitter.write_rule(
            BuildTarget(
                name=name,
                recipe=[
                    "$(ECHO_DEPENDS)",
                    f"$(MAKEGEN) $(MAKEGEN_FLAGS) --check-module {self.module.name}",
                ],
            )
        )
        self.emitter.write_line()


class LinkedModuleHandler(ModuleHandler):
    """Modules whose objects are linked into an executable image."""

    default_extension = ".exe"
    linker = "${gcc}"
    link_flags: List[str] = []

    def type_lflags(self) -> List[str]:
        return list(self.link_flags)

    def link_command(self) -> str:
        return (
            f"{self.linker} $({self.lflags_macro_name}) -o $@ "
            f"{self.objs_macro} $({self.libs_macro_name})"
        )

    def generate_link_rule(self) -> None:
        self.emitter.write_rule(
            BuildTarget(
                name=self.target_macro,
                prerequisites=[self.objs_macro, f"$({self.libs_macro_name})"],
                order_only=[self.output_directory_path()],
                recipe=["$(ECHO_LD)", self.link_command()],
            )
        )


class ProgramHandler(LinkedModuleHandler):
    link_flags = ["-Wl,--subsystem,console"]


class RegressionTestHandler(ProgramHandler):
    """Test programs, built by `make test` only."""

    include_in_all = False


class DynamicLibraryHandler(LinkedModuleHandler):
    default_extension = ".dll"
    link_flags = ["-shared"]


class KernelHandler(LinkedModuleHandler):
    link_flags = [
        "-nostartfiles",
        "-nostdlib",
        "-Wl,--subsystem,native",
        "-Wl,--entry,_KiSystemStartup",
    ]


class KernelModeDllHandler(LinkedModuleHandler):
    default_extension = ".dll"
    link_flags = ["-shared", "-nostartfiles", "-nostdlib", "-Wl,--subsystem,native"]


class KernelModeDriverHandler(LinkedModuleHandler):
    default_extension = ".sys"
    link_flags = [
        "-nostartfiles",
        "-nostdlib",
        "-Wl,--subsystem,native",
        "-Wl,--entry,_DriverEntry@8",
    ]


class BootLoaderHandler(LinkedModuleHandler):
    default_extension = ".sys"
    linker = "${ld}"
    link_flags = ["-N", "-Ttext=0x8000", "--oformat", "binary"]


class BuildToolHandler(LinkedModuleHandler):
    """Tools compiled for the host and run while the project builds."""

    default_extension = ""
    linker = "${host_gcc}"
    host = True


class StaticLibraryHandler(ModuleHandler):
    default_extension = ".a"

    def target_filename(self) -> str:
        return f"lib{super().target_filename()}"

    def generate_link_rule(self) -> None:
        self.emitter.write_rule(
            BuildTarget(
                name=self.target_macro,
                prerequisites=[self.objs_macro],
                order_only=[self.output_directory_path()],
                recipe=["$(ECHO_AR)", f"${{ar}} -rc $@ {self.objs_macro}"],
            )
        )


class ObjectLibraryHandler(ModuleHandler):
    """Reference-only modules: other modules link their object files directly."""

    include_in_all = False

    def generate_target_macro(self) -> None:
        self.emitter.write_macro(self.target_macro_name, [self.objs_macro], ":=")

    def generate_link_rule(self) -> None:
        pass

    def clean_files(self) -> List[str]:
        files = [self.objs_macro] if self.module.files else []
        if self.module.invocations:
            files.append(f"$({self.invocations_macro_name})")
        return files


class BootSectorHandler(ModuleHandler):
    """A flat binary assembled straight from a single nasm source."""

    default_extension = ".o"
    include_in_all = False
    compiles_sources = False

    def validate(self) -> None:
        super().validate()
        if len(self.module.files) != 1:
            raise ConfigurationError(
                f"Boot sector module '{self.module.name}' must have exactly one source file"
            )

    def generate_link_rule(self) -> None:
        source = self.source_files()[0]
        self.emitter.write_rule(
            BuildTarget(
                name=self.target_macro,
                prerequisites=[escape_spaces(source)],
                order_only=[self.output_directory_path()],
                recipe=["$(ECHO_NASM)", "${nasm} -f bin -o $@ $<"],
            )
        )


class IsoHandler(ModuleHandler):
    """A bootable CD image built from the install tree."""

    default_extension = ".iso"
    include_in_all = False
    compiles_sources = False
    cdmake_flags = ["-m"]

    def boot_sector_macro(self) -> Optional[str]:
        for name in self.module.dependencies:
            module = self.context.locate_enabled_module(name)
            if module is not None and module.type == ModuleType.BOOT_SECTOR:
                return target_macro(name)
        return None

    def generate_link_rule(self) -> None:
        arguments = ["-v"] + self.cdmake_flags
        boot_sector = self.boot_sector_macro()
        if boot_sector:
            arguments += ["-b", boot_sector]
        arguments += ["$(INSTALL)", "$@"]
        self.emitter.write_rule(
            BuildTarget(
                name=self.target_macro,
                prerequisites=[target_macro(name) for name in self.module.dependencies],
                order_only=[self.output_directory_path(), "install"],
                recipe=["$(ECHO_CDMAKE)", f"$(CDMAKE_TARGET) {' '.join(arguments)}"],
            )
        )


class LiveIsoHandler(IsoHandler):
    cdmake_flags = ["-j", "-m"]


class AliasHandler(ModuleHandler):
    """A second name (and install identity) for another module's artifact."""

    include_in_all = False
    compiles_sources = False

    def aliased_module(self) -> Module:
        """Resolve the aliased module by name.

        Raises:
            DanglingAliasError: If no enabled module has that name
        """
        aliased = self.context.locate_enabled_module(self.module.aliased_module_name)
        if aliased is None:
            raise DanglingAliasError(self.module.name, self.module.aliased_module_name)
        return aliased

    def validate(self) -> None:
        super().validate()
        self.aliased_module()

    def register_directories(self) -> None:
        pass

    def generate_target_macro(self) -> None:
        # Recursive so the aliased module may be declared later.
        self.emitter.write_macro(
            self.target_macro_name, [target_macro(self.aliased_module().name)], "="
        )

    def generate_link_rule(self) -> None:
        pass

    def process(self) -> None:
        pass

    def clean_files(self) -> List[str]:
        return []


HANDLERS: Dict[ModuleType, Type[ModuleHandler]] = {
    ModuleType.PROGRAM: ProgramHandler,
    ModuleType.DYNAMIC_LIBRARY: DynamicLibraryHandler,
    ModuleType.STATIC_LIBRARY: StaticLibraryHandler,
    ModuleType.OBJECT_LIBRARY: ObjectLibraryHandler,
    ModuleType.KERNEL: KernelHandler,
    ModuleType.KERNEL_MODE_DLL: KernelModeDllHandler,
    ModuleType.KERNEL_MODE_DRIVER: KernelModeDriverHandler,
    ModuleType.BOOT_LOADER: BootLoaderHandler,
    ModuleType.BOOT_SECTOR: BootSectorHandler,
    ModuleType.ISO: IsoHandler,
    ModuleType.LIVE_ISO: LiveIsoHandler,
    ModuleType.BUILD_TOOL: BuildToolHandler,
    ModuleType.TEST: RegressionTestHandler,
    ModuleType.ALIAS: AliasHandler,
}


def create_handler(module: Module, context: GenerationContext) -> ModuleHandler:
    """Instantiate and validate the handler for a module's type.

    Raises:
        UnknownModuleTypeError: If no handler is registered for the type
        ConfigurationError: If the module fails validation
    """
    try:
        handler_class = HANDLERS.get(module.type)
    except TypeError:
        handler_class = None
    if handler_class is None:
        raise UnknownModuleTypeError(module.name, module.type)
    handler = handler_class(module, context)
    handler.validate()
    return handler
