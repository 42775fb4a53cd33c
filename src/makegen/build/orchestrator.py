"""
Makefile generation orchestration for Makegen projects.

This module coordinates a complete generation run, from probing the host
toolchain to writing the finished Makefile. The section order of the output
is fixed, because later sections reference variables defined by earlier
ones:

1. Header comment
2. Global variables and project-wide flags (with nested ifeq guards)
3. Object macros of every module
4. Target macros of every module
5. `all` aggregate target
6. INIT (build tools every other module waits for)
7. Other per-module macros (CFLAGS, LFLAGS, LIBS)
8. Per-module rule blocks
9. `install` target (non-module files, module files, registry hives)
10. `test` target
11. Directory creation rules
12. Physical directory creation (no text emitted)
13. Proxy makefiles
14. Automatic dependency check
15. Close (the Makefile is moved into place atomically)
"""

import logging
import posixpath
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional

from ..config.generator_config import GeneratorConfig
from ..errors import ConfigurationError, DanglingAliasError
from ..project.model import Module, ModuleType, Project
from ..toolchain.probe import Toolchain, ToolchainProbe, prefixed
from .automatic_dependency import AutomaticDependency
from .build_utils import directory_of, join_path, normalize_filename
from .context import GenerationContext
from .emitter import BuildTarget, MakefileEmitter, join_wrapped
from .flag_builder import FlagBuilder
from .module_handlers import (
    ModuleHandler,
    create_handler,
    install_target_path,
)
from .proxy_makefile import ProxyMakefile

REGISTRY_CONFIG_DIRECTORY = "system32/config"
REGISTRY_HIVES = ["default", "sam", "security", "software", "system"]

ECHO_MACROS = {
    "ECHO_MKDIR": "[MKDIR]",
    "ECHO_CC": "[CC]",
    "ECHO_GAS": "[GAS]",
    "ECHO_NASM": "[NASM]",
    "ECHO_RC": "[RC]",
    "ECHO_PCH": "[PCH]",
    "ECHO_AR": "[AR]",
    "ECHO_LD": "[LD]",
    "ECHO_CP": "[CP]",
    "ECHO_INVOKE": "[INVOKE]",
    "ECHO_CDMAKE": "[CDMAKE]",
    "ECHO_MKHIVE": "[MKHIVE]",
    "ECHO_DEPENDS": "[DEPENDS]",
}


@dataclass
class GenerationResult:
    """Result of a generation run."""

    makefile: Optional[Path]
    toolchain: Optional[Toolchain]
    created_directories: List[Path] = field(default_factory=list)
    proxy_makefiles: List[Path] = field(default_factory=list)
    touched_files: List[Path] = field(default_factory=list)
    generation_time: float = 0.0


class MakefileBackend:
    """
    Generates a Makefile for a resolved project model.

    Example usage:
        backend = MakefileBackend(project, GeneratorConfig.from_environment())
        result = backend.process()
        print(f"Makefile: {result.makefile}")
    """

    def __init__(
        self,
        project: Project,
        config: Optional[GeneratorConfig] = None,
        probe: Optional[ToolchainProbe] = None,
    ):
        """
        Initialize backend.

        Args:
            project: Project model to generate a Makefile for
            config: Generator configuration (defaults from the environment)
            probe: Toolchain probe (a default ToolchainProbe if None)
        """
        self.project = project
        self.config = config or GeneratorConfig.from_environment()
        self.probe = probe or ToolchainProbe()

    @property
    def verbose(self) -> bool:
        return self.config.verbose

    def makefile_path(self) -> Path:
        path = Path(self.config.makefile or self.project.makefile)
        if not path.is_absolute():
            path = Path(self.config.project_root) / path
        return path

    def process(self) -> GenerationResult:
        """Run generation, or only the dependency check for a single module."""
        if self.config.check_dependencies_for_module_only:
            return self.check_automatic_dependencies_for_module_only()
        return self.process_normal()

    def check_automatic_dependencies_for_module_only(self) -> GenerationResult:
        result = GenerationResult(makefile=None, toolchain=None)
        if not self.config.automatic_dependencies:
            return result

        name = self.config.check_dependencies_for_module_only
        module = self.project.locate_module(name)
        if module is None:
            print(f"Module '{name}' does not exist")
            return result

        print(f"Checking automatic dependencies for module '{module.name}'...", end="", flush=True)
        checker = AutomaticDependency(self.project, self.config.project_root)
        result.touched_files = checker.check_automatic_dependencies_for_module(
            module, self.verbose
        )
        print("done")
        return result

    def process_normal(self) -> GenerationResult:
        """
        Execute a complete generation run.

        Raises:
            ConfigurationError: On an invalid project model
            AccessDeniedError: If the Makefile or a directory cannot be written
            UnsupportedToolchainError: If binutils has a rejected version
        """
        start_time = time.time()
        toolchain = self.probe.probe()
        context = GenerationContext(
            project=self.project, config=self.config, toolchain=toolchain
        )

        handlers = self.create_handlers(context)
        self.register_directories(context, handlers)
        context.freeze_directories()

        result = GenerationResult(makefile=self.makefile_path(), toolchain=toolchain)
        logging.info(f"Generating {result.makefile} for project {self.project.name}")

        with MakefileEmitter(result.makefile) as emitter:
            context.emitter = emitter
            self.generate_header(context)
            self.generate_global_variables(context)
            self.process_modules(context, handlers)
            self.generate_install_target(context, handlers)
            self.generate_test_target(context, handlers)
            self.generate_directory_targets(context)
            result.created_directories = self.generate_directories(context)
            result.proxy_makefiles = self.generate_proxy_makefiles()
            result.touched_files = self.check_automatic_dependencies()

        result.generation_time = time.time() - start_time
        logging.info(f"Generated {result.makefile} in {result.generation_time:.2f}s")
        return result

    # Preparation

    def create_handlers(self, context: GenerationContext) -> List[ModuleHandler]:
        """Create a handler for every enabled module, failing on the first bad one."""
        return [create_handler(module, context) for module in self.project.enabled_modules()]

    def register_directories(
        self, context: GenerationContext, handlers: List[ModuleHandler]
    ) -> None:
        """Populate the directory trees before any rule is written."""
        for handler in handlers:
            handler.register_directories()
        for install_file in self.project.install_files:
            context.add_directory_target(install_file.base, context.install_directory)
        for module in self.project.enabled_modules():
            if module.install_name:
                context.add_file_directory(
                    join_path(module.install_base, module.install_name),
                    context.install_directory,
                )
        context.add_directory_target(REGISTRY_CONFIG_DIRECTORY, context.install_directory)

    # Header and global variables

    def generate_header(self, context: GenerationContext) -> None:
        context.emitter.write_line(
            f"# THIS FILE IS AUTOMATICALLY GENERATED FROM THE {self.project.name} "
            "PROJECT DESCRIPTION, EDIT THAT INSTEAD"
        )
        context.emitter.write_line()

    def generate_tool_variables(self, context: GenerationContext) -> None:
        emitter = context.emitter
        toolchain = context.toolchain
        compiler = toolchain.compiler
        binutils = toolchain.binutils

        emitter.write_line(f"PREFIX := {toolchain.prefix}")
        emitter.write_line(f"gcc := {compiler.command}")
        emitter.write_line(f"gpp := {prefixed(compiler.prefix, 'g++')}")
        emitter.write_line(f"ld := {binutils.command}")
        emitter.write_line(f"ar := {prefixed(binutils.prefix, 'ar')}")
        emitter.write_line(f"windres := {prefixed(binutils.prefix, 'windres')}")
        emitter.write_line(f"nasm := {toolchain.assembler.command}")
        emitter.write_line("host_gcc := gcc")
        emitter.write_line("host_gpp := g++")
        emitter.write_line("mkdir := mkdir")
        emitter.write_line("rm := rm -f")
        emitter.write_line("cp := cp")
        emitter.write_line("NUL := /dev/null")
        emitter.write_line("MAKEGEN ?= makegen")
        emitter.write_macro("MAKEGEN_FLAGS", [self.config.generator_arguments], ":=")
        emitter.write_line("CDMAKE_TARGET ?= cdmake")
        emitter.write_line("MKHIVE_TARGET ?= mkhive")
        emitter.write_line()

        emitter.write_line(f"INTERMEDIATE := {self.config.intermediate_path}")
        emitter.write_line(f"OUTPUT := {self.config.output_path}")
        emitter.write_line(f"INSTALL := {self.config.install_path}")
        emitter.write_line()

        for name, label in ECHO_MACROS.items():
            emitter.write_line(f"{name} = @echo {label} $@")
        emitter.write_line()

    def generate_global_variables(self, context: GenerationContext) -> None:
        emitter = context.emitter
        self.generate_tool_variables(context)

        flag_builder = FlagBuilder(emitter)
        flag_builder.write_cflags_and_properties("PROJECT_CFLAGS", self.project.non_if_data, "=")
        flag_builder.write_compiler_flags("PROJECT_GCCOPTIONS", self.project.non_if_data, "=")
        if context.toolchain.use_pipe:
            emitter.write_line("PROJECT_GCCOPTIONS += -pipe")

        emitter.write_line("PROJECT_RCFLAGS := $(PROJECT_CFLAGS)")
        emitter.write_line("PROJECT_WIDLFLAGS := $(PROJECT_CFLAGS)")
        emitter.write_macro("PROJECT_LFLAGS", self.project.linker_flags, ":=")
        emitter.write_line("PROJECT_CFLAGS += -Wall")
        emitter.write_line("PROJECT_CFLAGS += $(PROJECT_GCCOPTIONS)")
        emitter.write_line()

    # Modules

    def process_modules(
        self, context: GenerationContext, handlers: List[ModuleHandler]
    ) -> None:
        print("Processing modules...", end="", flush=True)
        emitter = context.emitter

        for handler in handlers:
            handler.generate_object_macro()
        emitter.write_line()
        for handler in handlers:
            handler.generate_target_macro()
        emitter.write_line()

        self.generate_all_target(context, handlers)
        self.generate_init_target(context, handlers)

        for handler in handlers:
            handler.generate_other_macros()

        for handler in handlers:
            handler.generate_precondition_dependencies()
            handler.process()
            handler.generate_invocations()
            handler.generate_clean_target()
            handler.generate_install_target()
            handler.generate_depends_target()

        print("done")

    @staticmethod
    def include_in_all_target(handler: ModuleHandler) -> bool:
        return handler.include_in_all

    def generate_all_target(
        self, context: GenerationContext, handlers: List[ModuleHandler]
    ) -> None:
        context.emitter.write_line(".PHONY: all clean install install_registry test")
        context.emitter.write_rule(
            BuildTarget(
                name="all",
                prerequisites=[
                    handler.target_macro
                    for handler in handlers
                    if self.include_in_all_target(handler)
                ],
                wrap_at=5,
            )
        )
        context.emitter.write_line()

    def generate_init_target(
        self, context: GenerationContext, handlers: List[ModuleHandler]
    ) -> None:
        build_tools = [
            handler.target_macro
            for handler in handlers
            if handler.module.type == ModuleType.BUILD_TOOL
        ]
        context.emitter.write_macro("INIT", build_tools, "=")
        context.emitter.write_line()

    # Install

    def resolve_alias(self, module: Module) -> Module:
        """Follow alias references to the module providing the artifact.

        Raises:
            DanglingAliasError: If an alias names a missing module
            ConfigurationError: If aliases form a cycle
        """
        seen = {module.name}
        while module.type == ModuleType.ALIAS:
            aliased = self.project.locate_module(module.aliased_module_name)
            if aliased is None or not aliased.enabled:
                raise DanglingAliasError(module.name, module.aliased_module_name)
            if aliased.name in seen:
                raise ConfigurationError(f"Alias cycle through module '{aliased.name}'")
            seen.add(aliased.name)
            module = aliased
        return module

    def output_install_target(
        self,
        context: GenerationContext,
        source_filename: str,
        target_filename: str,
        target_directory: str,
    ) -> None:
        target = install_target_path(context, target_directory, target_filename)
        directory = posixpath.dirname(target)
        context.emitter.write_rule(
            BuildTarget(
                name=target,
                prerequisites=[source_filename],
                order_only=[directory],
                recipe=["$(ECHO_CP)", f"${{cp}} {source_filename} {target} 1>$(NUL)"],
            )
        )

    def non_module_install_target_files(self, context: GenerationContext) -> List[str]:
        return [
            install_target_path(context, f.base, f.newname)
            for f in self.project.install_files
        ]

    def module_install_target_files(self, context: GenerationContext) -> List[str]:
        return [
            install_target_path(context, module.install_base, module.install_name)
            for module in self.project.enabled_modules()
            if module.install_name
        ]

    def registry_config_directory(self, context: GenerationContext) -> str:
        return context.logical_path(REGISTRY_CONFIG_DIRECTORY, context.install_directory)

    def registry_source_files(self) -> List[str]:
        return [normalize_filename(f) for f in self.project.registry_source_files]

    def registry_target_files(self, context: GenerationContext) -> List[str]:
        config_directory = self.registry_config_directory(context)
        return [join_path(config_directory, hive) for hive in REGISTRY_HIVES]

    def output_registry_install_target(self, context: GenerationContext) -> None:
        emitter = context.emitter
        config_directory = self.registry_config_directory(context)
        sources = self.registry_source_files()
        targets = self.registry_target_files(context)
        source_directory = directory_of(sources[0]) if sources else "."
        hive_setup = next(
            (s for s in sources if s.endswith("hiveinst.inf")),
            join_path(source_directory, "hiveinst.inf"),
        )

        emitter.write_rule(BuildTarget(name="install_registry", prerequisites=targets))
        emitter.write_rule(
            BuildTarget(
                name=join_wrapped(targets),
                prerequisites=sources + ["$(MKHIVE_TARGET)"],
                order_only=[config_directory],
                recipe=[
                    "$(ECHO_MKHIVE)",
                    f"$(MKHIVE_TARGET) {source_directory} {config_directory} {hive_setup}",
                ],
            )
        )
        emitter.write_line()

    def generate_install_target(
        self, context: GenerationContext, handlers: List[ModuleHandler]
    ) -> None:
        emitter = context.emitter
        install_files = self.non_module_install_target_files(
            context
        ) + self.module_install_target_files(context)
        emitter.write_rule(
            BuildTarget(
                name="install",
                prerequisites=install_files + self.registry_target_files(context),
                wrap_at=5,
            )
        )

        for install_file in self.project.install_files:
            self.output_install_target(
                context,
                normalize_filename(install_file.path),
                install_file.newname,
                install_file.base,
            )

        handlers_by_name: Dict[str, ModuleHandler] = {
            handler.module.name: handler for handler in handlers
        }
        for module in self.project.enabled_modules():
            if not module.install_name:
                continue
            source_module = self.resolve_alias(module)
            source_handler = handlers_by_name[source_module.name]
            self.output_install_target(
                context,
                source_handler.target_path(),
                module.install_name,
                module.install_base,
            )

        self.output_registry_install_target(context)
        emitter.write_line()

    # Test

    def generate_test_target(
        self, context: GenerationContext, handlers: List[ModuleHandler]
    ) -> None:
        context.emitter.write_rule(
            BuildTarget(
                name="test",
                prerequisites=[
                    handler.target_macro
                    for handler in handlers
                    if handler.module.type == ModuleType.TEST
                ],
                wrap_at=5,
            )
        )
        context.emitter.write_line()

    # Directories

    def generate_directory_targets(self, context: GenerationContext) -> None:
        context.intermediate_directory.create_rule(context.emitter)
        context.output_directory.create_rule(context.emitter)
        context.install_directory.create_rule(context.emitter)

    def generate_directories(self, context: GenerationContext) -> List[Path]:
        print("Creating directories...", end="", flush=True)
        roots = self.config.roots
        base = Path(self.config.project_root)
        created = context.intermediate_directory.generate_tree(roots, self.verbose, base=base)
        created += context.output_directory.generate_tree(roots, self.verbose, base=base)
        if not self.config.make_handles_install_directories:
            created += context.install_directory.generate_tree(roots, self.verbose, base=base)
        print("done")
        return created

    # Auxiliary output

    def proxy_makefile_tree(self) -> str:
        if self.config.proxy_makefiles_in_source_tree:
            return ""
        return self.config.output_path

    def generate_proxy_makefiles(self) -> List[Path]:
        print("Generating proxy makefiles...", end="", flush=True)
        proxy = ProxyMakefile(self.project, self.config.project_root)
        makefiles = proxy.generate_proxy_makefiles(self.verbose, self.proxy_makefile_tree())
        print("done")
        return makefiles

    def check_automatic_dependencies(self) -> List[Path]:
        if not self.config.automatic_dependencies:
            return []
        print("Checking automatic dependencies...", end="", flush=True)
        checker = AutomaticDependency(self.project, self.config.project_root)
        touched = checker.check_automatic_dependencies(self.verbose)
        print("done")
        return touched
