"""
Unit tests for per-module-type Makefile generation.
"""

from dataclasses import replace

import pytest

from makegen.build.context import GenerationContext
from makegen.build.module_handlers import (
    HANDLERS,
    AliasHandler,
    BuildToolHandler,
    IsoHandler,
    StaticLibraryHandler,
    create_handler,
    target_macro,
)
from makegen.errors import ConfigurationError, DanglingAliasError, UnknownModuleTypeError
from makegen.project.model import (
    Define,
    IfableData,
    Invocation,
    Module,
    ModuleType,
    Project,
)


@pytest.fixture
def make_context(generator_config, toolchain, memory_emitter):
    """Factory for a generation context over a list of modules."""

    def _make(modules, toolchain_override=None):
        project = Project(name="demo", modules=modules)
        return GenerationContext(
            project=project,
            config=generator_config,
            toolchain=toolchain_override or toolchain,
            emitter=memory_emitter,
        )

    return _make


def foo_library():
    return Module(
        name="foo",
        type=ModuleType.STATIC_LIBRARY,
        path="lib/foo",
        files=["lib/foo/foo.c"],
    )


class TestHandlerRegistry:
    """Test handler selection."""

    def test_every_module_type_has_a_handler(self):
        assert set(HANDLERS) == set(ModuleType)

    def test_create_handler_picks_class_by_type(self, make_context):
        module = foo_library()
        context = make_context([module])

        assert isinstance(create_handler(module, context), StaticLibraryHandler)

    def test_unknown_type_is_rejected(self, make_context):
        module = Module(name="weird", type="notatype")
        context = make_context([module])

        with pytest.raises(UnknownModuleTypeError) as exc_info:
            create_handler(module, context)

        assert exc_info.value.module_name == "weird"

    def test_target_macro_name(self):
        assert target_macro("foo-bar.v2") == "$(FOO_BAR_V2_TARGET)"


class TestValidation:
    """Test module validation done at handler creation."""

    def test_dangling_alias(self, make_context):
        module = Module(name="a", type=ModuleType.ALIAS, aliased_module_name="missing")
        context = make_context([module])

        with pytest.raises(DanglingAliasError):
            create_handler(module, context)

    def test_alias_of_disabled_module_is_dangling(self, make_context):
        target = replace(foo_library(), enabled=False)
        alias = Module(name="a", type=ModuleType.ALIAS, aliased_module_name="foo")
        context = make_context([target, alias])

        with pytest.raises(DanglingAliasError):
            create_handler(alias, context)

    def test_unknown_library(self, make_context):
        module = replace(foo_library(), libraries=["nothere"])
        context = make_context([module])

        with pytest.raises(ConfigurationError, match="nothere"):
            create_handler(module, context)

    def test_unsupported_source_extension(self, make_context):
        module = replace(foo_library(), files=["lib/foo/readme.txt"])
        context = make_context([module])

        with pytest.raises(ConfigurationError, match="readme.txt"):
            create_handler(module, context)

    def test_invocation_requires_build_tool(self, make_context):
        module = replace(
            foo_library(),
            invocations=[Invocation(executable="foo", outputs=["gen.c"])],
        )
        context = make_context([module])

        with pytest.raises(ConfigurationError, match="not a build tool"):
            create_handler(module, context)

    def test_boot_sector_needs_exactly_one_source(self, make_context):
        module = Module(
            name="boot",
            type=ModuleType.BOOT_SECTOR,
            files=["boot/a.asm", "boot/b.asm"],
        )
        context = make_context([module])

        with pytest.raises(ConfigurationError, match="exactly one"):
            create_handler(module, context)


class TestStaticLibraryHandler:
    """Test generated text for a static library."""

    @pytest.fixture
    def handler(self, make_context):
        module = foo_library()
        module.non_if_data = IfableData(defines=[Define("FOO")])
        context = make_context([module])
        handler = create_handler(module, context)
        handler.register_directories()
        return handler

    def test_phase_one_macros(self, handler, memory_emitter):
        handler.generate_object_macro()
        handler.generate_target_macro()

        assert memory_emitter.text == (
            "FOO_OBJS := $(INTERMEDIATE)/lib/foo/foo.o\n"
            "FOO_TARGET := $(OUTPUT)/lib/foo/libfoo.a\n"
        )

    def test_object_macro_escapes_spaces(self, make_context, memory_emitter):
        module = replace(foo_library(), files=["lib/foo/my file.c"])
        handler = create_handler(module, make_context([module]))

        handler.generate_object_macro()
        handler.generate_compile_rule("lib/foo/my file.c")

        text = memory_emitter.text
        assert "FOO_OBJS := $(INTERMEDIATE)/lib/foo/my\\ file.o\n" in text
        assert "$(INTERMEDIATE)/lib/foo/my\\ file.o: lib/foo/my\\ file.c" in text

    def test_registers_directories(self, handler):
        context = handler.context
        assert context.intermediate_directory.contains("lib/foo")
        assert context.output_directory.contains("lib/foo")
        assert context.install_directory.subdirs == {}

    def test_other_macros(self, handler, memory_emitter):
        handler.generate_other_macros()

        assert memory_emitter.text == (
            "FOO_CFLAGS := $(PROJECT_CFLAGS)\n"
            "FOO_CFLAGS += -DFOO\n"
            "FOO_LFLAGS := $(PROJECT_LFLAGS)\n"
            "FOO_LIBS :=\n"
            "\n"
        )

    def test_precondition(self, handler, memory_emitter):
        handler.generate_precondition_dependencies()

        assert memory_emitter.text == (
            "FOO_PRECONDITION := $(INIT)\n"
            "$(FOO_OBJS): | $(FOO_PRECONDITION)\n"
            "\n"
        )

    def test_compile_and_archive_rules(self, handler, memory_emitter):
        handler.process()

        assert memory_emitter.text == (
            "$(INTERMEDIATE)/lib/foo/foo.o: lib/foo/foo.c | $(INTERMEDIATE)/lib/foo\n"
            "\t$(ECHO_CC)\n"
            "\t${gcc} -c $< -o $@ $(FOO_CFLAGS)\n"
            "$(FOO_TARGET): $(FOO_OBJS) | $(OUTPUT)/lib/foo\n"
            "\t$(ECHO_AR)\n"
            "\t${ar} -rc $@ $(FOO_OBJS)\n"
            "\n"
        )

    def test_clean_target(self, handler, memory_emitter):
        handler.generate_clean_target()

        assert memory_emitter.text == (
            ".PHONY: foo_clean\n"
            "foo_clean:\n"
            "\t-@${rm} $(FOO_TARGET) $(FOO_OBJS) 2>$(NUL)\n"
            "clean: foo_clean\n"
            "\n"
        )

    def test_depends_target(self, handler, memory_emitter):
        handler.generate_depends_target()

        assert "foo_depends:\n" in memory_emitter.text
        assert "$(MAKEGEN) $(MAKEGEN_FLAGS) --check-module foo" in memory_emitter.text

    def test_not_installed_means_no_install_target(self, handler, memory_emitter):
        handler.generate_install_target()

        assert memory_emitter.text == ""


class TestLinkedModules:
    """Test programs, drivers and build tools."""

    def test_program_links_libraries(self, make_context, memory_emitter):
        library = foo_library()
        program = Module(
            name="bar",
            type=ModuleType.PROGRAM,
            path="apps/bar",
            files=["apps/bar/main.cpp"],
            libraries=["foo"],
            install_base="system32",
            install_name="bar.exe",
        )
        context = make_context([library, program])
        handler = create_handler(program, context)

        handler.generate_other_macros()
        handler.process()
        handler.generate_install_target()

        text = memory_emitter.text
        assert "BAR_LFLAGS := $(PROJECT_LFLAGS) -Wl,--subsystem,console\n" in text
        assert "BAR_LIBS := $(FOO_TARGET)\n" in text
        assert "\t${gpp} -c $< -o $@ $(BAR_CFLAGS)\n" in text
        assert "$(BAR_TARGET): $(BAR_OBJS) $(BAR_LIBS) | $(OUTPUT)/apps/bar\n" in text
        assert "\t${gcc} $(BAR_LFLAGS) -o $@ $(BAR_OBJS) $(BAR_LIBS)\n" in text
        assert "bar_install: $(INSTALL)/system32/bar.exe\n" in text
        assert handler.target_path() == "$(OUTPUT)/apps/bar/bar.exe"

    def test_driver_extension_and_entry_point(self, make_context):
        module = Module(
            name="null",
            type=ModuleType.KERNEL_MODE_DRIVER,
            path="drivers/null",
            files=["drivers/null/null.c"],
        )
        handler = create_handler(module, make_context([module]))

        assert handler.target_filename() == "null.sys"
        assert "-Wl,--entry,_DriverEntry@8" in handler.type_lflags()

    def test_extension_override(self, make_context):
        module = Module(
            name="hal",
            type=ModuleType.KERNEL_MODE_DLL,
            files=["hal/hal.c"],
            extension="",
        )
        handler = create_handler(module, make_context([module]))

        assert handler.target_filename() == "hal"

    def test_build_tool_uses_host_compiler(self, make_context, memory_emitter):
        module = Module(
            name="cdmake",
            type=ModuleType.BUILD_TOOL,
            path="tools/cdmake",
            files=["tools/cdmake/cdmake.c"],
        )
        handler = create_handler(module, make_context([module]))

        handler.generate_other_macros()
        handler.generate_precondition_dependencies()
        handler.process()

        text = memory_emitter.text
        assert isinstance(handler, BuildToolHandler)
        assert "CDMAKE_CFLAGS :=\n" in text
        assert "CDMAKE_PRECONDITION" not in text
        assert "\t${host_gcc} -c $< -o $@ $(CDMAKE_CFLAGS)\n" in text
        assert "\t${host_gcc} $(CDMAKE_LFLAGS) -o $@ $(CDMAKE_OBJS) $(CDMAKE_LIBS)\n" in text
        assert handler.target_path() == "$(OUTPUT)/tools/cdmake/cdmake"

    def test_source_kinds(self, make_context):
        module = Module(
            name="mix",
            type=ModuleType.PROGRAM,
            files=["mix/a.S", "mix/b.asm", "mix/c.rc"],
        )
        handler = create_handler(module, make_context([module]))

        assert handler.compilation_recipe("mix/a.S")[0] == "$(ECHO_GAS)"
        assert handler.compilation_recipe("mix/b.asm") == [
            "$(ECHO_NASM)",
            "${nasm} -f win32 $< -o $@",
        ]
        assert handler.compilation_recipe("mix/c.rc") == [
            "$(ECHO_RC)",
            "${windres} $(PROJECT_RCFLAGS) -i $< -o $@",
        ]


class TestSpecialModules:
    """Test object libraries, boot sectors, ISO images and aliases."""

    def test_object_library_target_is_its_objects(self, make_context, memory_emitter):
        module = Module(
            name="crt",
            type=ModuleType.OBJECT_LIBRARY,
            files=["lib/crt/a.c"],
        )
        handler = create_handler(module, make_context([module]))

        handler.generate_target_macro()
        handler.generate_clean_target()

        assert not handler.include_in_all
        assert memory_emitter.text.startswith("CRT_TARGET := $(CRT_OBJS)\n")
        assert "\t-@${rm} $(CRT_OBJS) 2>$(NUL)\n" in memory_emitter.text

    def test_iso_uses_boot_sector(self, make_context, memory_emitter):
        bootsect = Module(
            name="isoboot",
            type=ModuleType.BOOT_SECTOR,
            path="boot",
            files=["boot/isoboot.asm"],
        )
        iso = Module(name="bootcd", type=ModuleType.ISO, dependencies=["isoboot"])
        context = make_context([bootsect, iso])
        handler = create_handler(iso, context)

        handler.generate_object_macro()
        handler.process()

        assert isinstance(handler, IsoHandler)
        assert memory_emitter.text == (
            "$(BOOTCD_TARGET): $(ISOBOOT_TARGET) | $(OUTPUT) install\n"
            "\t$(ECHO_CDMAKE)\n"
            "\t$(CDMAKE_TARGET) -v -m -b $(ISOBOOT_TARGET) $(INSTALL) $@\n"
            "\n"
        )

    def test_live_iso_flags(self, make_context, memory_emitter):
        iso = Module(name="livecd", type=ModuleType.LIVE_ISO)
        handler = create_handler(iso, make_context([iso]))

        handler.process()

        assert "\t$(CDMAKE_TARGET) -v -j -m $(INSTALL) $@\n" in memory_emitter.text

    def test_boot_sector_rule(self, make_context, memory_emitter):
        module = Module(
            name="isoboot",
            type=ModuleType.BOOT_SECTOR,
            path="boot",
            files=["boot/isoboot.asm"],
        )
        handler = create_handler(module, make_context([module]))

        handler.generate_object_macro()
        handler.process()

        assert memory_emitter.text == (
            "$(ISOBOOT_TARGET): boot/isoboot.asm | $(OUTPUT)/boot\n"
            "\t$(ECHO_NASM)\n"
            "\t${nasm} -f bin -o $@ $<\n"
            "\n"
        )

    def test_alias_shares_target_and_writes_no_rules(self, make_context, memory_emitter):
        library = foo_library()
        alias = Module(name="foo_alias", type=ModuleType.ALIAS, aliased_module_name="foo")
        handler = create_handler(alias, make_context([library, alias]))

        handler.generate_object_macro()
        handler.generate_target_macro()
        handler.process()
        handler.generate_clean_target()

        assert isinstance(handler, AliasHandler)
        assert memory_emitter.text == "FOO_ALIAS_TARGET = $(FOO_TARGET)\n"


class TestGeneratedSources:
    """Test invocations and pre-compiled headers."""

    def test_invocation_rules(self, make_context, memory_emitter):
        tool = Module(
            name="wmc",
            type=ModuleType.BUILD_TOOL,
            path="tools/wmc",
            files=["tools/wmc/wmc.c"],
        )
        module = replace(
            foo_library(),
            invocations=[
                Invocation(
                    executable="wmc",
                    arguments="-i lib/foo/msg.mc",
                    outputs=["msg.rc", "msg.h"],
                )
            ],
        )
        handler = create_handler(module, make_context([tool, module]))

        handler.generate_precondition_dependencies()
        handler.generate_invocations()

        text = memory_emitter.text
        assert "FOO_PRECONDITION := $(INIT) $(FOO_INVOCATIONS)\n" in text
        assert (
            "FOO_INVOCATIONS := $(INTERMEDIATE)/lib/foo/msg.rc $(INTERMEDIATE)/lib/foo/msg.h\n"
            in text
        )
        assert (
            "$(INTERMEDIATE)/lib/foo/msg.rc $(INTERMEDIATE)/lib/foo/msg.h: "
            "$(WMC_TARGET) | $(INTERMEDIATE)/lib/foo\n" in text
        )
        assert "\t$(WMC_TARGET) -i lib/foo/msg.mc\n" in text

    def test_precompiled_header_only_when_supported(self, make_context, toolchain, memory_emitter):
        module = replace(foo_library(), precompiled_header="lib/foo/precomp.h")

        unsupported = create_handler(module, make_context([module]))
        assert unsupported.precompiled_header_path() is None

        context = make_context([module], replace(toolchain, use_pch=True))
        handler = create_handler(module, context)
        handler.generate_other_macros()
        handler.generate_precondition_dependencies()
        handler.generate_precompiled_header_rule()

        text = memory_emitter.text
        assert "FOO_CFLAGS := -I$(INTERMEDIATE)/lib/foo $(PROJECT_CFLAGS)\n" in text
        assert "FOO_PRECONDITION := $(INIT) $(INTERMEDIATE)/lib/foo/precomp.h.gch\n" in text
        assert (
            "$(INTERMEDIATE)/lib/foo/precomp.h.gch: lib/foo/precomp.h | $(INTERMEDIATE)/lib/foo\n"
            in text
        )
