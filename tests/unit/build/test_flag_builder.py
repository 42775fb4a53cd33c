"""
Unit tests for FlagBuilder.
"""

from makegen.build.flag_builder import FlagBuilder
from makegen.project.model import Condition, Define, IfableData, Property


class TestFlagBuilder:
    """Test compiler-flag variable generation."""

    def test_include_and_define_parameters(self):
        data = IfableData(
            includes=["include", "lib\\foo"],
            defines=[Define("DBG"), Define("WINVER", "0x501")],
        )

        assert FlagBuilder.includes_and_defines(data) == [
            "-Iinclude",
            "-Ilib/foo",
            "-DDBG",
            "-DWINVER=0x501",
        ]

    def test_unconditional_flags_use_given_operator(self, memory_emitter):
        data = IfableData(includes=["include"], compiler_flags=["-O2"])
        builder = FlagBuilder(memory_emitter)

        builder.write_cflags_and_properties("PROJECT_CFLAGS", data, "=")
        builder.write_compiler_flags("PROJECT_GCCOPTIONS", data, "=")

        assert memory_emitter.text == (
            "PROJECT_CFLAGS = -Iinclude\n"
            "PROJECT_GCCOPTIONS = -O2\n"
        )

    def test_nested_conditions(self, memory_emitter):
        data = IfableData(
            includes=["include"],
            defines=[Define("_X86_")],
            properties=[Property("ARCH", "i386")],
            ifs=[
                Condition(
                    "ARCH",
                    "i386",
                    IfableData(
                        defines=[Define("_M_IX86")],
                        ifs=[Condition("DBG", "1", IfableData(defines=[Define("DBG", "1")]))],
                    ),
                )
            ],
        )

        FlagBuilder(memory_emitter).write_cflags_and_properties("PROJECT_CFLAGS", data, "=")

        assert memory_emitter.text == (
            "ARCH := i386\n"
            "PROJECT_CFLAGS = -Iinclude -D_X86_\n"
            'ifeq ("$(ARCH)","i386")\n'
            "PROJECT_CFLAGS += -D_M_IX86\n"
            'ifeq ("$(DBG)","1")\n'
            "PROJECT_CFLAGS += -DDBG=1\n"
            "endif\n"
            "\n"
            "endif\n"
            "\n"
        )

    def test_guard_omitted_when_block_contributes_nothing(self, memory_emitter):
        data = IfableData(
            ifs=[
                Condition("DBG", "1", IfableData(compiler_flags=["-g"])),
                Condition("ARCH", "i386", IfableData(ifs=[Condition("X", "1")])),
            ]
        )

        FlagBuilder(memory_emitter).write_cflags_and_properties("FOO_CFLAGS", data, "+=")

        assert memory_emitter.text == ""

    def test_compiler_flags_under_condition(self, memory_emitter):
        data = IfableData(
            defines=[Define("UNUSED")],
            ifs=[Condition("DBG", "1", IfableData(compiler_flags=["-g"]))],
        )

        FlagBuilder(memory_emitter).write_compiler_flags("FOO_CFLAGS", data, "+=")

        assert memory_emitter.text == (
            'ifeq ("$(DBG)","1")\n'
            "FOO_CFLAGS += -g\n"
            "endif\n"
            "\n"
        )
