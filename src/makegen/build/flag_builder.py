"""Compilation Flag Builder.

This module turns IfableData (includes, defines, compiler flags, properties
and nested conditional blocks) into make variable assignments.

Design:
    - The unconditional part is assigned with the caller's operator
      (`=`, `:=` or `+=`).
    - Each conditional block is wrapped in an
      `ifeq ("$(PROPERTY)","value")` ... `endif` guard and appends to the
      same variable with `+=`. Blocks nest to any depth and keep their
      declaration order.
    - A guard is only written when the block (or a block nested in it)
      contributes something to the variable being built.
"""

from typing import List

from ..project.model import Define, IfableData
from .build_utils import normalize_filename
from .emitter import MakefileEmitter


class FlagBuilder:
    """Writes compiler-flag variables for one scope of IfableData."""

    def __init__(self, emitter: MakefileEmitter):
        """Initialize flag builder.

        Args:
            emitter: Makefile emitter the assignments are written to
        """
        self.emitter = emitter

    @staticmethod
    def include_parameters(includes: List[str]) -> List[str]:
        return [f"-I{normalize_filename(include)}" for include in includes]

    @staticmethod
    def define_parameters(defines: List[Define]) -> List[str]:
        return [define.to_flag() for define in defines]

    @classmethod
    def includes_and_defines(cls, data: IfableData) -> List[str]:
        return cls.include_parameters(data.includes) + cls.define_parameters(data.defines)

    @classmethod
    def _has_includes_or_defines(cls, data: IfableData) -> bool:
        if data.includes or data.defines or data.properties:
            return True
        return any(cls._has_includes_or_defines(c.data) for c in data.ifs)

    @classmethod
    def _has_compiler_flags(cls, data: IfableData) -> bool:
        if data.compiler_flags:
            return True
        return any(cls._has_compiler_flags(c.data) for c in data.ifs)

    def _open_guard(self, property_name: str, value: str) -> None:
        self.emitter.write_line(f'ifeq ("$({property_name})","{value}")')

    def _close_guard(self) -> None:
        self.emitter.write_line("endif")
        self.emitter.write_line()

    def write_cflags_and_properties(
        self, macro: str, data: IfableData, operator: str = "="
    ) -> None:
        """Write properties plus include/define parameters of `data`.

        Args:
            macro: Variable receiving include and define parameters
            data: Settings for this scope
            operator: Assignment operator for the unconditional part
        """
        for prop in data.properties:
            self.emitter.write_line(f"{prop.name} := {prop.value}")

        if data.includes or data.defines:
            self.emitter.write_macro(macro, self.includes_and_defines(data), operator)

        for condition in data.ifs:
            if self._has_includes_or_defines(condition.data):
                self._open_guard(condition.property, condition.value)
                self.write_cflags_and_properties(macro, condition.data, "+=")
                self._close_guard()

    def write_compiler_flags(
        self, macro: str, data: IfableData, operator: str = "="
    ) -> None:
        """Write the raw compiler flags of `data`, guarded the same way."""
        if data.compiler_flags:
            self.emitter.write_macro(macro, data.compiler_flags, operator)

        for condition in data.ifs:
            if self._has_compiler_flags(condition.data):
                self._open_guard(condition.property, condition.value)
                self.write_compiler_flags(macro, condition.data, "+=")
                self._close_guard()
