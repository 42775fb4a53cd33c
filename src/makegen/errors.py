"""
Exception hierarchy for Makegen.

Every fatal condition raised while generating a Makefile derives from
MakegenError so the CLI can report it uniformly. Non-fatal conditions (a
compiler or assembler that could not be detected) are not exceptions; they
are logged and recorded on the probed toolchain.
"""


class MakegenError(Exception):
    """Base class for all fatal generation errors."""

    pass


class ConfigurationError(MakegenError):
    """Raised when the project model or generator configuration is invalid."""

    pass


class InvalidPathError(ConfigurationError):
    """Raised when a directory path still contains a variable reference."""

    def __init__(self, path: str):
        self.path = path
        super().__init__(f"No environment variables can be used here. Path was {path}")


class UnknownModuleTypeError(ConfigurationError):
    """Raised when no handler is registered for a module's type."""

    def __init__(self, module_name: str, module_type: object):
        self.module_name = module_name
        self.module_type = module_type
        super().__init__(
            f"Module '{module_name}' has unsupported module type: {module_type}"
        )


class DanglingAliasError(ConfigurationError):
    """Raised when an alias module names a module that does not exist."""

    def __init__(self, module_name: str, aliased_module_name: str):
        self.module_name = module_name
        self.aliased_module_name = aliased_module_name
        super().__init__(
            f"Module '{module_name}' is an alias of unknown module "
            f"'{aliased_module_name}'"
        )


class AccessDeniedError(MakegenError):
    """Raised when a directory or the output file cannot be created."""

    def __init__(self, path: str, reason: str = ""):
        self.path = path
        message = f"Access denied: {path}"
        if reason:
            message += f" ({reason})"
        super().__init__(message)


class UnsupportedToolchainError(MakegenError):
    """Raised when a detected build tool has a version known not to work."""

    def __init__(self, command: str, version: str):
        self.command = command
        self.version = version
        super().__init__(f"Build tool {command} has unsupported version ({version})")
