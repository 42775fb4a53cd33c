"""
Makefile generation components for Makegen.

This module provides the generator backend including:
- Directory trees for intermediate, output and install files
- The atomic Makefile emitter
- Per-module-type rule generation
- Proxy makefiles and automatic header dependency checks
- Backend orchestration
"""

from .automatic_dependency import AutomaticDependency
from .context import GenerationContext
from .directory_tree import Directory, resolve_variables
from .emitter import BuildTarget, MakefileEmitter, join_wrapped
from .flag_builder import FlagBuilder
from .module_handlers import HANDLERS, ModuleHandler, create_handler
from .orchestrator import GenerationResult, MakefileBackend
from .proxy_makefile import ProxyMakefile

__all__ = [
    'AutomaticDependency',
    'BuildTarget',
    'Directory',
    'FlagBuilder',
    'GenerationContext',
    'GenerationResult',
    'HANDLERS',
    'MakefileBackend',
    'MakefileEmitter',
    'ModuleHandler',
    'ProxyMakefile',
    'create_handler',
    'join_wrapped',
    'resolve_variables',
]
