"""Source bindings and compiler toolchains."""

from .dependencies import BASE_DEPENDENCIES, BINDING_DEPENDENCIES
from .service import (
    CommandToolchain,
    NamespaceGuard,
    SourceBinding,
    SourceStagingToolchain,
    Toolchain,
    check_isolation,
    compose_scope,
)

__all__ = [
    "BASE_DEPENDENCIES",
    "BINDING_DEPENDENCIES",
    "CommandToolchain",
    "NamespaceGuard",
    "SourceBinding",
    "SourceStagingToolchain",
    "Toolchain",
    "check_isolation",
    "compose_scope",
]
