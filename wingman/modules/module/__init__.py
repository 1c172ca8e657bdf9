"""
Module Contract - Black Box Interface

Purpose: Define what a pluggable module is and how the host registers it
Interface: Module, FunctionProvider, ModuleDeps, ModuleRegistry
Hidden: Capability detection (done once, at registration)
"""

from .module import (
    Closeable,
    FunctionProvider,
    Module,
    ModuleDeps,
    ModuleRegistry,
    RegisteredModule,
)

__all__ = ["Module", "FunctionProvider", "Closeable", "ModuleDeps", "ModuleRegistry", "RegisteredModule"]
