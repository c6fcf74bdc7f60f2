"""Python code generators."""

from .python import ModuleContext, PythonModuleGenerator

__all__ = [
    "ModuleContext",
    "PythonModuleGenerator",
]
