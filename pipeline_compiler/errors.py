"""
Shared exception hierarchy for the pipeline compiler.
"""


class PipelineCompilerError(Exception):
    """Base class for all compiler related errors."""


class GraphParseError(PipelineCompilerError):
    """Raised when the layered graph payload cannot be parsed."""


class StructuralError(PipelineCompilerError):
    """Raised when a graph invariant is violated (e.g. a container in leaf position)."""


class ValidationError(PipelineCompilerError):
    """Raised when user-supplied configuration is inconsistent."""


class UnsupportedStepError(PipelineCompilerError):
    """Raised for step types this compiler cannot translate into actions."""


class AlreadyBuiltError(PipelineCompilerError):
    """Raised when a compiler instance is asked to build a second time."""


class NotBuiltError(PipelineCompilerError):
    """Raised when build outputs are read before a successful build."""
