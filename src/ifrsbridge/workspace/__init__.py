"""
Session state: statements, projects and operation gating.
"""

from .session import (
    ConverterSession,
    OperationGate,
    Project,
    ProjectRegistry,
    SimulatedProgress,
    Statement,
)

__all__ = [
    "ConverterSession",
    "OperationGate",
    "Project",
    "ProjectRegistry",
    "SimulatedProgress",
    "Statement",
]
