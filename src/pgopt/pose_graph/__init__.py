"""Pose graph core module.

This module provides the pose graph model and the global optimizer that
refines node poses from odometry and loop-closure measurements.
"""

from .criteria import (
    AnyOf,
    IterationSummary,
    RelativeDecrease,
    ResidualBelow,
    StepNorm,
    make_stopping_criterion,
    never_stop,
)
from .edge import PoseEdge
from .errors import DegenerateSystemError, InvalidGraphError, PoseGraphError
from .graph import PoseGraph
from .line_process import LineProcess, line_process_weight
from .node import PoseNode
from .optimizer import (
    GraphOptimizer,
    OptimizationResult,
    TerminationReason,
    global_optimization,
)
from .option import OptimizationOption

__all__ = [
    "AnyOf",
    "DegenerateSystemError",
    "GraphOptimizer",
    "InvalidGraphError",
    "IterationSummary",
    "LineProcess",
    "OptimizationOption",
    "OptimizationResult",
    "PoseEdge",
    "PoseGraph",
    "PoseGraphError",
    "PoseNode",
    "RelativeDecrease",
    "ResidualBelow",
    "StepNorm",
    "TerminationReason",
    "global_optimization",
    "line_process_weight",
    "make_stopping_criterion",
    "never_stop",
]
