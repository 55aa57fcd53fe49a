"""Exceptions raised by pose graph optimization."""


class PoseGraphError(Exception):
    """Base class for pose graph errors."""


class InvalidGraphError(PoseGraphError, ValueError):
    """The pose graph is structurally invalid.

    Raised for an empty node sequence, an edge that references a node index
    outside the node sequence, or non-finite pose/measurement values.
    """


class DegenerateSystemError(PoseGraphError, ArithmeticError):
    """The normal equations cannot produce a trustworthy correction.

    Typically the graph is under-constrained (disconnected components or
    too few constraints) and no damping is applied.
    """
