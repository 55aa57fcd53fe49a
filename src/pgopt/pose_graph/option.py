"""Optimization options."""

from dataclasses import dataclass
from typing import Optional

STOPPING_CRITERIA = ("relative_decrease", "step_norm", "residual")


@dataclass
class OptimizationOption:
    """Configuration of the global pose graph optimizer."""

    max_iterations: int = 100
    # None runs the full iteration budget
    stopping_threshold: Optional[float] = None
    stopping_criterion: str = "relative_decrease"
    enable_robust_weighting: bool = True
    damping: float = 1e-6
    adaptive_damping: bool = True
    max_damping_attempts: int = 10
    rcond: float = 1e-14

    def __post_init__(self) -> None:
        """Validate options."""
        if self.max_iterations < 0:
            raise ValueError("max_iterations must be non-negative")
        if self.stopping_threshold is not None and self.stopping_threshold < 0:
            raise ValueError("stopping_threshold must be non-negative")
        if self.stopping_criterion not in STOPPING_CRITERIA:
            raise ValueError(
                f"Unknown stopping criterion: {self.stopping_criterion}. "
                f"Must be one of {', '.join(STOPPING_CRITERIA)}."
            )
        if self.damping < 0:
            raise ValueError("damping must be non-negative")
        if self.max_damping_attempts < 1:
            raise ValueError("max_damping_attempts must be at least 1")
