"""Stopping criteria for the iteration controller.

A criterion is any callable taking an :class:`IterationSummary` and
returning True when the optimizer should stop.
"""

from dataclasses import dataclass
from typing import Callable, Sequence

from .option import OptimizationOption


@dataclass
class IterationSummary:
    """Outcome of one optimizer iteration."""

    iteration: int
    total_residual: float  # weighted residual at the linearization point
    updated_residual: float  # same weights, after the accepted step
    step_norm: float
    damping: float
    accepted: bool = True


StoppingCriterion = Callable[[IterationSummary], bool]


def never_stop(summary: IterationSummary) -> bool:
    """Run the whole iteration budget."""
    return False


class RelativeDecrease:
    """Stop once the residual decreases by less than a relative threshold."""

    def __init__(self, threshold: float) -> None:
        self.threshold = threshold

    def __call__(self, summary: IterationSummary) -> bool:
        if summary.total_residual <= 0.0:
            return True
        decrease = (summary.total_residual - summary.updated_residual) / summary.total_residual
        return decrease < self.threshold


class StepNorm:
    """Stop once the correction vector is shorter than a threshold."""

    def __init__(self, threshold: float) -> None:
        self.threshold = threshold

    def __call__(self, summary: IterationSummary) -> bool:
        return summary.step_norm < self.threshold


class ResidualBelow:
    """Stop once the weighted residual drops below a threshold."""

    def __init__(self, threshold: float) -> None:
        self.threshold = threshold

    def __call__(self, summary: IterationSummary) -> bool:
        return summary.updated_residual < self.threshold


class AnyOf:
    """Stop as soon as one of several criteria is satisfied."""

    def __init__(self, criteria: Sequence[StoppingCriterion]) -> None:
        self.criteria = list(criteria)

    def __call__(self, summary: IterationSummary) -> bool:
        return any(criterion(summary) for criterion in self.criteria)


def make_stopping_criterion(option: OptimizationOption) -> StoppingCriterion:
    """Build the criterion described by an option set.

    Args:
        option: Optimization options.

    Returns:
        The configured criterion, or :func:`never_stop` when no
        threshold is set.
    """
    if option.stopping_threshold is None:
        return never_stop
    if option.stopping_criterion == "relative_decrease":
        return RelativeDecrease(option.stopping_threshold)
    if option.stopping_criterion == "step_norm":
        return StepNorm(option.stopping_threshold)
    if option.stopping_criterion == "residual":
        return ResidualBelow(option.stopping_threshold)
    raise ValueError(f"Unknown stopping criterion: {option.stopping_criterion}")
