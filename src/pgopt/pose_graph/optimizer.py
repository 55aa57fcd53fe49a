"""Global pose graph optimization.

Gauss-Newton over the SE(3) tangent space with a line process that
down-weights loop closures which disagree with the rest of the graph.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, List, Optional, Sequence, Tuple

import numpy as np
import numpy.typing as npt

from .criteria import IterationSummary, StoppingCriterion, make_stopping_criterion
from .edge import PoseEdge
from .errors import DegenerateSystemError
from .graph import PoseGraph
from .line_process import LineProcess
from .node import PoseNode
from .option import OptimizationOption
from .residuals import (
    LinearSystem,
    build_linear_system,
    compute_total_residual,
    error_transform,
    precompute_inverse_measurements,
)
from .solver import LinearSolution, solve_normal_equations
from .update import apply_correction

logger = logging.getLogger(__name__)

IterationCallback = Callable[[int, float], None]

_DAMPING_FACTOR = 10.0
_MIN_RETRY_DAMPING = 1e-9


class TerminationReason(Enum):
    """Why the iteration loop ended."""

    MAX_ITERATIONS = "max_iterations"  # iteration budget exhausted
    CONVERGED = "converged"  # stopping criterion satisfied
    STALLED = "stalled"  # no damping level produced a non-increasing step
    CANCELLED = "cancelled"  # caller's cancellation token was set


@dataclass
class OptimizationResult:
    """Refined pose graph plus diagnostics of the run."""

    graph: PoseGraph
    residual_history: List[float] = field(default_factory=list)
    final_residual: float = 0.0
    num_iterations: int = 0
    termination_reason: TerminationReason = TerminationReason.MAX_ITERATIONS
    edge_weights: Optional[npt.NDArray[np.float64]] = None

    @property
    def initial_residual(self) -> float:
        """Weighted residual before the first update."""
        if self.residual_history:
            return self.residual_history[0]
        return self.final_residual


class GraphOptimizer:
    """Optimizes pose graphs with damped Gauss-Newton and a line process.

    The input graph is never modified; :meth:`optimize` returns a new graph
    whose nodes hold the refined poses and whose edges hold the remaining
    error transform of each constraint.
    """

    def __init__(
        self,
        option: Optional[OptimizationOption] = None,
        stopping_criterion: Optional[StoppingCriterion] = None,
        callback: Optional[IterationCallback] = None,
    ) -> None:
        """Initialize optimizer.

        Args:
            option: Optimization options, defaults if None.
            stopping_criterion: Custom stopping predicate. Overrides the
                criterion described by ``option``.
            callback: Called once per iteration with
                ``(iteration_index, total_weighted_residual)``.
        """
        self.option = option if option is not None else OptimizationOption()
        self.stopping_criterion = (
            stopping_criterion
            if stopping_criterion is not None
            else make_stopping_criterion(self.option)
        )
        self.callback = callback

    def optimize(self, pose_graph: PoseGraph, cancel_event: Any = None) -> OptimizationResult:
        """Optimize the pose graph.

        Args:
            pose_graph: The graph to refine.
            cancel_event: Optional object with an ``is_set()`` method (e.g.
                ``threading.Event``), checked before every iteration.

        Returns:
            The optimization result.

        Raises:
            InvalidGraphError: If the graph is structurally invalid.
            DegenerateSystemError: If the graph is disconnected or an
                iteration cannot be solved.
        """
        pose_graph.validate()
        n_components, _ = pose_graph.connected_components()
        if n_components > 1:
            raise DegenerateSystemError(
                f"Pose graph has {n_components} disconnected components; "
                "their relative placement is unconstrained"
            )

        option = self.option
        edges = pose_graph.edges

        logger.info(
            "Optimizing PoseGraph having %d nodes and %d edges",
            pose_graph.num_nodes,
            pose_graph.num_edges,
        )

        poses = pose_graph.node_poses()
        x_inv = precompute_inverse_measurements(edges)
        line_process = LineProcess(edges)
        weights = line_process.edge_weights()
        damping = option.damping

        history: List[float] = []
        reason = TerminationReason.MAX_ITERATIONS

        for iteration in range(option.max_iterations):
            if cancel_event is not None and cancel_event.is_set():
                reason = TerminationReason.CANCELLED
                break

            system = build_linear_system(x_inv, edges, poses, weights)
            candidate, solution, updated_residual, accepted, damping = self._damped_step(
                iteration, system, x_inv, edges, poses, weights, damping
            )

            history.append(system.total_residual)
            logger.debug("Iter : %d, residual : %e", iteration, system.total_residual)
            if self.callback is not None:
                self.callback(iteration, system.total_residual)

            summary = IterationSummary(
                iteration=iteration,
                total_residual=system.total_residual,
                updated_residual=updated_residual,
                step_norm=float(np.linalg.norm(solution.delta)) if accepted else 0.0,
                damping=solution.damping,
                accepted=accepted,
            )

            if not accepted:
                reason = TerminationReason.STALLED
                break

            poses = candidate
            if option.adaptive_damping:
                damping = max(damping / _DAMPING_FACTOR, option.damping)

            if option.enable_robust_weighting:
                weights = line_process.update(x_inv, edges, poses)

            if self.stopping_criterion(summary):
                reason = TerminationReason.CONVERGED
                break

        final_residual = compute_total_residual(x_inv, edges, poses, weights)
        logger.info(
            "Optimization finished after %d iterations (%s), residual : %e",
            len(history),
            reason.value,
            final_residual,
        )

        return OptimizationResult(
            graph=_refined_graph(x_inv, edges, poses),
            residual_history=history,
            final_residual=final_residual,
            num_iterations=len(history),
            termination_reason=reason,
            edge_weights=weights,
        )

    def _damped_step(
        self,
        iteration: int,
        system: LinearSystem,
        x_inv: npt.NDArray[np.float64],
        edges: Sequence[PoseEdge],
        poses: npt.NDArray[np.float64],
        weights: npt.NDArray[np.float64],
        damping: float,
    ) -> Tuple[npt.NDArray[np.float64], LinearSolution, float, bool, float]:
        """Solve and apply one correction, raising damping on increases.

        Without adaptive damping the first step is always accepted.

        Returns:
            Tuple of (candidate poses, solution, residual at the candidate,
            accepted flag, relative damping of the last attempt).
        """
        option = self.option
        attempts = option.max_damping_attempts if option.adaptive_damping else 1

        for _ in range(attempts):
            solution = solve_normal_equations(
                system.jacobian, system.residual, damping=damping, rcond=option.rcond
            )
            candidate = apply_correction(poses, solution.delta)
            updated = compute_total_residual(x_inv, edges, candidate, weights)
            if not option.adaptive_damping or updated <= system.total_residual:
                return candidate, solution, updated, True, damping

            logger.debug(
                "Iter : %d, step increased residual %e -> %e, damping %e",
                iteration,
                system.total_residual,
                updated,
                damping,
            )
            damping = max(damping * _DAMPING_FACTOR, _MIN_RETRY_DAMPING)

        return poses, solution, system.total_residual, False, damping


def _refined_graph(
    x_inv: npt.NDArray[np.float64],
    edges: Sequence[PoseEdge],
    poses: npt.NDArray[np.float64],
) -> PoseGraph:
    """Output graph: final poses, remaining error per edge, identity information."""
    refined = PoseGraph()
    for pose in poses:
        refined.add_node(PoseNode(pose=pose.copy()))
    for k, edge in enumerate(edges):
        refined.add_edge(
            PoseEdge(
                source_node_id=edge.source_node_id,
                target_node_id=edge.target_node_id,
                transformation=error_transform(
                    x_inv[k], poses[edge.source_node_id], poses[edge.target_node_id]
                ),
                information=np.eye(6),
                uncertain=False,
            )
        )
    return refined


def global_optimization(
    pose_graph: PoseGraph,
    option: Optional[OptimizationOption] = None,
    stopping_criterion: Optional[StoppingCriterion] = None,
    callback: Optional[IterationCallback] = None,
    cancel_event: Any = None,
) -> PoseGraph:
    """Refine a pose graph and return the new graph.

    Args:
        pose_graph: The graph to refine; left unmodified.
        option: Optimization options, defaults if None.
        stopping_criterion: Custom stopping predicate.
        callback: Per-iteration ``(iteration_index, total_weighted_residual)``.
        cancel_event: Optional cancellation token with ``is_set()``.

    Returns:
        The refined pose graph.
    """
    optimizer = GraphOptimizer(option, stopping_criterion=stopping_criterion, callback=callback)
    return optimizer.optimize(pose_graph, cancel_event=cancel_event).graph
