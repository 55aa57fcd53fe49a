"""Tests for the global pose graph optimizer."""

import logging
import threading
from typing import List, Tuple

import numpy as np
import pytest

from pgopt.data import make_loop_graph
from pgopt.pose_graph import (
    DegenerateSystemError,
    GraphOptimizer,
    InvalidGraphError,
    OptimizationOption,
    PoseEdge,
    PoseGraph,
    PoseNode,
    TerminationReason,
    global_optimization,
)
from pgopt.pose_graph.residuals import build_linear_system, precompute_inverse_measurements
from pgopt.pose_graph.solver import solve_normal_equations
from pgopt.pose_graph.update import apply_correction
from pgopt.utils.geometry import make_transform


def _single_edge_graph() -> PoseGraph:
    """Source node 0.3 m away from where the identity measurement puts it."""
    graph = PoseGraph()
    graph.add_node(PoseNode(pose=make_transform(translation=[0.3, 0.0, 0.0])))
    graph.add_node(PoseNode(pose=np.eye(4)))
    graph.add_edge(PoseEdge(0, 1, np.eye(4)))
    return graph


class TestGraphOptimizer:
    """Test GraphOptimizer."""

    def test_single_edge_is_solved_in_one_step(self) -> None:
        """Test that one step splits the error evenly between both nodes."""
        result = GraphOptimizer(OptimizationOption(max_iterations=1)).optimize(
            _single_edge_graph()
        )

        assert result.num_iterations == 1
        assert result.initial_residual == pytest.approx(0.09)
        assert result.final_residual < 1e-10
        assert np.allclose(result.graph.nodes[0].position, [0.15, 0.0, 0.0], atol=1e-6)
        assert np.allclose(result.graph.nodes[1].position, [0.15, 0.0, 0.0], atol=1e-6)
        assert np.allclose(result.graph.edges[0].transformation, np.eye(4), atol=1e-6)

    def test_consistent_graph_is_unchanged(self, consistent_graph: PoseGraph) -> None:
        """Test that a graph satisfying every edge is a fixed point."""
        result = GraphOptimizer(OptimizationOption(max_iterations=5)).optimize(consistent_graph)

        assert np.allclose(result.graph.node_poses(), consistent_graph.node_poses(), atol=1e-12)
        assert result.final_residual < 1e-20
        for edge in result.graph.edges:
            assert np.allclose(edge.transformation, np.eye(4), atol=1e-9)

    def test_converges_immediately_on_consistent_graph(self, consistent_graph: PoseGraph) -> None:
        """Test that a satisfied stopping criterion ends the run after one iteration."""
        option = OptimizationOption(stopping_threshold=1e-6)
        result = GraphOptimizer(option).optimize(consistent_graph)

        assert result.termination_reason == TerminationReason.CONVERGED
        assert result.num_iterations == 1

    def test_residual_never_increases(self) -> None:
        """Test monotonic descent with fixed weights and adaptive damping."""
        graph, _ = make_loop_graph(10, loop_pairs=[(9, 0), (5, 0)], seed=3)
        option = OptimizationOption(max_iterations=20, enable_robust_weighting=False)

        result = GraphOptimizer(option).optimize(graph)
        history = result.residual_history

        assert len(history) >= 1
        for before, after in zip(history, history[1:]):
            assert after <= before + 1e-12
        assert result.final_residual < result.initial_residual

    def test_output_cardinality(self, chain_with_loop_graph: PoseGraph) -> None:
        """Test that the refined graph mirrors the input structure."""
        result = GraphOptimizer().optimize(chain_with_loop_graph)
        refined = result.graph

        assert refined.num_nodes == chain_with_loop_graph.num_nodes
        assert refined.num_edges == chain_with_loop_graph.num_edges
        for original, edge in zip(chain_with_loop_graph.edges, refined.edges):
            assert edge.source_node_id == original.source_node_id
            assert edge.target_node_id == original.target_node_id
            assert np.array_equal(edge.information, np.eye(6))
            assert edge.uncertain is False

    def test_input_graph_is_not_modified(self, chain_with_loop_graph: PoseGraph) -> None:
        """Test that optimization works on a copy of the poses."""
        poses_before = chain_with_loop_graph.node_poses()
        transform_before = chain_with_loop_graph.edges[2].transformation.copy()

        GraphOptimizer().optimize(chain_with_loop_graph)

        assert np.array_equal(chain_with_loop_graph.node_poses(), poses_before)
        assert np.array_equal(chain_with_loop_graph.edges[2].transformation, transform_before)
        assert chain_with_loop_graph.edges[2].uncertain is True

    def test_without_robust_weighting_matches_plain_gauss_newton(self) -> None:
        """Test that disabling the line process gives unweighted Gauss-Newton."""
        graph, _ = make_loop_graph(8, loop_pairs=[(7, 0), (4, 0)], seed=5)
        option = OptimizationOption(
            max_iterations=3, enable_robust_weighting=False, adaptive_damping=False
        )

        result = GraphOptimizer(option).optimize(graph)

        x_inv = precompute_inverse_measurements(graph.edges)
        poses = graph.node_poses()
        for _ in range(3):
            system = build_linear_system(x_inv, graph.edges, poses)
            solution = solve_normal_equations(system.jacobian, system.residual, option.damping)
            poses = apply_correction(poses, solution.delta)

        assert np.allclose(result.graph.node_poses(), poses)
        assert np.array_equal(result.edge_weights, np.ones(graph.num_edges))

    @pytest.mark.parametrize("robust, loop_weight_is_applied", [(True, True), (False, False)])
    def test_loop_weight_feeds_next_iteration(
        self, chain_with_loop_graph: PoseGraph, robust: bool, loop_weight_is_applied: bool
    ) -> None:
        """Test that the second iteration's residual uses the updated loop weight."""
        option = OptimizationOption(
            max_iterations=2,
            damping=1.0,
            adaptive_damping=False,
            enable_robust_weighting=robust,
        )
        result = GraphOptimizer(option).optimize(chain_with_loop_graph)

        # One step with damping 1 moves both loop endpoints by a third of the error
        error = 0.1 / 3.0
        weight = (1.0 / (1.0 + error**2)) ** 2 if loop_weight_is_applied else 1.0

        assert result.residual_history[0] == pytest.approx(0.01)
        assert result.residual_history[1] == pytest.approx((2.0 + weight) * error**2)

    def test_three_node_graph_converges(self, chain_with_loop_graph: PoseGraph) -> None:
        """Test that default options reduce the residual within the budget."""
        result = GraphOptimizer().optimize(chain_with_loop_graph)

        assert result.num_iterations <= 100
        assert result.final_residual < result.initial_residual
        assert result.initial_residual == pytest.approx(0.01)

    def test_outlier_loop_is_switched_off(self) -> None:
        """Test that a wrong loop closure ends up with a small weight."""
        graph, _ = make_loop_graph(
            12,
            noise_sigma=0.005,
            loop_pairs=[(11, 0), (6, 0)],
            outlier_pairs=[(9, 3)],
            seed=1,
        )
        outlier_index = graph.num_edges - 1

        result = GraphOptimizer(OptimizationOption(max_iterations=50)).optimize(graph)
        weights = result.edge_weights

        assert weights[outlier_index] < 0.01
        assert np.all(weights[:11] == 1.0)
        assert np.all(weights[11:outlier_index] > 10 * weights[outlier_index])

    def test_invalid_graph(self, chain_with_loop_graph: PoseGraph) -> None:
        """Test that edges to missing nodes are rejected before iterating."""
        chain_with_loop_graph.add_edge(PoseEdge(0, 5, np.eye(4)))
        with pytest.raises(InvalidGraphError):
            GraphOptimizer().optimize(chain_with_loop_graph)

    def test_empty_graph(self) -> None:
        """Test that a graph without nodes is rejected."""
        with pytest.raises(InvalidGraphError):
            GraphOptimizer().optimize(PoseGraph())

    def test_undamped_solve_fails_on_gauge_freedom(self, chain_with_loop_graph: PoseGraph) -> None:
        """Test that the free global pose makes an undamped solve fail loudly."""
        option = OptimizationOption(damping=0.0, adaptive_damping=False)
        with pytest.raises(DegenerateSystemError):
            GraphOptimizer(option).optimize(chain_with_loop_graph)

    def test_disconnected_graph(self) -> None:
        """Test that two unlinked pieces are rejected before iterating."""
        graph = PoseGraph()
        for x in (0.0, 1.3, 5.0, 6.3):
            graph.add_node(PoseNode(pose=make_transform(translation=[x, 0.0, 0.0])))
        graph.add_edge(PoseEdge(0, 1, make_transform(translation=[-1.0, 0.0, 0.0])))
        graph.add_edge(PoseEdge(2, 3, make_transform(translation=[-1.0, 0.0, 0.0])))
        calls: List[Tuple[int, float]] = []

        optimizer = GraphOptimizer(callback=lambda i, r: calls.append((i, r)))
        with pytest.raises(DegenerateSystemError, match="2 disconnected components"):
            optimizer.optimize(graph)
        assert calls == []

    def test_isolated_node_is_disconnected(self, chain_with_loop_graph: PoseGraph) -> None:
        """Test that a node without edges makes the graph disconnected."""
        chain_with_loop_graph.add_node(PoseNode(pose=np.eye(4)))
        with pytest.raises(DegenerateSystemError, match="disconnected"):
            GraphOptimizer().optimize(chain_with_loop_graph)

    def test_returned_weights_follow_last_update(self, chain_with_loop_graph: PoseGraph) -> None:
        """Test that the result carries the loop weight computed after the last step."""
        option = OptimizationOption(max_iterations=1, damping=1.0, adaptive_damping=False)
        result = GraphOptimizer(option).optimize(chain_with_loop_graph)

        error = 0.1 / 3.0
        expected = (1.0 / (1.0 + error**2)) ** 2
        assert np.allclose(result.edge_weights, [1.0, 1.0, expected])

    def test_zero_iterations(self, chain_with_loop_graph: PoseGraph) -> None:
        """Test that an empty budget returns the input poses."""
        result = GraphOptimizer(OptimizationOption(max_iterations=0)).optimize(
            chain_with_loop_graph
        )

        assert result.num_iterations == 0
        assert result.residual_history == []
        assert result.termination_reason == TerminationReason.MAX_ITERATIONS
        assert np.array_equal(result.graph.node_poses(), chain_with_loop_graph.node_poses())
        assert result.final_residual == pytest.approx(0.01)
        assert result.initial_residual == result.final_residual

    def test_callback_receives_every_iteration(self, chain_with_loop_graph: PoseGraph) -> None:
        """Test the per-iteration callback."""
        calls: List[Tuple[int, float]] = []
        option = OptimizationOption(max_iterations=4, adaptive_damping=False)

        result = GraphOptimizer(option, callback=lambda i, r: calls.append((i, r))).optimize(
            chain_with_loop_graph
        )

        assert calls == list(enumerate(result.residual_history))
        assert [i for i, _ in calls] == [0, 1, 2, 3]

    def test_custom_stopping_criterion(self, chain_with_loop_graph: PoseGraph) -> None:
        """Test that a custom predicate overrides the option threshold."""
        option = OptimizationOption(max_iterations=10, adaptive_damping=False)
        optimizer = GraphOptimizer(option, stopping_criterion=lambda s: s.iteration >= 2)

        result = optimizer.optimize(chain_with_loop_graph)

        assert result.termination_reason == TerminationReason.CONVERGED
        assert result.num_iterations == 3

    def test_cancel_before_start(self, chain_with_loop_graph: PoseGraph) -> None:
        """Test that a set cancellation token stops before the first iteration."""
        cancel = threading.Event()
        cancel.set()

        result = GraphOptimizer().optimize(chain_with_loop_graph, cancel_event=cancel)

        assert result.termination_reason == TerminationReason.CANCELLED
        assert result.num_iterations == 0
        assert np.array_equal(result.graph.node_poses(), chain_with_loop_graph.node_poses())

    def test_cancel_during_run(self, chain_with_loop_graph: PoseGraph) -> None:
        """Test cancelling from another component between iterations."""
        cancel = threading.Event()

        def on_iteration(iteration: int, residual: float) -> None:
            if iteration == 1:
                cancel.set()

        option = OptimizationOption(max_iterations=10, adaptive_damping=False)
        result = GraphOptimizer(option, callback=on_iteration).optimize(
            chain_with_loop_graph, cancel_event=cancel
        )

        assert result.termination_reason == TerminationReason.CANCELLED
        assert result.num_iterations == 2

    def test_logs_iterations(
        self, chain_with_loop_graph: PoseGraph, caplog: pytest.LogCaptureFixture
    ) -> None:
        """Test iteration logging at debug level."""
        caplog.set_level(logging.DEBUG, logger="pgopt")
        GraphOptimizer(OptimizationOption(max_iterations=1)).optimize(chain_with_loop_graph)

        assert "Optimizing PoseGraph having 3 nodes and 3 edges" in caplog.text
        assert "Iter : 0, residual : 1.000000e-02" in caplog.text


class TestGlobalOptimization:
    """Test the functional entry point."""

    def test_returns_refined_graph(self, chain_with_loop_graph: PoseGraph) -> None:
        """Test that global_optimization returns a new pose graph."""
        refined = global_optimization(chain_with_loop_graph, OptimizationOption(max_iterations=5))

        assert isinstance(refined, PoseGraph)
        assert refined is not chain_with_loop_graph
        assert refined.num_nodes == 3
        assert refined.num_edges == 3

    def test_matches_optimizer(self, chain_with_loop_graph: PoseGraph) -> None:
        """Test that both entry points agree."""
        option = OptimizationOption(max_iterations=5)
        refined = global_optimization(chain_with_loop_graph, option)
        result = GraphOptimizer(option).optimize(chain_with_loop_graph)

        assert np.allclose(refined.node_poses(), result.graph.node_poses())
