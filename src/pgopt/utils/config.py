import argparse
from typing import List, Optional

from ..pose_graph.option import STOPPING_CRITERIA, OptimizationOption


def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(description="Globally optimize a pose graph")

    # Input / output
    parser.add_argument("--input", type=str, default=None, help="Path to input pose graph JSON")
    parser.add_argument(
        "--output",
        type=str,
        default="pose_graph_optimized.json",
        help="Path to write the optimized pose graph JSON",
    )
    parser.add_argument(
        "--synthetic",
        type=int,
        default=0,
        help="Generate a noisy synthetic loop graph with this many nodes instead of --input",
    )
    parser.add_argument("--seed", type=int, default=42, help="Random seed for --synthetic")

    # Iteration control
    parser.add_argument(
        "--max-iterations", type=int, default=100, help="Maximum number of iterations"
    )
    parser.add_argument(
        "--stopping-threshold",
        type=float,
        default=None,
        help="Convergence threshold; runs all iterations when unset",
    )
    parser.add_argument(
        "--stopping-criterion",
        type=str,
        default="relative_decrease",
        choices=list(STOPPING_CRITERIA),
        help="Quantity compared against --stopping-threshold",
    )

    # Solver configuration
    parser.add_argument(
        "--disable-robust-weighting",
        action="store_true",
        help="Keep all edge weights at 1 (plain least squares)",
    )
    parser.add_argument(
        "--damping", type=float, default=1e-6, help="Relative diagonal damping of the solve"
    )
    parser.add_argument(
        "--no-adaptive-damping",
        action="store_true",
        help="Accept every Gauss-Newton step instead of rejecting residual increases",
    )

    # Verbose
    parser.add_argument("--verbose", action="store_true", help="Log every iteration")

    return parser.parse_args(argv)


def option_from_args(args: argparse.Namespace) -> OptimizationOption:
    """Build optimization options from parsed arguments."""
    return OptimizationOption(
        max_iterations=args.max_iterations,
        stopping_threshold=args.stopping_threshold,
        stopping_criterion=args.stopping_criterion,
        enable_robust_weighting=not args.disable_robust_weighting,
        damping=args.damping,
        adaptive_damping=not args.no_adaptive_damping,
    )
