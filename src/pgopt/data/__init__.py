"""Synthetic data generation."""

from .synthetic import circle_trajectory, make_loop_graph

__all__ = ["circle_trajectory", "make_loop_graph"]
