"""pgopt - Pose Graph Optimization.

A Python library for global refinement of SE(3) pose graphs built from
odometry and loop-closure measurements, with a line process that
down-weights unreliable loop closures.
"""

__version__ = "0.1.0"

__all__ = ["__version__"]
