"""Branching-narrative runtime: story graphs, player state and snapshots."""

__version__ = "0.1.0"
