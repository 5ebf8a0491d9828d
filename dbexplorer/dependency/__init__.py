"""
Entity type dependency graph implementation.

This module tracks which entity types must be inserted before others and
derives a safe insert order, reporting cycles it cannot resolve.
"""
from .graph import TypeDependencyGraph, CycleStatus, GraphNode

__all__ = ["TypeDependencyGraph", "CycleStatus", "GraphNode"]
