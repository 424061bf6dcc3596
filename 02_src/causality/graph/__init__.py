"""Causal graph module."""

from .causal_graph import CausalGraph, ICausalGraph

__all__ = ["CausalGraph", "ICausalGraph"]
