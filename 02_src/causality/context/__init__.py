"""Causality context propagation."""

from .propagator import CausalityPropagator, IPropagator, current_context

__all__ = ["CausalityPropagator", "IPropagator", "current_context"]
