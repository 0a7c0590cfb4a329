"""Returnly: Indian income-tax computation and ITR-1/ITR-2 return generation."""

__version__ = "0.1.0"
