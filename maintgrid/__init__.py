"""Tabular import and hierarchical maintenance-grid aggregation."""

__version__ = "0.1.0"
