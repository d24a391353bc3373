"""Scaffold engine -- template-driven project and feature generation."""

__version__ = "0.1.0"
