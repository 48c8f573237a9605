"""Prism: an HTTP request workbench with an AI request assistant."""

__version__ = "0.1.0"

__all__ = ["__version__"]
