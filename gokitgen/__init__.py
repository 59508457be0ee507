"""Render go-kit service sources and Markdown docs from service definitions."""

__version__ = "0.1.0"