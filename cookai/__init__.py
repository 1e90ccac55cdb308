# cookai/__init__.py
"""Recipe generation and per-user recipe library for the Cook AI assistant."""

__version__ = "0.1.0"
