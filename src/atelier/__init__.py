"""Atelier: virtual project model, editing session, and AI patch pipeline."""

__version__ = "0.1.0"
