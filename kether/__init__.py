"""Kether — chat messaging core: markup, mentions, annotation and delivery."""

__version__ = "0.1.0"
