"""Chatforge: metered text and image generation for character chat."""

__version__ = "0.1.0"
