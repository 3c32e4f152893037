"""Resize, crop and re-encode animated GIFs frame by frame."""

__version__ = "0.1.0"
