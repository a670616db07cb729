"""HTTP relay for GPIO pins on a remote robot."""

__version__ = "0.1.0"
