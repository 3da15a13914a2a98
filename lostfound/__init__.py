"""Community lost & found service."""

__version__ = "1.0.0"
