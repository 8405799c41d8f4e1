"""Runtime package for the Robin archive upload validator."""

__all__ = ["__version__"]

__version__ = "1.0.0"
