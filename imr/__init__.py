"""Build-and-release tooling for initiative_manager."""

__version__ = "0.1.0"
