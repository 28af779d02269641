"""discdup - unattended bulk duplication of optical discs."""

__version__ = "0.1.0"
