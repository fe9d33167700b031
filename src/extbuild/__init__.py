"""Build, install and release tooling for a GNOME Shell extension."""

__version__ = "0.1.0"
