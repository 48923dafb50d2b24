"""Local mirror and document export for the reMarkable cloud storage API."""

__version__ = "0.3.0"
