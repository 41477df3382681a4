"""Admin identity, approval and organization hierarchy for the MaiKedah dashboard."""

__version__ = "0.1.0"
