"""Video uploads."""
