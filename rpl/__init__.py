"""release-pilot: pending-release pull requests driven by conventional commits."""

__version__ = "0.1.0"
