"""Client core for a shared, live-updating photo board."""

__version__ = "0.1.0"
