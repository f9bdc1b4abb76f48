"""AAS lookup aggregation and component compatibility matching."""

__version__ = "0.3.0"
