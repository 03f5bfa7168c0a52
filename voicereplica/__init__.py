"""Voice command intent resolution and browser action dispatch."""

__version__ = "0.1.0"
