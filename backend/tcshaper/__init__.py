"""Per-container traffic shaping driven by Docker labels."""

__version__ = "0.1.0"
