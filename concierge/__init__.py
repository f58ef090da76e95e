"""Voice concierge: a turn-by-turn conversation core for restaurant calls."""

__version__ = "0.1.0"
