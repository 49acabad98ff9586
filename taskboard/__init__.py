"""Task board API with a read-through cache and optimistic task moves."""

__version__ = "1.0.0"
