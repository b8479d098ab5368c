"""Chat-driven content workflow: direction, topic, outline, article."""

__version__ = "0.1.0"
