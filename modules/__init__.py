"""Helper modules for the Vision Print Orders application."""

__all__ = [
    "image_metrics",
    "image_quality",
    "pricing",
    "rate_table",
]
