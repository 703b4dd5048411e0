"""Alert evaluation, caching, muting, grouping and probing logic."""

__version__ = "0.1.0"

__all__ = [
    "cache",
    "conditions",
    "config",
    "consumer",
    "evaluator",
    "events",
    "kubeevent",
    "middleware",
    "mute",
    "probing",
    "store",
]