"""GEM self-improving agent runtime package."""

__all__ = [
    "config",
    "logging",
    "runtime",
]
