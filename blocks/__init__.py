"""Strategy blocks: data model, handlers, execution engine and validator."""

__all__ = [
    "models",
    "base",
    "registry",
    "executor",
    "validator",
    "presets",
]
