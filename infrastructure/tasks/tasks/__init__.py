from . import email  # noqa: F401  registers tasks

__all__ = ["email"]
