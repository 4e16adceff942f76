from .runner import execute

__all__ = ["execute"]
