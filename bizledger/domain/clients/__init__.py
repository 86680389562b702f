"""Clients domain - lead intake and customer confirmation"""

from .router import router

__all__ = ["router"]
