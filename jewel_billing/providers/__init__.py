from .base import RateProvider

__all__ = ["RateProvider"]
