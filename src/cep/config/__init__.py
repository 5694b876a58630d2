"""Configuration package."""

from cep.config.settings import Settings

__all__ = ["Settings"]
