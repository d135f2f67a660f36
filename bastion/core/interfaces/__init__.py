"""Collaborator protocols."""

from bastion.core.interfaces.cache import CacheBackend

__all__ = ["CacheBackend"]
