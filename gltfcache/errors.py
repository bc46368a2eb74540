# gltfcache/errors.py
from __future__ import annotations

from typing import Type, TypeVar

E = TypeVar("E", bound="CacheError")


class CacheError(Exception):
    """Base class for all cache entry errors."""

    @classmethod
    def wrap(cls: Type[E], error: BaseException, message: str) -> E:
        """
        Build an error of this class whose message is `message` followed by
        the message of `error`. The original error is chained as the cause.
        """
        detail = str(error)
        if detail:
            message = f"{message}\n{detail}"
        wrapped = cls(message)
        wrapped.__cause__ = error
        return wrapped


class ConfigurationError(CacheError, ValueError):
    """Invalid construction arguments."""


class FormatError(CacheError):
    """Image bytes carry no recognised header."""


class DependencyError(CacheError):
    """A dependent cache entry failed to load."""


class DecodeError(CacheError):
    """A decoder (or the fetch feeding it) failed."""


class FetchError(DecodeError):
    """A resource could not be fetched."""
