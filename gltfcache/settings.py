# gltfcache/settings.py
from __future__ import annotations

import os
from dataclasses import dataclass, field, fields

from gltfcache.errors import ConfigurationError
from gltfcache.types import SupportedImageFormats

ENV_HTTP_TIMEOUT = "GLTFCACHE_HTTP_TIMEOUT"
ENV_FORMATS = "GLTFCACHE_FORMATS"

DEFAULT_HTTP_TIMEOUT = 30.0


@dataclass(frozen=True, slots=True)
class CacheSettings:
    """
    Resource: configuration shared by a ResourceCache and its entries.
    """

    http_timeout: float = DEFAULT_HTTP_TIMEOUT
    default_formats: SupportedImageFormats = field(
        default_factory=SupportedImageFormats
    )

    @classmethod
    def from_env(cls) -> CacheSettings:
        """
        Read GLTFCACHE_HTTP_TIMEOUT (seconds) and GLTFCACHE_FORMATS
        (comma separated, e.g. "webp,s3tc").
        """
        timeout = DEFAULT_HTTP_TIMEOUT
        raw_timeout = os.getenv(ENV_HTTP_TIMEOUT, "").strip()
        if raw_timeout:
            try:
                timeout = float(raw_timeout)
            except ValueError:
                raise ConfigurationError(
                    f"{ENV_HTTP_TIMEOUT} must be a number, got {raw_timeout!r}"
                )
            if timeout <= 0:
                raise ConfigurationError(f"{ENV_HTTP_TIMEOUT} must be positive")

        return cls(
            http_timeout=timeout,
            default_formats=parse_formats(os.getenv(ENV_FORMATS, "")),
        )


def parse_formats(value: str) -> SupportedImageFormats:
    """Parse a comma separated list of format names into support flags."""
    known = {f.name for f in fields(SupportedImageFormats)}
    enabled = {part.strip().lower() for part in value.split(",") if part.strip()}

    unknown = enabled - known
    if unknown:
        raise ConfigurationError(
            f"Unknown image formats: {', '.join(sorted(unknown))}"
        )

    return SupportedImageFormats(**{name: name in enabled for name in known})
