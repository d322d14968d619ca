"""Upstream registry: the read-only table of configured APIs."""

import json
from pathlib import Path
from types import MappingProxyType
from typing import Any, Mapping

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, ValidationError, field_validator

from core.exceptions import ConfigurationError


class UpstreamConfig(BaseModel):
    """A configured upstream API and the secret used to call it."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    metadata: str = ""
    secret: str | None = Field(
        default=None,
        validation_alias=AliasChoices("api_key", "secret"),
        repr=False,
    )

    @field_validator("secret")
    @classmethod
    def _secret_is_header_safe(cls, value: str | None) -> str | None:
        # Secrets may end up in a header value, so only visible ASCII, space and tab
        if value is not None and not all(c == "\t" or " " <= c <= "~" for c in value):
            raise ValueError("secret must contain only printable ASCII characters")
        return value

    def sanitized(self) -> "SanitizedUpstream":
        return SanitizedUpstream(identifier=self.identifier, metadata=self.metadata)


class SanitizedUpstream(BaseModel):
    """Listing projection of an upstream with the secret left out."""

    identifier: str
    metadata: str


class UpstreamRegistry:
    """Immutable identifier -> UpstreamConfig lookup table.

    Built once before serving starts and shared read-only by every request.
    """

    def __init__(self, upstreams: Mapping[str, UpstreamConfig] | None = None) -> None:
        self._upstreams = MappingProxyType(dict(upstreams or {}))

    @classmethod
    def from_configs(cls, configs: list[UpstreamConfig]) -> "UpstreamRegistry":
        return cls({config.identifier: config for config in configs})

    def lookup(self, identifier: str) -> UpstreamConfig | None:
        """Return the config for ``identifier`` or None if it is not configured."""
        return self._upstreams.get(identifier)

    def identifiers(self) -> list[str]:
        return list(self._upstreams)

    def list(self) -> list[SanitizedUpstream]:
        """Return every configured upstream without its secret."""
        return [config.sanitized() for config in self._upstreams.values()]

    def __contains__(self, identifier: object) -> bool:
        return identifier in self._upstreams

    def __len__(self) -> int:
        return len(self._upstreams)


def parse_registry(data: Any, *, source: str | None = None) -> UpstreamRegistry:
    """Build a registry from the decoded ``{identifier: {...}}`` JSON object."""
    if not isinstance(data, dict):
        raise ConfigurationError("upstream file must contain a JSON object", path=source)

    upstreams: dict[str, UpstreamConfig] = {}
    for key, entry in data.items():
        if not isinstance(entry, dict):
            raise ConfigurationError(f"upstream '{key}' must be a JSON object", path=source)
        entry = {"identifier": key, **entry}
        try:
            config = UpstreamConfig.model_validate(entry)
        except ValidationError as e:
            raise ConfigurationError(f"upstream '{key}' is invalid: {e}", path=source) from e
        if config.identifier != key:
            raise ConfigurationError(
                f"upstream '{key}' declares mismatched identifier '{config.identifier}'",
                path=source,
            )
        upstreams[key] = config
    return UpstreamRegistry(upstreams)


def load_registry(path: str | Path) -> UpstreamRegistry:
    """Load the upstream registry from a JSON file."""
    path = Path(path)
    try:
        data = json.loads(path.read_text())
    except FileNotFoundError as e:
        raise ConfigurationError("upstream file not found", path=str(path)) from e
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigurationError(f"failed to read upstream file: {e}", path=str(path)) from e
    return parse_registry(data, source=str(path))
