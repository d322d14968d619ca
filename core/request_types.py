"""Shared request data types.

Methods and key transports are closed tagged unions. On the wire they use the
externally tagged form of the original service (``"Get"``, ``{"Post": "..."}``,
``{"Header": "x-api-key"}``); the internally tagged ``{"kind": ...}`` form is
accepted as well.
"""

from dataclasses import dataclass, field
from typing import Annotated, Any, ClassVar, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Get(BaseModel):
    model_config = ConfigDict(frozen=True)
    verb: ClassVar[str] = "GET"

    kind: Literal["Get"] = "Get"


class Post(BaseModel):
    model_config = ConfigDict(frozen=True)
    verb: ClassVar[str] = "POST"

    kind: Literal["Post"] = "Post"
    body: str


class Put(BaseModel):
    model_config = ConfigDict(frozen=True)
    verb: ClassVar[str] = "PUT"

    kind: Literal["Put"] = "Put"


class Delete(BaseModel):
    model_config = ConfigDict(frozen=True)
    verb: ClassVar[str] = "DELETE"

    kind: Literal["Delete"] = "Delete"


Method = Annotated[Get | Post | Put | Delete, Field(discriminator="kind")]


class Header(BaseModel):
    """Send the secret as the value of header ``name``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["Header"] = "Header"
    name: str


class Replace(BaseModel):
    """Substitute the secret for every occurrence of ``placeholder`` in the URI."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["Replace"] = "Replace"
    placeholder: str


KeyTransport = Annotated[Header | Replace, Field(discriminator="kind")]

# Payload field carried by each externally tagged variant
_VARIANT_FIELDS: dict[str, str | None] = {
    "Get": None,
    "Post": "body",
    "Put": None,
    "Delete": None,
    "Header": "name",
    "Replace": "placeholder",
}


def _untag(value: Any) -> Any:
    """Convert an externally tagged variant into the ``kind`` form."""
    if isinstance(value, str):
        return {"kind": value}
    if isinstance(value, dict) and len(value) == 1 and "kind" not in value:
        (tag, payload), = value.items()
        if tag in _VARIANT_FIELDS:
            payload_field = _VARIANT_FIELDS[tag]
            if payload_field is None:
                return {"kind": tag}
            return {"kind": tag, payload_field: payload}
    return value


class LogicalRequest(BaseModel):
    """A forward request as sent by the caller, before any secret is injected."""

    model_config = ConfigDict(frozen=True)

    identifier: str
    uri: str
    method: Method
    transport: KeyTransport | None = None

    @field_validator("method", "transport", mode="before")
    @classmethod
    def _accept_external_tags(cls, value: Any) -> Any:
        return _untag(value)


class ResponseEnvelope(BaseModel):
    """Normalized reply: upstream status plus the body if it decoded as text."""

    body: str | None = None
    status: int

    @classmethod
    def not_found(cls) -> "ResponseEnvelope":
        return cls(body=None, status=404)

    @classmethod
    def failed(cls) -> "ResponseEnvelope":
        return cls(body=None, status=500)


@dataclass(frozen=True)
class OutgoingRequest:
    """Physical request ready to send upstream."""

    verb: str
    uri: str
    headers: dict[str, str] = field(default_factory=dict)
    content: str | None = None
