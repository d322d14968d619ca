"""Secret injection for upstream requests."""

import re

from core.exceptions import InvalidKeyTransport
from core.registry import UpstreamConfig
from core.request_types import Header, LogicalRequest, OutgoingRequest, Post, Replace

# RFC 9110 token characters
HEADER_NAME = re.compile(r"[!#$%&'*+\-.^_`|~0-9A-Za-z]+")


class CredentialInjector:
    """Build the physical request for a resolved upstream."""

    def prepare(self, request: LogicalRequest, upstream: UpstreamConfig) -> OutgoingRequest:
        """Apply the request's key transport, if any, and pick the body to send.

        Raises InvalidKeyTransport when a secret would be sent under a name that
        is not a valid header token or substituted for an empty placeholder.
        """
        uri = request.uri
        headers: dict[str, str] = {}

        # A transport without a configured secret is ignored
        if request.transport is not None and upstream.secret is not None:
            transport = request.transport
            if isinstance(transport, Header):
                if not HEADER_NAME.fullmatch(transport.name):
                    raise InvalidKeyTransport(f"invalid header name {transport.name!r}")
                headers[transport.name] = upstream.secret
            elif isinstance(transport, Replace):
                if not transport.placeholder:
                    raise InvalidKeyTransport("empty replace placeholder")
                uri = uri.replace(transport.placeholder, upstream.secret)

        # Only POST carries a body; PUT and DELETE are sent without one
        content = request.method.body if isinstance(request.method, Post) else None

        return OutgoingRequest(
            verb=request.method.verb,
            uri=uri,
            headers=headers,
            content=content,
        )
