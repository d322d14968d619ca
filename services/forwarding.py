"""Credential-injecting forwarding engine."""

import httpx

from core.exceptions import InvalidKeyTransport
from core.injection import CredentialInjector
from core.protocols import RequestLogger
from core.registry import UpstreamConfig, UpstreamRegistry
from core.request_types import LogicalRequest, OutgoingRequest, ResponseEnvelope
from services.upstream import UpstreamClient


class ForwardingEngine:
    """Resolve, inject, dispatch and normalize one logical request.

    Per call the request moves from received to either not found (404) or
    resolved, then dispatched, then completed with the upstream status or
    failed (500). Nothing here raises to the caller.
    """

    def __init__(
        self,
        registry: UpstreamRegistry,
        upstream: UpstreamClient,
        logger: RequestLogger,
        injector: CredentialInjector | None = None,
    ) -> None:
        self._registry = registry
        self._upstream = upstream
        self._logger = logger
        self._injector = injector or CredentialInjector()

    def prepare(self, request: LogicalRequest, upstream: UpstreamConfig) -> OutgoingRequest:
        """Build the physical request without sending it."""
        return self._injector.prepare(request, upstream)

    async def forward(self, request: LogicalRequest) -> ResponseEnvelope:
        """Forward ``request`` to its upstream and relay the outcome."""
        upstream = self._registry.lookup(request.identifier)
        if upstream is None:
            self._logger.log_not_found(request.identifier)
            return ResponseEnvelope.not_found()

        try:
            outgoing = self.prepare(request, upstream)
        except InvalidKeyTransport as e:
            self._logger.log_error(request.identifier, 500, str(e))
            return ResponseEnvelope.failed()

        try:
            status, body = await self._upstream.send(outgoing)
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            # Error text may echo the injected URI
            cause = _redact(str(e), upstream.secret)
            self._logger.log_error(
                request.identifier,
                500,
                f"{outgoing.verb} {request.uri} failed: {type(e).__name__}: {cause}",
            )
            return ResponseEnvelope.failed()

        self._logger.log_forward(request.identifier, outgoing.verb, request.uri, status)
        return ResponseEnvelope(body=body, status=status)


def _redact(text: str, secret: str | None) -> str:
    if not secret:
        return text
    return text.replace(secret, "***")
