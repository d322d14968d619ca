"""HTTP dispatch of prepared requests to upstream services."""

import httpx

from core.request_types import OutgoingRequest


class UpstreamClient:
    """Send prepared requests through a shared httpx client."""

    def __init__(self, client: httpx.AsyncClient) -> None:
        self._client = client

    async def send(self, outgoing: OutgoingRequest) -> tuple[int, str | None]:
        """Issue exactly one upstream call and return (status, text body).

        Errors before the response status arrives (``httpx.HTTPError``,
        ``httpx.InvalidURL``) propagate to the caller. Once the status is
        known, a failure reading or decoding the body only yields a None body.
        """
        req = self._client.build_request(
            outgoing.verb,
            outgoing.uri,
            headers=outgoing.headers,
            content=outgoing.content,
        )
        response = await self._client.send(req, stream=True)
        try:
            try:
                await response.aread()
            except httpx.HTTPError:
                return response.status_code, None
            return response.status_code, decode_body(response)
        finally:
            await response.aclose()


def decode_body(response: httpx.Response) -> str | None:
    """Strictly decode a response body using its declared charset (UTF-8 by default)."""
    encoding = response.charset_encoding or "utf-8"
    try:
        return response.content.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        return None
