"""
Unit tests for the forwarding engine
"""

import httpx
import pytest

from conftest import StubUpstream
from core.request_types import Delete, Get, Header, LogicalRequest, Post, Put, Replace
from services.forwarding import ForwardingEngine
from services.upstream import UpstreamClient, decode_body


class BrokenBodyStream(httpx.AsyncByteStream):
    """Response body that fails after the first chunk"""

    def __init__(self, error):
        self._error = error

    async def __aiter__(self):
        yield b"partial"
        raise self._error


def _engine(registry, stub, logger):
    client = httpx.AsyncClient(transport=httpx.MockTransport(stub))
    return ForwardingEngine(registry=registry, upstream=UpstreamClient(client), logger=logger)


def _request(identifier="weather", uri="https://api.example.com/v1/data", method=None, transport=None):
    return LogicalRequest(identifier=identifier, uri=uri, method=method or Get(), transport=transport)


class TestForward:
    """Test ForwardingEngine.forward"""

    @pytest.mark.asyncio
    async def test_unknown_identifier_never_reaches_network(self, registry, stub_upstream, request_logger):
        engine = _engine(registry, stub_upstream, request_logger)

        envelope = await engine.forward(_request(identifier="missing", uri="https://api.example.com"))

        assert envelope.body is None
        assert envelope.status == 404
        assert stub_upstream.calls == 0
        assert request_logger.not_found == ["missing"]
        assert request_logger.errors == []

    @pytest.mark.asyncio
    async def test_replace_scenario(self, registry, stub_upstream, request_logger):
        engine = _engine(registry, stub_upstream, request_logger)

        envelope = await engine.forward(_request(
            uri="https://api.example.com/v1/data?key=PLACEHOLDER",
            transport=Replace(placeholder="PLACEHOLDER"),
        ))

        assert envelope.status == 200
        assert envelope.body == "ok"
        assert stub_upstream.calls == 1
        sent = stub_upstream.last
        assert sent.method == "GET"
        assert str(sent.url) == "https://api.example.com/v1/data?key=XYZ"
        assert "XYZ" not in "".join(sent.headers.values())

    @pytest.mark.asyncio
    async def test_header_injection(self, registry, stub_upstream, request_logger):
        engine = _engine(registry, stub_upstream, request_logger)

        await engine.forward(_request(transport=Header(name="x-api-key")))

        sent = stub_upstream.last
        assert sent.headers["x-api-key"] == "XYZ"
        assert str(sent.url) == "https://api.example.com/v1/data"

    @pytest.mark.asyncio
    async def test_keyless_upstream_ignores_transport(self, registry, stub_upstream, request_logger):
        engine = _engine(registry, stub_upstream, request_logger)

        await engine.forward(_request(
            identifier="status",
            uri="https://status.example.com/?key=PLACEHOLDER",
            transport=Header(name="x-api-key"),
        ))

        sent = stub_upstream.last
        assert "x-api-key" not in sent.headers
        assert str(sent.url) == "https://status.example.com/?key=PLACEHOLDER"

    @pytest.mark.asyncio
    async def test_post_body_sent_as_is(self, registry, stub_upstream, request_logger):
        engine = _engine(registry, stub_upstream, request_logger)

        await engine.forward(_request(method=Post(body='{"city": "Oslo"}')))

        sent = stub_upstream.last
        assert sent.method == "POST"
        assert sent.content == b'{"city": "Oslo"}'
        assert "content-type" not in sent.headers

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method, verb", [(Put(), "PUT"), (Delete(), "DELETE")])
    async def test_put_and_delete_have_no_body(self, registry, stub_upstream, request_logger, method, verb):
        engine = _engine(registry, stub_upstream, request_logger)

        await engine.forward(_request(method=method))

        sent = stub_upstream.last
        assert sent.method == verb
        assert sent.content == b""

    @pytest.mark.asyncio
    async def test_upstream_status_relayed(self, registry, request_logger):
        stub = StubUpstream(lambda request: httpx.Response(418, text="teapot"))
        engine = _engine(registry, stub, request_logger)

        envelope = await engine.forward(_request())

        assert envelope.status == 418
        assert envelope.body == "teapot"
        assert request_logger.forwards == [("weather", "GET", "https://api.example.com/v1/data", 418)]

    @pytest.mark.asyncio
    async def test_undecodable_body_keeps_status(self, registry, request_logger):
        stub = StubUpstream(lambda request: httpx.Response(
            201,
            content=b"\xff\xfe\xfa",
            headers={"content-type": "text/plain; charset=utf-8"},
        ))
        engine = _engine(registry, stub, request_logger)

        envelope = await engine.forward(_request())

        assert envelope.status == 201
        assert envelope.body is None

    @pytest.mark.asyncio
    async def test_timeout_maps_to_500_and_keeps_serving(self, registry, request_logger):
        def handler(request):
            if request.url.path == "/slow":
                raise httpx.ReadTimeout("timed out", request=request)
            return httpx.Response(200, text="fine")

        stub = StubUpstream(handler)
        engine = _engine(registry, stub, request_logger)

        failed = await engine.forward(_request(uri="https://api.example.com/slow?key=KEY",
                                               transport=Replace(placeholder="KEY")))
        after = await engine.forward(_request(uri="https://api.example.com/fast"))

        assert failed.model_dump() == {"body": None, "status": 500}
        assert after.model_dump() == {"body": "fine", "status": 200}
        assert len(request_logger.errors) == 1
        identifier, status, message = request_logger.errors[0]
        assert (identifier, status) == ("weather", 500)
        assert "ReadTimeout" in message
        assert "XYZ" not in message

    @pytest.mark.asyncio
    async def test_connection_error_maps_to_500(self, registry, request_logger):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        engine = _engine(registry, StubUpstream(handler), request_logger)

        envelope = await engine.forward(_request())

        assert envelope.status == 500
        assert envelope.body is None
        assert request_logger.forwards == []

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error",
        [httpx.ReadError("connection reset"), httpx.ReadTimeout("timed out")],
    )
    async def test_body_read_failure_keeps_status(self, registry, request_logger, error):
        stub = StubUpstream(lambda request: httpx.Response(202, stream=BrokenBodyStream(error)))
        engine = _engine(registry, stub, request_logger)

        envelope = await engine.forward(_request())

        assert envelope.model_dump() == {"body": None, "status": 202}
        assert request_logger.errors == []
        assert request_logger.forwards == [("weather", "GET", "https://api.example.com/v1/data", 202)]

    @pytest.mark.asyncio
    async def test_invalid_header_name_maps_to_500(self, registry, stub_upstream, request_logger):
        engine = _engine(registry, stub_upstream, request_logger)

        envelope = await engine.forward(_request(transport=Header(name="bad header")))

        assert envelope.model_dump() == {"body": None, "status": 500}
        assert stub_upstream.calls == 0
        assert len(request_logger.errors) == 1
        assert request_logger.errors[0][:2] == ("weather", 500)
        assert "XYZ" not in request_logger.errors[0][2]

    @pytest.mark.asyncio
    async def test_invalid_header_name_for_unknown_identifier(self, registry, stub_upstream, request_logger):
        engine = _engine(registry, stub_upstream, request_logger)

        envelope = await engine.forward(_request(identifier="missing", transport=Header(name="bad header")))

        assert envelope.model_dump() == {"body": None, "status": 404}
        assert request_logger.errors == []

    def test_prepare_does_not_send(self, registry, stub_upstream, request_logger):
        engine = _engine(registry, stub_upstream, request_logger)

        outgoing = engine.prepare(
            _request(uri="https://api.example.com/?k=KEY", transport=Replace(placeholder="KEY")),
            registry.lookup("weather"),
        )

        assert outgoing.uri == "https://api.example.com/?k=XYZ"
        assert outgoing.headers == {}
        assert stub_upstream.calls == 0


class TestDecodeBody:
    """Test strict body decoding"""

    def test_declared_charset(self):
        response = httpx.Response(200, content="grüße".encode("latin-1"),
                                  headers={"content-type": "text/plain; charset=latin-1"})
        assert decode_body(response) == "grüße"

    def test_defaults_to_utf8(self):
        response = httpx.Response(200, content="grüße".encode("utf-8"))
        assert decode_body(response) == "grüße"

    def test_unknown_charset(self):
        response = httpx.Response(200, content=b"abc",
                                  headers={"content-type": "text/plain; charset=no-such-codec"})
        assert decode_body(response) is None

    def test_empty_body(self):
        assert decode_body(httpx.Response(204)) == ""
