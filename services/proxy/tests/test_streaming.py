"""Tests for upstream gating helpers and the audio stream generator."""

import asyncio

import httpx
import pytest

from conftest import make_settings
from eleven_proxy.models import ContentTypeRejected, RedirectBlocked, Success, UpstreamError
from eleven_proxy.relay import stream_body
from eleven_proxy.utils.http_client import ElevenLabsClient, read_prefix


class TrackingStream(httpx.AsyncByteStream):
    """Upstream body that records how far it was read and whether it was closed"""

    def __init__(self, chunks, fail_after=None):
        self.chunks = list(chunks)
        self.fail_after = fail_after
        self.served = 0
        self.closed = False

    async def __aiter__(self):
        for index, chunk in enumerate(self.chunks):
            if self.fail_after is not None and index >= self.fail_after:
                raise httpx.ReadError("upstream dropped")
            self.served += 1
            yield chunk

    async def aclose(self):
        self.closed = True


def make_response(status=200, headers=None, stream=None) -> httpx.Response:
    return httpx.Response(status, headers=headers or {}, stream=stream)


# ---------------------------------------------------------------------------
# stream_body
# ---------------------------------------------------------------------------


def test_stream_body_preserves_bytes_and_closes():
    stream = TrackingStream([b"a", b"bc", b"def"])
    response = make_response(headers={"content-type": "audio/mpeg"}, stream=stream)

    async def run():
        return [chunk async for chunk in stream_body(response)]

    chunks = asyncio.run(run())

    assert b"".join(chunks) == b"abcdef"
    assert stream.closed is True


def test_stream_body_failure_after_commit_propagates():
    stream = TrackingStream([b"one", b"two", b"three"], fail_after=2)
    response = make_response(stream=stream)
    received = []

    async def run():
        async for chunk in stream_body(response):
            received.append(chunk)

    with pytest.raises(httpx.ReadError):
        asyncio.run(run())

    assert received == [b"one", b"two"]
    assert stream.closed is True


def test_stream_body_caller_disconnect_closes_upstream():
    stream = TrackingStream([b"first", b"second", b"third"])
    response = make_response(stream=stream)

    async def run():
        gen = stream_body(response)
        first = await gen.__anext__()
        await gen.aclose()
        return first

    assert asyncio.run(run()) == b"first"
    assert stream.served == 1
    assert stream.closed is True


def test_stream_body_buffered_response():
    response = httpx.Response(200, content=b"buffered")

    async def run():
        return [chunk async for chunk in stream_body(response)]

    assert asyncio.run(run()) == [b"buffered"]


# ---------------------------------------------------------------------------
# read_prefix
# ---------------------------------------------------------------------------


def test_read_prefix_stops_early_on_huge_body():
    stream = TrackingStream([b"e" * 100] * 1000)
    response = make_response(stream=stream)

    text = asyncio.run(read_prefix(response, 50))

    assert text == "e" * 50
    # 50 chars need at most 200 bytes, i.e. two 100-byte chunks
    assert stream.served == 2
    assert stream.closed is True


def test_read_prefix_counts_characters_not_bytes():
    response = httpx.Response(500, headers={"content-type": "text/plain; charset=utf-8"}, content="ошибка".encode() * 10)

    text = asyncio.run(read_prefix(response, 8))

    assert text == "ошибкаош"


def test_read_prefix_read_failure_is_empty():
    stream = TrackingStream([b"x"], fail_after=0)
    response = make_response(status=500, stream=stream)

    assert asyncio.run(read_prefix(response, 400)) == ""
    assert stream.closed is True


# ---------------------------------------------------------------------------
# ElevenLabsClient.gate
# ---------------------------------------------------------------------------


def gate(response: httpx.Response):
    client = ElevenLabsClient(make_settings())
    return asyncio.run(client.gate(response))


def test_gate_redirect_checked_before_status_and_content_type():
    stream = TrackingStream([b"<html>moved</html>"])
    outcome = gate(make_response(301, {"location": "https://help.example"}, stream))

    assert outcome == RedirectBlocked(status=301, location="https://help.example")
    assert stream.served == 0
    assert stream.closed is True


def test_gate_status_checked_before_content_type():
    outcome = gate(httpx.Response(503, headers={"content-type": "audio/mpeg"}, content=b"busy"))

    assert outcome == UpstreamError(status=503, body="busy")


def test_gate_content_type():
    outcome = gate(httpx.Response(200, headers={"content-type": "application/json"}, content=b'{"detail":"x"}'))

    assert outcome == ContentTypeRejected(content_type="application/json", body='{"detail":"x"}')


def test_gate_success_leaves_body_unread():
    stream = TrackingStream([b"mp3"])
    response = make_response(200, {"content-type": "audio/mpeg"}, stream)

    outcome = gate(response)

    assert isinstance(outcome, Success)
    assert outcome.response is response
    assert outcome.content_type == "audio/mpeg"
    assert stream.served == 0
    assert stream.closed is False
