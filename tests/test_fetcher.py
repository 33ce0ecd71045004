import httpx
import pytest

from batchfetch.fetcher import FetchResult, HTTPFetcher, fetch_and_digest

from conftest import ChunkStream, body_handler, md5_hex, mock_client


@pytest.mark.asyncio
async def test_fetch_small_and_large_bodies():
    bodies = {
        "http://smallbody.ru": b"testBody",
        "http://largebody.ru": b"x" * 4096,
    }
    async with mock_client(body_handler(bodies)) as client:
        for url, body in bodies.items():
            assert await fetch_and_digest(client, url) == f"{url} {md5_hex(body)}"


@pytest.mark.asyncio
async def test_empty_body_digest():
    async with mock_client(lambda request: httpx.Response(200, content=b"")) as client:
        output = await fetch_and_digest(client, "http://empty")

    assert output == "http://empty d41d8cd98f00b204e9800998ecf8427e"


@pytest.mark.asyncio
@pytest.mark.parametrize("chunk_size", [1, 7, 64, 8192, 1 << 20])
async def test_digest_does_not_depend_on_chunk_size(chunk_size):
    body = bytes(range(256)) * 40 + b"tail"
    async with mock_client(lambda request: httpx.Response(200, content=body)) as client:
        output = await fetch_and_digest(client, "http://body", chunk_size=chunk_size)

    assert output == f"http://body {md5_hex(body)}"


@pytest.mark.asyncio
async def test_digest_over_many_stream_chunks():
    chunks = [b"alpha", b"", b"beta", b"gamma" * 1000]
    handler = lambda request: httpx.Response(200, stream=ChunkStream(chunks))
    async with mock_client(handler) as client:
        result = await HTTPFetcher(client, chunk_size=3).fetch("http://chunks")

    assert result.success
    assert result.digest == md5_hex(b"".join(chunks))


@pytest.mark.asyncio
async def test_non_200_status_is_reported_and_body_released():
    stream = ChunkStream([b"timeout"])
    async with mock_client(lambda request: httpx.Response(408, stream=stream)) as client:
        output = await fetch_and_digest(client, "http://timeout.ru")

    assert output == "http://timeout.ru error:408"
    assert stream.closed


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [201, 204, 301, 404, 500, 503])
async def test_any_status_other_than_200_is_an_error(status):
    async with mock_client(lambda request: httpx.Response(status, content=b"body")) as client:
        output = await fetch_and_digest(client, "http://status")

    assert output == f"http://status error:{status}"


@pytest.mark.asyncio
@pytest.mark.parametrize("exc_type", [httpx.ConnectTimeout, httpx.ReadTimeout, httpx.PoolTimeout, httpx.WriteTimeout])
async def test_timeout_is_classified(exc_type):
    def handler(request):
        raise exc_type("timed out", request=request)

    async with mock_client(handler) as client:
        output = await fetch_and_digest(client, "http://slow")

    assert output == "http://slow error:timeout"


@pytest.mark.asyncio
@pytest.mark.parametrize("exc_type", [httpx.ConnectError, httpx.RemoteProtocolError, httpx.UnsupportedProtocol])
async def test_other_transport_errors_are_unknown(exc_type):
    def handler(request):
        raise exc_type("boom", request=request)

    async with mock_client(handler) as client:
        output = await fetch_and_digest(client, "http://broken")

    assert output == "http://broken error:unknown"


@pytest.mark.asyncio
async def test_body_read_error_reports_error_text():
    stream = ChunkStream([b"partial"], error=httpx.ReadError("connection reset by peer"))
    async with mock_client(lambda request: httpx.Response(200, stream=stream)) as client:
        result = await HTTPFetcher(client).fetch("http://reset")

    assert not result.success
    assert result.digest is None
    assert result.token == "http://reset error:connection reset by peer"
    assert stream.closed


@pytest.mark.asyncio
async def test_body_read_error_without_text_uses_exception_name():
    stream = ChunkStream([b"partial"], error=httpx.ReadError(""))
    async with mock_client(lambda request: httpx.Response(200, stream=stream)) as client:
        output = await fetch_and_digest(client, "http://reset")

    assert output == "http://reset error:ReadError"


@pytest.mark.asyncio
async def test_fetcher_does_not_close_shared_client(bodies):
    client = mock_client(body_handler(bodies))
    fetcher = HTTPFetcher(client)
    await fetcher.fetch("http://one")
    await fetcher.fetch("http://two")

    assert not client.is_closed
    await client.aclose()


def test_chunk_size_must_be_positive():
    with pytest.raises(ValueError):
        HTTPFetcher(None, chunk_size=0)


def test_fetch_result_tokens():
    ok = FetchResult("http://a", digest="abc")
    failed = FetchResult.failed("http://b", "404")

    assert ok.success
    assert str(ok) == "http://a abc"
    assert not failed.success
    assert str(failed) == "http://b error:404"
