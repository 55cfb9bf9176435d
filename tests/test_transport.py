import httpx
import pytest
from app.client.controller import UploadController
from app.client.transport import HttpUploadTransport, ProgressStream


async def chunks(*parts):
    for part in parts:
        yield part


@pytest.mark.asyncio
async def test_progress_stream_reports_bytes_sent():
    seen = []
    stream = ProgressStream(chunks(b"abc", b"de"), 5, lambda sent, total: seen.append((sent, total)))

    body = b"".join([chunk async for chunk in stream])

    assert body == b"abcde"
    assert seen == [(3, 5), (5, 5)]


@pytest.mark.asyncio
async def test_progress_stream_unknown_total():
    """Test that an unknown length is reported as None and reads as a 1000% jump."""
    controller = UploadController(transport=None)
    seen = []

    def on_progress(sent, total):
        seen.append(total)
        controller.report_progress(sent, total)

    stream = ProgressStream(chunks(b"x" * 4, b"x" * 6), None, on_progress)
    async for _ in stream:
        pass

    assert seen == [None, None]
    assert controller.progress == 1000


@pytest.mark.asyncio
async def test_send_posts_every_file_under_one_field():
    captured = {}

    def handler(request):
        captured["content_type"] = request.headers["Content-Type"]
        captured["body"] = request.read()
        return httpx.Response(200, json={"message": "ok"})

    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    controller = UploadController(transport=None)
    staged = controller.stage([("a.txt", b"hello"), ("b", b"abc")])
    progress = []

    async with HttpUploadTransport("http://testserver/api/upload", client=client) as transport:
        response = await transport.send(staged, lambda sent, total: progress.append((sent, total)))

    assert response.status_code == 200
    assert response.payload == {"message": "ok"}
    assert captured["content_type"].startswith("multipart/form-data; boundary=")
    assert captured["body"].count(b'name="files"') == 2
    assert b'filename="a.txt"' in captured["body"]
    assert progress[-1][0] == progress[-1][1] == len(captured["body"])


@pytest.mark.asyncio
async def test_send_without_json_payload():
    client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(502, text="bad gateway")))
    controller = UploadController(transport=None)
    staged = controller.stage([("a.txt", b"hello")])

    async with HttpUploadTransport("http://testserver/api/upload", client=client) as transport:
        response = await transport.send(staged, lambda sent, total: None)

    assert response.status_code == 502
    assert response.payload is None
