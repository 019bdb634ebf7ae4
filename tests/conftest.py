"""Pytest fixtures for the upload pipeline tests."""
import asyncio

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from app.utils.temp import InMemoryFile


class RenameServiceStub:
    """In-process stand-in for the remote renaming service."""

    def __init__(self):
        self.status = 200
        self.body = b""
        self.content_type = "application/zip"
        self.requests = []
        self.gate = None
        self.url = None

    @property
    def calls(self):
        return len(self.requests)

    async def handle(self, request):
        parts = []
        reader = await request.multipart()
        async for part in reader:
            parts.append((part.name, part.filename, await part.read()))
        self.requests.append(parts)

        if self.gate is not None:
            await self.gate.wait()

        return web.Response(status=self.status, body=self.body, content_type=self.content_type)


class RecordingSaver:
    """Saver that keeps what it was asked to save."""

    def __init__(self):
        self.saved = []
        self.buffers = []

    async def save(self, buffer, filename):
        self.buffers.append(buffer)
        self.saved.append((filename, buffer.read()))


@pytest.fixture
def make_files():
    """Factory for in-memory XML files."""
    def _make(count):
        return tuple(
            InMemoryFile(
                name=f"nota_{i}.xml",
                mime="application/xml",
                data=f"<nfe id='{i}'/>".encode(),
            )
            for i in range(count)
        )
    return _make


@pytest.fixture
def saver():
    return RecordingSaver()


@pytest_asyncio.fixture
async def rename_service():
    """Runs the stub service on a local port for the duration of a test."""
    stub = RenameServiceStub()
    app = web.Application()
    app.router.add_post("/upload", stub.handle)

    server = TestServer(app)
    await server.start_server()
    stub.url = str(server.make_url("/upload"))
    try:
        yield stub
    finally:
        if stub.gate is not None:
            stub.gate.set()
        await server.close()


@pytest.fixture
def wait_for_calls():
    """Polls until the stub has received `count` requests."""
    async def _wait(stub, count, timeout=5.0):
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while stub.calls < count:
            if loop.time() > deadline:
                raise AssertionError(f"expected {count} request(s), got {stub.calls}")
            await asyncio.sleep(0.01)
    return _wait
