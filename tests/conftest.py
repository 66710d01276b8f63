import json

import pytest

from backend.errors import StorageError
from backend.hub import ChatHub
from backend.identity import MemoryIdentityStore


class FakeWebSocket:
    """Records every frame the server pushes, decoded."""

    def __init__(self):
        self.sent = []
        self.broken = False
        self.gate = None    # an asyncio.Event that holds sends until set

    async def send_text(self, text):
        if self.gate is not None:
            await self.gate.wait()
        if self.broken:
            raise RuntimeError('socket is gone')
        self.sent.append(json.loads(text))

    def frames(self, type_):
        return [f for f in self.sent if f['type'] == type_]

    def data(self, type_):
        return [f['data'] for f in self.frames(type_)]

    def clear(self):
        self.sent.clear()


class BrokenStore:
    """Identity store whose every call fails like an unreachable database."""

    def __init__(self):
        self.calls = 0

    async def _fail(self, *args, **kwargs):
        self.calls += 1
        raise StorageError()

    ensure_indexes = find_by_username = find_by_code = create = delete = _fail


@pytest.fixture
def store():
    return MemoryIdentityStore()


@pytest.fixture
def hub(store):
    return ChatHub(store)


@pytest.fixture
def broken_store():
    return BrokenStore()


@pytest.fixture
def new_socket():
    return FakeWebSocket
