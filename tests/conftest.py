import os
import sys
from unittest.mock import MagicMock

import pytest

# ──────────────────────────────────────────────────────────────────────────────
# Put the project root (the parent of tests/) on sys.path so that
# `import app`, `import relay.lifecycle` and friends work.
# ──────────────────────────────────────────────────────────────────────────────
ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

# The importable `app:app` must not build a Redis client during tests
os.environ.setdefault("PERSISTENCE_ENABLED", "false")

# fmt: off
from backend import RedisBackend
from relay.lifecycle import RoomLifecycleController
from relay.persistence import PersistenceMirror
from relay.registry import ConnectionRegistry
from relay.room_table import RoomTable
from relay.signaling import SignalingRelay
# fmt: on


class FakeTransport:
    """Records outbound events instead of writing to sockets."""

    def __init__(self):
        self.sent = []      # (identity, event, data)
        self.gone = set()   # identities whose sends fail

    async def send(self, identity, event, data=None):
        if identity in self.gone:
            return False
        self.sent.append((identity, event, data))
        return True

    async def send_many(self, identities, event, data=None, exclude=None):
        delivered = 0
        for identity in list(identities):
            if identity != exclude and await self.send(identity, event, data):
                delivered += 1
        return delivered

    def events(self, identity, event=None):
        return [d for i, e, d in self.sent if i == identity and (event is None or e == event)]


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def registry():
    return ConnectionRegistry()


@pytest.fixture
def rooms():
    return RoomTable()


@pytest.fixture
def store():
    return MagicMock(spec=RedisBackend)


@pytest.fixture
def mirror():
    return PersistenceMirror()


@pytest.fixture
def recorded(store):
    """A mirror writing to a mocked store. Tests close it to flush writes."""
    return PersistenceMirror(store)


@pytest.fixture
def controller(rooms, registry, transport, mirror):
    return RoomLifecycleController(rooms, registry, transport, mirror)


@pytest.fixture
def recording_controller(rooms, registry, transport, recorded):
    return RoomLifecycleController(rooms, registry, transport, recorded)


@pytest.fixture
def signaling(registry, transport):
    return SignalingRelay(registry, transport)


@pytest.fixture
def connect(controller):
    """Register and return client identities."""
    def _connect(*identities):
        for identity in identities:
            controller.connect(identity)
        return identities if len(identities) > 1 else identities[0]
    return _connect
