"""Tests for SyncBridge: load gating, serialized saves, retries and logout."""

import asyncio
from unittest.mock import AsyncMock

import pytest

from mindmap.core.api_client import NETWORK_ERROR, ApiError, StaleGraph, Unauthorized
from mindmap.core.graph_store import GraphStore
from mindmap.core.models import Link, Node
from mindmap.core.session import Session
from mindmap.core.sync import SyncBridge


@pytest.fixture
def store():
    return GraphStore()


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def bridge(store, fake_server, sleep):
    return SyncBridge(store, fake_server, max_retries=3, backoff_seconds=0.5, sleep=sleep)


@pytest.mark.asyncio
async def test_start_loads_remote_graph(bridge, store, fake_server, session):
    fake_server.nodes = [Node(id="a", content="Alpha"), Node(id="b")]
    fake_server.links = [Link(source="a", target="b")]
    fake_server.version = 4

    assert await bridge.start(session) is True
    assert bridge.loaded
    assert bridge.remote_version == 4
    assert [n.id for n in store.nodes] == ["a", "b"]
    assert not bridge.pending

    await bridge.flush()
    assert fake_server.calls == []


@pytest.mark.asyncio
async def test_failed_load_disables_saving(bridge, store, fake_server, session):
    fake_server.fetch_error = ApiError(NETWORK_ERROR)

    assert await bridge.start(session) is False
    assert not bridge.loaded
    assert bridge.last_error is fake_server.fetch_error
    assert store.nodes == []

    store.add_node("local only")
    await bridge.flush()
    assert fake_server.calls == []


@pytest.mark.asyncio
async def test_changes_before_load_are_not_saved(bridge, store, fake_server, session):
    store.add_node("typed too early")
    await bridge.flush()
    assert fake_server.calls == []


@pytest.mark.asyncio
async def test_change_is_saved_with_next_version(bridge, store, fake_server, session):
    fake_server.version = 2
    await bridge.start(session)

    store.add_node("Alpha", node_id="a")
    assert bridge.pending
    await bridge.flush()

    assert fake_server.calls == [{"version": 3, "nodes": ["a"], "links": []}]
    assert fake_server.version == 3
    assert bridge.remote_version == 3
    assert bridge.saved_version == store.version
    assert not bridge.pending
    assert bridge.last_error is None


@pytest.mark.asyncio
async def test_sequential_saves_end_with_latest_content(bridge, store, fake_server, session):
    await bridge.start(session)
    first_gate = asyncio.Event()
    fake_server.gates = [first_gate]

    store.add_node(node_id="a")
    await asyncio.sleep(0)
    assert fake_server.in_flight == 1

    # These land while the first save is still waiting on the network
    store.add_node(node_id="b")
    store.add_node(node_id="c")
    store.add_link("b", "c")

    first_gate.set()
    await bridge.flush()

    assert fake_server.max_in_flight == 1
    assert [call["version"] for call in fake_server.calls] == [1, 2]
    assert fake_server.calls[0]["nodes"] == ["a"]
    assert fake_server.node_ids == ["a", "b", "c"]
    assert [(l.source, l.target) for l in fake_server.links] == [("b", "c")]
    assert not bridge.pending


@pytest.mark.asyncio
async def test_transient_failures_are_retried_with_backoff(bridge, store, fake_server, session, sleep):
    await bridge.start(session)
    fake_server.failures = [
        ApiError(NETWORK_ERROR),
        ApiError("Failed to save graph data", status_code=500),
    ]

    store.add_node(node_id="a")
    await bridge.flush()

    assert len(fake_server.calls) == 3
    assert [c.args[0] for c in sleep.await_args_list] == [0.5, 1.0]
    assert fake_server.node_ids == ["a"]
    assert bridge.last_error is None


@pytest.mark.asyncio
async def test_gives_up_after_max_retries(store, fake_server, session, sleep):
    bridge = SyncBridge(store, fake_server, max_retries=1, backoff_seconds=0.1, sleep=sleep)
    await bridge.start(session)
    fake_server.failures = [ApiError(NETWORK_ERROR), ApiError(NETWORK_ERROR)]

    store.add_node(node_id="a")
    await bridge.flush()

    assert len(fake_server.calls) == 2
    assert bridge.pending
    assert bridge.last_error.message == NETWORK_ERROR
    assert fake_server.node_ids == []

    # The next change tries again and carries everything
    store.add_node(node_id="b")
    await bridge.flush()
    assert fake_server.node_ids == ["a", "b"]
    assert not bridge.pending


@pytest.mark.asyncio
async def test_client_errors_are_not_retried(bridge, store, fake_server, session, sleep):
    await bridge.start(session)
    fake_server.failures = [ApiError("Invalid request", status_code=400)]

    store.add_node(node_id="a")
    await bridge.flush()

    assert len(fake_server.calls) == 1
    sleep.assert_not_awaited()
    assert bridge.last_error.status_code == 400


@pytest.mark.asyncio
async def test_unauthorized_stops_saving(bridge, store, fake_server, session):
    await bridge.start(session)
    fake_server.failures = [Unauthorized("Invalid or expired token", status_code=401)]

    store.add_node(node_id="a")
    await bridge.flush()
    assert not bridge.loaded
    assert isinstance(bridge.last_error, Unauthorized)

    store.add_node(node_id="b")
    await bridge.flush()
    assert len(fake_server.calls) == 1


@pytest.mark.asyncio
async def test_stale_version_is_superseded(bridge, store, fake_server, session):
    await bridge.start(session)
    # Another tab saved twice since we loaded
    fake_server.version = 2

    store.add_node(node_id="a")
    await bridge.flush()

    assert isinstance(bridge.last_error, StaleGraph)
    assert bridge.last_error.current_version == 2
    assert not bridge.loaded
    assert fake_server.node_ids == []


@pytest.mark.asyncio
async def test_lost_response_is_not_mistaken_for_conflict(bridge, store, fake_server, session):
    await bridge.start(session)
    fake_server.lose_responses = 1

    store.add_node(node_id="a")
    await bridge.flush()

    assert [call["version"] for call in fake_server.calls] == [1, 1]
    assert bridge.loaded
    assert bridge.remote_version == 1
    assert bridge.last_error is None
    assert not bridge.pending


@pytest.mark.asyncio
async def test_logout_never_pushes_an_empty_graph(bridge, store, fake_server, session):
    fake_server.nodes = [Node(id="a"), Node(id="b")]
    fake_server.version = 1
    await bridge.start(session)

    bridge.stop(clear=True)
    await bridge.flush()

    assert store.nodes == []
    assert bridge.session is None
    assert fake_server.calls == []
    assert fake_server.node_ids == ["a", "b"]


@pytest.mark.asyncio
async def test_restart_adopts_remote_version(bridge, store, fake_server, session):
    await bridge.start(session)
    fake_server.version = 7
    store.add_node(node_id="a")
    await bridge.flush()
    assert not bridge.loaded

    assert await bridge.start(session) is True
    store.add_node(node_id="b")
    await bridge.flush()
    assert fake_server.calls[-1]["version"] == 8
    assert fake_server.node_ids == ["b"]


@pytest.mark.asyncio
async def test_save_from_previous_session_does_not_leak_into_next(bridge, store, fake_server, session):
    await bridge.start(session)
    gate = asyncio.Event()
    fake_server.gates = [gate]
    store.add_node(node_id="a")
    await asyncio.sleep(0)
    old_worker = bridge._worker
    assert fake_server.in_flight == 1

    bridge.stop()
    fake_server.nodes = [Node(id="x")]
    fake_server.version = 10
    bob = Session(token="bob-token", user_id="user-2", username="bob")
    assert await bridge.start(bob)

    # The old save is accepted after all and reports v1
    fake_server.version = 0
    gate.set()
    await old_worker

    assert bridge.loaded
    assert bridge.session is bob
    assert bridge.remote_version == 10
    assert bridge.last_error is None

    store.add_node(node_id="b")
    await bridge.flush()
    assert [call["version"] for call in fake_server.calls] == [1, 11]
    assert fake_server.calls[-1]["nodes"] == ["x", "b"]
    assert bridge.remote_version == 11


@pytest.mark.asyncio
async def test_rejected_save_from_previous_session_keeps_next_loaded(bridge, store, fake_server, session):
    await bridge.start(session)
    gate = asyncio.Event()
    fake_server.gates = [gate]
    store.add_node(node_id="a")
    await asyncio.sleep(0)
    old_worker = bridge._worker

    bridge.stop()
    fake_server.version = 10
    assert await bridge.start(Session(token="bob-token", user_id="user-2", username="bob"))
    store.add_node(node_id="b")
    await bridge.flush()

    gate.set()
    await old_worker

    assert [call["version"] for call in fake_server.calls] == [1, 11]
    assert bridge.loaded
    assert bridge.remote_version == 11
    assert bridge.last_error is None
    assert not bridge.pending
