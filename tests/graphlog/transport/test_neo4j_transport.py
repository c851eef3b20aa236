"""Tests for Neo4jTransport.

Cover construction validation and defaults, node mapping, the completion
callback contract, "logged" notifications and concurrent submissions.
"""

import asyncio
import json
from datetime import UTC, datetime

import pytest

from graphlog.common.config import ConfigurationError, build_options
from graphlog.core.ports import GraphStorePort, TransportPort
from graphlog.graph.client import AsyncNeo4jClient
from graphlog.graph.errors import PersistenceError
from graphlog.schemas.log_entry import LogRecordInput
from graphlog.transport.neo4j_transport import Neo4jTransport
from graphlog.transport.normalize import MalformedRecordError
from tests.utils.mocks import CallbackRecorder, RecordingStore


@pytest.fixture
def transport(transport_options, mock_graph_store) -> Neo4jTransport:
    return Neo4jTransport(transport_options, store=mock_graph_store)


def _levels(transport: Neo4jTransport) -> list[str]:
    seen: list[str] = []
    transport.on("logged", seen.append)
    return seen


class TestConstruction:
    """Construction validation and defaults."""

    @pytest.mark.parametrize("missing", ["endpoint", "username", "password"])
    def test_missing_required_option_fails_before_store(self, mocker, transport_options, missing):
        """No client is created when required options are absent."""
        client_cls = mocker.patch("graphlog.transport.neo4j_transport.AsyncNeo4jClient")
        del transport_options[missing]

        with pytest.raises(ConfigurationError):
            Neo4jTransport(transport_options)

        client_cls.assert_not_called()

    def test_defaults(self, transport_options):
        """Omitted level, label and silent take their defaults."""
        transport = Neo4jTransport(transport_options)

        assert transport.name == "Neo4jTransport"
        assert transport.level == "info"
        assert transport.node_label == "Log"
        assert transport.silent is False

    def test_default_store_is_neo4j_client(self, transport_options):
        """Without an injected store, an AsyncNeo4jClient is built from the options."""
        transport = Neo4jTransport(transport_options, database="logs")

        assert isinstance(transport.store, AsyncNeo4jClient)
        assert transport.store.uri == "bolt://test-graph:7687"
        assert transport.store.database == "logs"
        assert transport.store._driver is None

    def test_declares_log_model_on_store(self, transport_options, mock_graph_store):
        """The node schema is declared once at construction."""
        Neo4jTransport(transport_options, store=mock_graph_store, node_label="AppLog")

        mock_graph_store.declare_model.assert_called_once()
        label, fields = mock_graph_store.declare_model.call_args.args
        assert label == "AppLog"
        assert set(fields) == {"timestamp", "level", "message", "metadata"}

    def test_keyword_only_options(self, mock_graph_store):
        transport = Neo4jTransport(
            endpoint="bolt://g:7687",
            username="neo4j",
            password="secret",
            min_level="warn",
            silent=True,
            store=mock_graph_store,
        )

        assert transport.level == "warn"
        assert transport.silent is True

    def test_accepts_prebuilt_options(self, transport_options, mock_graph_store):
        options = build_options(transport_options)

        transport = Neo4jTransport(options, store=mock_graph_store, node_label="Audit")

        assert transport.node_label == "Audit"
        assert transport.options.endpoint == options.endpoint

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("GRAPHLOG_ENDPOINT", "bolt://env:7687")
        monkeypatch.setenv("GRAPHLOG_USERNAME", "neo4j")
        monkeypatch.setenv("GRAPHLOG_PASSWORD", "secret")
        monkeypatch.setenv("GRAPHLOG_NODE_LABEL", "EnvLog")

        transport = Neo4jTransport.from_env()

        assert transport.node_label == "EnvLog"
        assert transport.store.uri == "bolt://env:7687"

    def test_from_env_without_credentials_fails(self):
        with pytest.raises(ConfigurationError):
            Neo4jTransport.from_env()

    def test_satisfies_ports(self, transport, mock_graph_store):
        """The transport and client fit the port protocols."""
        assert isinstance(transport, TransportPort)
        assert isinstance(RecordingStore(), GraphStorePort)


class TestSubmit:
    """Mapping, completion and notification behavior."""

    @pytest.mark.asyncio
    async def test_success_calls_back_once_with_true(self, transport, mock_graph_store):
        callback = CallbackRecorder()

        transport.submit(LogRecordInput(level="info", message="hello"), callback)
        assert await callback.wait() == (None, True)
        await transport.flush()
        await asyncio.sleep(0)

        assert callback.calls == [(None, True)]
        mock_graph_store.create.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failure_calls_back_once_with_error(self, transport, mock_graph_store):
        mock_graph_store.create.side_effect = PersistenceError("constraint violated")
        callback = CallbackRecorder()

        transport.submit(LogRecordInput(level="error", message="boom"), callback)
        await callback.wait()
        await transport.flush()
        await asyncio.sleep(0)

        assert len(callback.calls) == 1
        (error,) = callback.calls[0]
        assert isinstance(error, PersistenceError)
        assert "constraint violated" in str(error)

    @pytest.mark.asyncio
    async def test_foreign_errors_are_wrapped(self, transport, mock_graph_store):
        """Errors from a store are delivered as PersistenceError chained to the cause."""
        cause = ConnectionResetError("peer reset")
        mock_graph_store.create.side_effect = cause
        callback = CallbackRecorder()

        transport.submit(LogRecordInput(level="info"), callback)
        (error,) = await callback.wait()

        assert isinstance(error, PersistenceError)
        assert error.__cause__ is cause

    @pytest.mark.asyncio
    async def test_submit_never_raises_for_store_errors(self, transport, mock_graph_store):
        """A store whose create() raises synchronously still reports via callback."""
        mock_graph_store.create = lambda label, properties: (_ for _ in ()).throw(
            RuntimeError("sync failure")
        )
        callback = CallbackRecorder()

        transport.submit(LogRecordInput(level="info"), callback)
        (error,) = await callback.wait()

        assert isinstance(error, PersistenceError)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("kind", ["tuple_keys", "circular"])
    async def test_unencodable_metadata_reports_through_callback(
        self, transport, mock_graph_store, kind
    ):
        """Metadata JSON cannot encode fails the record, not the call."""
        if kind == "tuple_keys":
            metadata = {(1, 2): "tuple key"}
        else:
            metadata = {"name": "loop"}
            metadata["self"] = metadata
        callback = CallbackRecorder()

        transport.log("info", "bad metadata", metadata, callback)
        assert callback.calls == []

        (error,) = await callback.wait()
        await asyncio.sleep(0)

        assert len(callback.calls) == 1
        assert isinstance(error, PersistenceError)
        assert isinstance(error.__cause__, (TypeError, ValueError))
        mock_graph_store.create.assert_not_awaited()

    @pytest.mark.asyncio
    @pytest.mark.parametrize("record", ["oops", 42, ["info", "message"]])
    async def test_non_record_rejected(self, transport, mock_graph_store, record):
        """Only mappings and LogRecordInput are records."""
        callback = CallbackRecorder()

        transport.submit(record, callback)
        (error,) = await callback.wait()

        assert isinstance(error, MalformedRecordError)
        mock_graph_store.create.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_persisted_node_mapping(self, transport, mock_graph_store):
        """The node holds the UTC timestamp, unchanged level/message and JSON metadata."""
        metadata = {"request": {"id": 7}, "tags": ["api"]}
        callback = CallbackRecorder()

        before = datetime.now(UTC)
        transport.submit(
            LogRecordInput(level="warn", message="slow response", metadata=metadata), callback
        )
        after = datetime.now(UTC)
        await callback.wait()

        label, properties = mock_graph_store.create.await_args.args
        assert label == "Log"
        assert set(properties) == {"timestamp", "level", "message", "metadata"}
        assert before <= properties["timestamp"] <= after
        assert properties["timestamp"].tzinfo is not None
        assert properties["level"] == "warn"
        assert properties["message"] == "slow response"
        assert json.loads(properties["metadata"]) == metadata

    @pytest.mark.asyncio
    async def test_empty_metadata_stored_as_empty_string(self, transport, mock_graph_store):
        callback = CallbackRecorder()

        transport.log("info", "no context", callback)
        await callback.wait()

        assert mock_graph_store.create.await_args.args[1]["metadata"] == ""

    @pytest.mark.asyncio
    async def test_without_callback(self, transport, mock_graph_store):
        """A callback is optional."""
        transport.submit(LogRecordInput(level="info"))
        await transport.flush()

        mock_graph_store.create.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_mapping_record_accepted(self, transport, mock_graph_store):
        callback = CallbackRecorder()

        transport.submit({"message": "from mapping"}, callback)
        await callback.wait()

        properties = mock_graph_store.create.await_args.args[1]
        assert properties["level"] == "info"
        assert properties["message"] == "from mapping"

    def test_no_event_loop_raises(self, transport):
        """Outside a loop, and without one given, submit cannot schedule."""
        with pytest.raises(RuntimeError, match="event loop"):
            transport.submit(LogRecordInput(level="info"))

    def test_explicit_loop_not_yet_running(self, transport, mock_graph_store):
        """A loop passed explicitly receives the write even when it is not running yet."""
        loop = asyncio.new_event_loop()
        try:
            done = loop.create_future()

            def _callback(*args):
                done.set_result(args)

            transport.submit(LogRecordInput(level="info", message="x"), _callback, loop=loop)

            assert loop.run_until_complete(asyncio.wait_for(done, 1.0)) == (None, True)
        finally:
            loop.close()


class TestLoggedEvent:
    """The "logged" notification."""

    @pytest.mark.asyncio
    async def test_emitted_after_call_returns(self, transport):
        """The event is deferred to a later loop turn."""
        levels = _levels(transport)

        transport.submit(LogRecordInput(level="info"))
        assert levels == []

        await transport.flush()
        assert levels == ["info"]

    @pytest.mark.asyncio
    async def test_emitted_for_failed_writes(self, transport, mock_graph_store):
        mock_graph_store.create.side_effect = PersistenceError("down")
        levels = _levels(transport)
        callback = CallbackRecorder()

        transport.submit(LogRecordInput(level="error"), callback)
        await callback.wait()

        assert levels == ["error"]

    @pytest.mark.asyncio
    async def test_suppressed_when_silent(self, transport_options, mock_graph_store):
        transport = Neo4jTransport(transport_options, store=mock_graph_store, silent=True)
        levels = _levels(transport)
        callback = CallbackRecorder()

        transport.submit(LogRecordInput(level="info"), callback)
        await callback.wait()
        await asyncio.sleep(0)

        assert levels == []
        assert callback.calls == [(None, True)]

    @pytest.mark.asyncio
    async def test_fires_before_write_starts(self, transport_options):
        """Notification is scheduled before the create is issued."""
        order: list[str] = []

        class _OrderedStore(RecordingStore):
            async def create(self, label, properties):
                order.append("create")
                return await super().create(label, properties)

        transport = Neo4jTransport(transport_options, store=_OrderedStore())
        transport.on("logged", lambda level: order.append("logged"))

        transport.submit(LogRecordInput(level="info"))
        await transport.flush()

        assert order == ["logged", "create"]


class TestLogEntryPoint:
    """Argument normalization through log()."""

    @pytest.mark.asyncio
    async def test_positional_callback_matches_explicit_metadata(self, transport, mock_graph_store):
        first, second = CallbackRecorder(), CallbackRecorder()

        transport.log("warn", "disk at 91%", first)
        transport.log("warn", "disk at 91%", {}, second)
        await first.wait()
        await second.wait()

        calls = mock_graph_store.create.await_args_list
        one, two = (dict(call.args[1]) for call in calls)
        one.pop("timestamp")
        two.pop("timestamp")
        assert one == two
        assert first.calls == second.calls == [(None, True)]

    @pytest.mark.asyncio
    async def test_record_with_callback(self, transport, mock_graph_store):
        callback = CallbackRecorder()

        transport.log({"level": "error", "message": "payment failed", "meta": {"order": 17}}, callback)
        await callback.wait()

        properties = mock_graph_store.create.await_args.args[1]
        assert properties["level"] == "error"
        assert json.loads(properties["metadata"]) == {"order": 17}

    @pytest.mark.asyncio
    async def test_missing_level_uses_min_level(self, transport_options, mock_graph_store):
        transport = Neo4jTransport(transport_options, store=mock_graph_store, min_level="warn")
        callback = CallbackRecorder()

        transport.log({"message": "no level"}, callback)
        await callback.wait()

        assert mock_graph_store.create.await_args.args[1]["level"] == "warn"

    @pytest.mark.asyncio
    async def test_malformed_call_reports_through_callback(self, transport, mock_graph_store):
        callback = CallbackRecorder()

        transport.log(42, "bad level", callback)
        (error,) = await callback.wait()

        assert isinstance(error, MalformedRecordError)
        mock_graph_store.create.assert_not_awaited()

    def test_malformed_call_without_callback_raises(self, transport):
        with pytest.raises(MalformedRecordError):
            transport.log()


class TestConcurrency:
    """Concurrent submissions on one transport."""

    @pytest.mark.asyncio
    async def test_concurrent_submits_complete_independently(self, transport_options):
        """Each call completes once and produces its own node, whatever the order."""
        count = 20
        messages = [f"event-{i}" for i in range(count)]
        # Later submissions finish first
        store = RecordingStore(delays={m: (count - i) * 0.002 for i, m in enumerate(messages)})
        transport = Neo4jTransport(transport_options, store=store)
        callbacks = [CallbackRecorder() for _ in messages]

        for i, (message, callback) in enumerate(zip(messages, callbacks, strict=True)):
            transport.log("info", message, {"index": i}, callback)

        await asyncio.gather(*(callback.wait() for callback in callbacks))
        await transport.flush()

        assert all(callback.calls == [(None, True)] for callback in callbacks)
        assert len(store.nodes) == count
        stored = {props["message"]: json.loads(props["metadata"]) for _, props in store.nodes}
        assert stored == {m: {"index": i} for i, m in enumerate(messages)}
        assert [props["message"] for _, props in store.nodes] == list(reversed(messages))

    @pytest.mark.asyncio
    async def test_one_failure_does_not_affect_others(self, transport_options):
        store = RecordingStore(fail_messages={"bad"})
        transport = Neo4jTransport(transport_options, store=store)
        good, bad = CallbackRecorder(), CallbackRecorder()

        transport.log("info", "good", good)
        transport.log("info", "bad", bad)
        await asyncio.gather(good.wait(), bad.wait())

        assert good.calls == [(None, True)]
        assert isinstance(bad.calls[0][0], PersistenceError)
        assert [props["message"] for _, props in store.nodes] == ["good"]


@pytest.mark.asyncio
async def test_close_waits_for_writes_and_closes_store(transport_options):
    store = RecordingStore(delays={"slow": 0.01})
    transport = Neo4jTransport(transport_options, store=store)

    transport.log("info", "slow")
    await transport.close()

    assert store.closed is True
    assert len(store.nodes) == 1
