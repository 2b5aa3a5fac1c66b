"""Tests for correlation ids carried in message metadata."""

from kafka_client import Message
from telemetry import OperationKind, TrackedOperation
from tracking import CorrelationContext, ROOT_ID_KEY, PARENT_ID_KEY, inject, inject_all, extract


class TestInject:
    """Tests for writing correlation ids onto messages."""

    def test_inject_writes_both_keys(self):
        message = Message()
        inject(message, CorrelationContext(root_id="root-1", parent_id="parent-1"))

        assert message.user_properties[ROOT_ID_KEY] == "root-1"
        assert message.user_properties[PARENT_ID_KEY] == "parent-1"

    def test_inject_omits_missing_ids(self):
        message = Message()
        inject(message, CorrelationContext(root_id="root-1"))

        assert message.user_properties == {ROOT_ID_KEY: "root-1"}

    def test_inject_keeps_other_properties(self):
        message = Message(user_properties={"tenant": "acme"})
        inject(message, CorrelationContext(root_id="r", parent_id="p"))

        assert message.user_properties["tenant"] == "acme"

    def test_inject_all_gives_every_message_the_same_pair(self):
        batch = [Message() for _ in range(4)]
        inject_all(batch, CorrelationContext(root_id="r", parent_id="p"))

        pairs = {(m.user_properties[ROOT_ID_KEY], m.user_properties[PARENT_ID_KEY]) for m in batch}
        assert pairs == {("r", "p")}


class TestExtract:
    """Tests for reading correlation ids back."""

    def test_extract_from_uncorrelated_message(self):
        context = extract(Message())

        assert context.root_id is None
        assert context.parent_id is None
        assert context.is_empty

    def test_extract_reads_injected_ids(self):
        message = Message()
        inject(message, CorrelationContext(root_id="root-1", parent_id="parent-1"))

        assert extract(message) == CorrelationContext(root_id="root-1", parent_id="parent-1")

    def test_extract_decodes_bytes(self):
        message = Message(user_properties={ROOT_ID_KEY: b"root-1", PARENT_ID_KEY: b"parent-1"})

        context = extract(message)

        assert context.root_id == "root-1"
        assert context.parent_id == "parent-1"

    def test_extract_with_only_parent(self):
        message = Message(user_properties={PARENT_ID_KEY: "parent-1"})

        context = extract(message)

        assert context.root_id is None
        assert context.parent_id == "parent-1"
        assert not context.is_empty

    def test_extract_ignores_ids_that_are_not_utf8(self):
        message = Message(user_properties={ROOT_ID_KEY: b"\xff\xfe", PARENT_ID_KEY: b"parent-1"})

        context = extract(message)

        assert context.root_id is None
        assert context.parent_id == "parent-1"

    def test_process_with_undecodable_ids_starts_new_trace(self, correlator):
        message = Message(user_properties={ROOT_ID_KEY: b"\xff\xfe", PARENT_ID_KEY: b"\x80"})

        with correlator.begin_process(message, "orders") as scope:
            operation = scope.operation

        assert operation.context_parent_id is None
        assert operation.context_operation_id


def test_context_from_operation():
    operation = TrackedOperation(name="Enqueue orders", kind=OperationKind.DEPENDENCY)
    operation.context_operation_id = "trace-1"

    context = CorrelationContext.from_operation(operation)

    assert context.root_id == "trace-1"
    assert context.parent_id == operation.id
