"""Tests for request-scoped logging."""

from unittest.mock import MagicMock

from app.logging_config import RequestContextAdapter, get_request_logger


class TestRequestContextAdapter:
    def test_prefixes_context(self):
        logger = get_request_logger(request_id="abc123", node_id="N:collection:1")

        msg, _ = logger.process("Publish started", {})

        assert msg == "[request_id=abc123 node_id=N:collection:1] Publish started"

    def test_no_context_leaves_message(self):
        msg, _ = get_request_logger().process("hello", {})

        assert msg == "hello"

    def test_with_context_extends_without_mutating(self):
        base = RequestContextAdapter(MagicMock(), {"request_id": "abc123"})

        bound = base.with_context(node_id="N:collection:1")

        assert bound.extra == {"request_id": "abc123", "node_id": "N:collection:1"}
        assert base.extra == {"request_id": "abc123"}
        assert bound.logger is base.logger
