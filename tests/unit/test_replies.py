"""Unit tests for reply status classification and field access."""

import pytest

from omp_client.errors import MalformedReplyError, ProtocolFailureError
from omp_client.protocol.codec import decode
from omp_client.protocol.replies import Reply, as_list, as_text, is_success_status


class TestStatusClassification:
    """2xx codes are success, everything else is failure."""

    @pytest.mark.parametrize("status", ["200", "201", "202", "299"])
    def test_success_codes(self, status):
        assert is_success_status(status) is True

    @pytest.mark.parametrize("status", ["400", "404", "500", "503", "199", "300", "2000", "20", "abc", "", None])
    def test_failure_codes(self, status):
        assert is_success_status(status) is False

    def test_ok_reply(self):
        reply = Reply.from_tree(decode('<create_target_response status="201" status_text="OK, resource created" id="t1"/>'))

        assert reply.ok is True
        assert reply.raise_for_status() is reply

    def test_failed_reply_carries_status_text(self):
        reply = Reply.from_tree(decode('<create_target_response status="400" status_text="Bad hosts"/>'))

        with pytest.raises(ProtocolFailureError) as exc_info:
            reply.raise_for_status()

        assert str(exc_info.value) == "Bad hosts"
        assert exc_info.value.status == "400"
        assert exc_info.value.command == "create_target_response"

    def test_failure_without_status_text(self):
        reply = Reply.from_tree(decode('<get_targets_response status="500"/>'))

        with pytest.raises(ProtocolFailureError, match="status 500"):
            reply.raise_for_status()

    def test_missing_status_is_failure(self):
        reply = Reply.from_tree(decode("<get_targets_response/>"))

        assert reply.status == ""
        assert reply.ok is False


class TestFieldAccess:
    """Field lookups are explicit with defined missing behavior."""

    @pytest.fixture
    def reply(self):
        return Reply.from_tree(
            decode(
                '<get_targets_response status="200" status_text="OK">'
                '<target id="1"><name>a</name></target>'
                "<target_count>1<filtered>1</filtered></target_count>"
                "</get_targets_response>"
            )
        )

    def test_get_with_default(self, reply):
        assert reply.get("filters") is None
        assert reply.get("filters", {}) == {}

    def test_text_looks_through_dicts(self, reply):
        assert reply.text("target_count") == "1"
        assert reply.text("missing", "n/a") == "n/a"

    def test_items_always_list(self, reply):
        assert len(reply.items("target")) == 1
        assert reply.items("missing") == []

    def test_require_missing_raises(self, reply):
        with pytest.raises(MalformedReplyError, match="sort"):
            reply.require("sort")

    def test_expect_checks_root_name(self, reply):
        assert reply.expect("get_targets_response") is reply
        with pytest.raises(MalformedReplyError):
            reply.expect("authenticate_response")

    def test_from_tree_rejects_multiple_roots(self):
        with pytest.raises(MalformedReplyError):
            Reply.from_tree({"a": {}, "b": {}})


class TestHelpers:
    def test_as_list(self):
        assert as_list(None) == []
        assert as_list("x") == ["x"]
        assert as_list(["x", "y"]) == ["x", "y"]

    def test_as_text(self):
        assert as_text("x") == "x"
        assert as_text({"_text": "y", "id": "1"}) == "y"
        assert as_text({"id": "1"}) == ""
        assert as_text(["z"]) == "z"
        assert as_text(None, "default") == "default"
