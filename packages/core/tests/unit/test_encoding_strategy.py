import json

import pytest

from nl2msg.pipeline.nodes.encoding.node import (
    EncodingPreferenceCache,
    EncodingStrategySelector,
    encode_message,
    fits_in_tags,
)

NUMBER = {"type": "number", "required": True}


class FakeClock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


class TestEncodingStrategySelector:

    def setup_method(self):
        self.clock = FakeClock()
        self.cache = EncodingPreferenceCache(ttl_sec=60, clock=self.clock)
        self.selector = EncodingStrategySelector(self.cache)

    def test_target_hint_is_pinned(self, handler_factory):
        """A hinted target id decides the strategy and is remembered."""
        register = handler_factory("Register", {"name": "Name"}, {"name": "Note"})

        decision = self.selector.decide("calculator-proc", register)

        assert decision.strategy == "tags"
        assert decision.source == "target_hint"
        assert self.cache.stats() == {"size": 1, "preferences": {"calculator-proc": "tags"}}
        assert self.selector.decide("calculator-proc", register).source == "cache"

    def test_token_target_prefers_data(self, handler_factory):
        add = handler_factory("Add", {"name": "A", **NUMBER}, {"name": "B", **NUMBER})
        assert self.selector.select_strategy("my-token-proc", add) == "data"

    @pytest.mark.parametrize(
        "action, params, expected",
        [
            ("Add", [{"name": "A", **NUMBER}, {"name": "B", **NUMBER}], "tags"),
            ("Scale", [{"name": "X", **NUMBER}, {"name": "Y", **NUMBER}], "tags"),
            ("Configure", [{"name": "Settings", "type": "json"}], "data"),
            ("Update", [{"name": n} for n in ("A", "B", "C", "D")], "data"),
            ("Transfer", [{"name": "Recipient", "type": "address"}, {"name": "Quantity"}, {"name": "Memo"}], "data"),
            ("Register", [{"name": "Name"}, {"name": "Note"}], "hybrid"),
        ],
    )
    def test_handler_shape_heuristics(self, handler_factory, action, params, expected):
        handler = handler_factory(action, *params)

        decision = self.selector.decide("proc-1", handler)

        assert decision.strategy == expected
        assert decision.source == "heuristic"

    def test_learned_preference_short_circuits(self, handler_factory):
        add = handler_factory("Add", {"name": "A", **NUMBER}, {"name": "B", **NUMBER})
        self.cache.remember("proc-1", "data")

        assert self.selector.decide("proc-1", add).source == "cache"
        assert self.selector.select_strategy("proc-1", add) == "data"

        self.cache.clear()
        assert self.selector.select_strategy("proc-1", add) == "tags"

    def test_preference_expires(self, handler_factory):
        add = handler_factory("Add", {"name": "A", **NUMBER}, {"name": "B", **NUMBER})
        self.cache.remember("proc-1", "data")

        self.clock.now = 61

        assert self.cache.get("proc-1") is None
        assert self.selector.select_strategy("proc-1", add) == "tags"


class TestEncodeMessage:

    def test_tags_encoding(self, token_document):
        transfer = token_document.get_handler("Transfer")

        encoded = encode_message(transfer, {"Target": "alice-456", "Quantity": "100"}, "tags")

        assert [(t.name, t.value) for t in encoded.tags] == [
            ("Action", "Transfer"), ("Target", "alice-456"), ("Quantity", "100"),
        ]
        assert encoded.data is None

    def test_data_encoding(self, token_document):
        transfer = token_document.get_handler("Transfer")

        encoded = encode_message(transfer, {"Target": "alice-456", "Quantity": "100", "Memo": None}, "data")

        assert [(t.name, t.value) for t in encoded.tags] == [("Action", "Transfer")]
        assert json.loads(encoded.data) == {"Target": "alice-456", "Quantity": "100"}

    def test_hybrid_encoding(self, handler_factory):
        """Short scalar discriminants stay tags, everything else moves to the payload."""
        register = handler_factory(
            "Register",
            {"name": "Name"},
            {"name": "Profile", "type": "json"},
            {"name": "Enabled", "type": "boolean"},
            {"name": "Bio"},
        )
        params = {"Name": "alice", "Profile": {"age": 3}, "Enabled": True, "Bio": "x" * 100}

        encoded = encode_message(register, params, "hybrid")

        assert [(t.name, t.value) for t in encoded.tags] == [
            ("Action", "Register"), ("Name", "alice"), ("Enabled", "true"),
        ]
        assert json.loads(encoded.data) == {"Profile": {"age": 3}, "Bio": "x" * 100}

    def test_empty_data_payload(self, handler_factory):
        ping = handler_factory("Ping")
        assert encode_message(ping, {}, "data").data is None

    def test_fits_in_tags(self, token_document, handler_factory):
        assert fits_in_tags(token_document.get_handler("Transfer")) is True
        assert fits_in_tags(handler_factory("Configure", {"name": "Settings", "type": "json"})) is False
        assert fits_in_tags(handler_factory("Update", *[{"name": n} for n in "ABCD"])) is False
