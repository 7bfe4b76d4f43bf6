"""Unit tests for opcode trace decoding."""

from explorer_sync.tracer import parse_trace

TARGET = "6b175474e89094c44da98b954eedeac495271d0f"


def word(value: int) -> str:
    return "0x" + format(value, "x")


def calldata_memory(selector: str) -> list:
    return [selector + "00" * 28]


class TestParseTrace:
    """Test the parse_trace function."""

    def test_empty_trace(self):
        """Test that a missing trace decodes to no steps."""
        assert parse_trace("0x1", None) == []
        assert parse_trace("0x1", {"structLogs": []}) == []

    def test_ignores_non_call_opcodes(self):
        """Test that arithmetic and storage opcodes are dropped."""
        trace = {"structLogs": [{"op": "PUSH1", "depth": 1}, {"op": "SSTORE", "depth": 1}]}

        assert parse_trace("0x1", trace) == []

    def test_decodes_call_with_value(self):
        """Test target, value and calldata of a CALL."""
        stack = [word(0), word(0), word(4), word(0), word(1000), "0x" + TARGET, word(50000)]
        trace = {"structLogs": [{"op": "CALL", "depth": 1, "stack": stack, "memory": calldata_memory("a9059cbb")}]}

        assert parse_trace("0x1", trace) == [
            {"op": "CALL", "depth": 1, "address": "0x" + TARGET, "value": "1000", "input": "0xa9059cbb"}
        ]

    def test_decodes_staticcall_without_value(self):
        """Test that STATICCALL reads its arguments without a value word."""
        stack = [word(0), word(0), word(4), word(0), "0x" + TARGET, word(50000)]
        trace = {
            "structLogs": [{"op": "STATICCALL", "depth": 2, "stack": stack, "memory": calldata_memory("70a08231")}]
        }

        assert parse_trace("0x1", trace) == [
            {"op": "STATICCALL", "depth": 2, "address": "0x" + TARGET, "input": "0x70a08231"}
        ]

    def test_call_without_memory_has_no_input(self):
        """Test a call step whose memory was not captured."""
        stack = [word(0), word(0), word(0), word(0), "0x" + TARGET, word(50000)]
        trace = {"structLogs": [{"op": "DELEGATECALL", "depth": 1, "stack": stack}]}

        [step] = parse_trace("0x1", trace)
        assert "input" not in step
        assert step["address"] == "0x" + TARGET

    def test_short_stack_drops_unknown_fields(self):
        """Test that a truncated stack yields only what can be read."""
        trace = {"structLogs": [{"op": "CALL", "depth": 1, "stack": [word(50000)]}]}

        assert parse_trace("0x1", trace) == [{"op": "CALL", "depth": 1}]

    def test_records_creates(self):
        """Test that CREATE and CREATE2 are kept as steps."""
        trace = {"structLogs": [{"op": "CREATE", "depth": 1}, {"op": "CREATE2", "depth": 2}]}

        assert parse_trace("0x1", trace) == [{"op": "CREATE", "depth": 1}, {"op": "CREATE2", "depth": 2}]
