"""Unit tests for chain record formatting."""

import pytest

from explorer_sync.records import format_block, format_receipt, format_transaction, strip_nulls, to_int


class TestToInt:
    """Test the to_int function."""

    @pytest.mark.parametrize("value, expected", [("0x0", 0), ("0x1a", 26), ("26", 26), (26, 26), ("0X10", 16)])
    def test_converts_quantities(self, value, expected):
        """Test hex strings, decimal strings and ints."""
        assert to_int(value) == expected

    @pytest.mark.parametrize("value", ["zz", None, True, 1.5, "0xzz"])
    def test_rejects_non_quantities(self, value):
        """Test that malformed values raise ValueError."""
        with pytest.raises(ValueError):
            to_int(value)


class TestStripNulls:
    """Test the strip_nulls function."""

    def test_drops_nested_nulls(self):
        """Test that None values are removed at every level."""
        value = {"a": None, "b": {"c": None, "d": 1}, "e": [{"f": None, "g": 2}]}

        assert strip_nulls(value) == {"b": {"d": 1}, "e": [{"g": 2}]}

    def test_keeps_falsy_values(self):
        """Test that zero, empty strings and False survive."""
        assert strip_nulls({"a": 0, "b": "", "c": False, "d": []}) == {"a": 0, "b": "", "c": False, "d": []}


class TestFormatTransaction:
    """Test the format_transaction function."""

    def test_formats_amounts_and_counters(self):
        """Test that amounts become decimal strings and counters ints."""
        tx = {
            "hash": "0xabc",
            "value": "0xde0b6b3a7640000",
            "gas": "0x5208",
            "gasPrice": "0x3b9aca00",
            "nonce": "0x2",
            "blockNumber": "0x10",
            "to": None,
            "input": "0x",
        }

        assert format_transaction(tx) == {
            "hash": "0xabc",
            "value": "1000000000000000000",
            "gas": "21000",
            "gasPrice": "1000000000",
            "nonce": 2,
            "blockNumber": 16,
            "input": "0x",
        }


class TestFormatBlock:
    """Test the format_block function."""

    def test_formats_full_transactions(self):
        """Test that embedded transactions are formatted and the block nonce stays hex."""
        block = {
            "number": "0x3",
            "timestamp": "0x64",
            "nonce": "0x0000000000000042",
            "baseFeePerGas": "0x7",
            "miner": "0x0000000000000000000000000000000000000000",
            "transactions": [{"hash": "0x1", "value": "0x0", "nonce": "0x0"}],
        }

        formatted = format_block(block)

        assert formatted["number"] == 3
        assert formatted["timestamp"] == 100
        assert formatted["nonce"] == "0x0000000000000042"
        assert formatted["baseFeePerGas"] == "7"
        assert formatted["transactions"] == [{"hash": "0x1", "value": "0", "nonce": 0}]

    def test_keeps_transaction_hashes(self):
        """Test that a block with hash-only transactions is left as is."""
        formatted = format_block({"number": "0x1", "transactions": ["0xaaa", "0xbbb"]})

        assert formatted["transactions"] == ["0xaaa", "0xbbb"]

    def test_block_without_transactions(self):
        """Test an empty block."""
        assert format_block({"number": "0x1"})["transactions"] == []


class TestFormatReceipt:
    """Test the format_receipt function."""

    def test_formats_receipt_and_logs(self):
        """Test that receipt fields and log counters are formatted."""
        receipt = {
            "transactionHash": "0x1",
            "status": "0x1",
            "gasUsed": "0x5208",
            "contractAddress": None,
            "logs": [{"logIndex": "0x0", "blockNumber": "0x3", "data": "0x"}],
        }

        assert format_receipt(receipt) == {
            "transactionHash": "0x1",
            "status": 1,
            "gasUsed": "21000",
            "logs": [{"logIndex": 0, "blockNumber": 3, "data": "0x"}],
        }

    def test_malformed_quantity_raises(self):
        """Test that a receipt with a bad quantity raises ValueError."""
        with pytest.raises(ValueError):
            format_receipt({"transactionHash": "0x1", "gasUsed": "not-a-number"})
