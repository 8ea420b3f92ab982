"""
test_core_types.py - Unit tests for core data types

Tests:
- Move validation and delegation
- Unit precision and truncation
- Amount conversion helpers
- Intent id canonicalization
- PendingTransaction / Transaction construction
"""

import pytest
from datetime import datetime
from decimal import Decimal

from blochpool import (
    Move, PendingTransaction, Transaction, TransactionOrigin, OriginType,
    Unit, token, stablecoin, to_decimal, quantize_amount, AmountOutOfRange, LedgerError,
    UNIT_TYPE_TOKEN, UNIT_TYPE_STABLECOIN,
)


ORIGIN = TransactionOrigin(OriginType.USER_ACTION, "alice", "PURCHASE")


class TestMove:
    """Tests for Move validation."""

    def test_valid_move(self):
        """A positive Decimal move between distinct wallets is accepted."""
        move = Move(Decimal("10"), "USDT", "alice", "bob", "c1")
        assert move.quantity == Decimal("10")
        assert not move.delegated

    def test_zero_quantity_rejected(self):
        """Zero moves are rejected."""
        with pytest.raises(ValueError, match="positive"):
            Move(Decimal("0"), "USDT", "alice", "bob", "c1")

    def test_negative_quantity_rejected(self):
        """Negative moves are rejected; direction is expressed by source/dest."""
        with pytest.raises(ValueError, match="positive"):
            Move(Decimal("-5"), "USDT", "alice", "bob", "c1")

    def test_float_quantity_rejected(self):
        """Quantities must already be Decimal."""
        with pytest.raises(ValueError, match="Decimal"):
            Move(10.0, "USDT", "alice", "bob", "c1")

    def test_nan_rejected(self):
        with pytest.raises(ValueError, match="finite"):
            Move(Decimal("NaN"), "USDT", "alice", "bob", "c1")

    def test_self_transfer_rejected(self):
        """Source and dest must differ."""
        with pytest.raises(ValueError, match="different"):
            Move(Decimal("1"), "USDT", "alice", "alice", "c1")

    def test_empty_fields_rejected(self):
        with pytest.raises(ValueError):
            Move(Decimal("1"), "", "alice", "bob", "c1")
        with pytest.raises(ValueError):
            Move(Decimal("1"), "USDT", " ", "bob", "c1")
        with pytest.raises(ValueError):
            Move(Decimal("1"), "USDT", "alice", "bob", "")

    def test_delegated_when_spender_differs(self):
        """A spender other than the source makes the move delegated."""
        move = Move(Decimal("1"), "USDT", "alice", "pool", "c1", spender="pool")
        assert move.delegated
        assert "via pool" in repr(move)

    def test_spender_equal_to_source_not_delegated(self):
        move = Move(Decimal("1"), "USDT", "alice", "pool", "c1", spender="alice")
        assert not move.delegated


class TestUnit:
    """Tests for Unit precision handling."""

    def test_token_factory(self):
        unit = token("BLOCH", "Bloch Token")
        assert unit.decimal_places == 18
        assert unit.unit_type == UNIT_TYPE_TOKEN
        assert unit.min_balance == Decimal("0")

    def test_stablecoin_factory(self):
        unit = stablecoin("USDT", "Tether USD")
        assert unit.decimal_places == 6
        assert unit.unit_type == UNIT_TYPE_STABLECOIN

    def test_negative_decimals_rejected(self):
        with pytest.raises(ValueError):
            token("BAD", "Bad", decimal_places=-1)

    def test_quantum(self):
        assert stablecoin("USDT", "Tether USD").quantum == Decimal("0.000001")

    def test_round_truncates(self):
        """Rounding drops fractional base units instead of rounding up."""
        unit = stablecoin("USDT", "Tether USD")
        assert unit.round(Decimal("1.9999999")) == Decimal("1.999999")
        assert unit.round(Decimal("-1.9999999")) == Decimal("-1.999999")

    def test_unit_is_frozen(self):
        unit = stablecoin("USDT", "Tether USD")
        with pytest.raises(Exception):
            unit.decimal_places = 2


class TestAmountHelpers:
    """Tests for to_decimal and quantize_amount."""

    @pytest.mark.parametrize("value,expected", [
        (10, Decimal("10")),
        ("12.5", Decimal("12.5")),
        (0.1, Decimal("0.1")),
        (Decimal("7"), Decimal("7")),
    ])
    def test_to_decimal(self, value, expected):
        assert to_decimal(value) == expected

    def test_to_decimal_rejects_bool(self):
        with pytest.raises(ValueError):
            to_decimal(True)

    def test_to_decimal_rejects_garbage(self):
        with pytest.raises(ValueError, match="numeric"):
            to_decimal("ten")

    def test_to_decimal_rejects_infinity(self):
        with pytest.raises(ValueError, match="finite"):
            to_decimal(Decimal("Infinity"))

    def test_quantize_amount_truncates(self):
        assert quantize_amount("1.23456789", 6) == Decimal("1.234567")
        assert quantize_amount(5, 2) == Decimal("5.00")

    @pytest.mark.parametrize("value,places", [
        (Decimal("1e40"), 18),
        (Decimal("1e50"), 6),
        ("9" * 45, 6),
    ])
    def test_quantize_amount_out_of_range(self, value, places):
        """More integer digits than the 50-digit context leaves room for."""
        with pytest.raises(AmountOutOfRange):
            quantize_amount(value, places)

    def test_out_of_range_is_ledger_and_value_error(self):
        assert issubclass(AmountOutOfRange, LedgerError)
        assert issubclass(AmountOutOfRange, ValueError)

    def test_largest_in_range_amount(self):
        value = Decimal("9" * 32)
        assert quantize_amount(value, 18) == value


class TestIntentId:
    """Tests for content-addressed transaction identity."""

    def test_same_content_same_intent(self):
        moves = (Move(Decimal("1"), "USDT", "alice", "bob", "c1"),)
        t = datetime(2025, 1, 1)
        a = PendingTransaction(moves, ORIGIN, t)
        b = PendingTransaction(moves, ORIGIN, t)
        assert a.intent_id == b.intent_id

    def test_decimal_representation_ignored(self):
        """1.0 and 1.00 describe the same intent."""
        t = datetime(2025, 1, 1)
        a = PendingTransaction((Move(Decimal("1.0"), "USDT", "alice", "bob", "c1"),), ORIGIN, t)
        b = PendingTransaction((Move(Decimal("1.00"), "USDT", "alice", "bob", "c1"),), ORIGIN, t)
        assert a.intent_id == b.intent_id

    def test_move_order_ignored(self):
        t = datetime(2025, 1, 1)
        m1 = Move(Decimal("1"), "USDT", "alice", "bob", "c1")
        m2 = Move(Decimal("2"), "BLOCH", "pool", "alice", "c2")
        assert (PendingTransaction((m1, m2), ORIGIN, t).intent_id
                == PendingTransaction((m2, m1), ORIGIN, t).intent_id)

    def test_spender_changes_intent(self):
        t = datetime(2025, 1, 1)
        a = PendingTransaction((Move(Decimal("1"), "USDT", "alice", "bob", "c1"),), ORIGIN, t)
        b = PendingTransaction((Move(Decimal("1"), "USDT", "alice", "bob", "c1", spender="bob"),), ORIGIN, t)
        assert a.intent_id != b.intent_id

    def test_origin_changes_intent(self):
        t = datetime(2025, 1, 1)
        moves = (Move(Decimal("1"), "USDT", "alice", "bob", "c1"),)
        other = TransactionOrigin(OriginType.ADMIN, "owner", "WITHDRAW")
        assert PendingTransaction(moves, ORIGIN, t).intent_id != PendingTransaction(moves, other, t).intent_id


class TestTransaction:
    """Tests for executed transaction records."""

    def test_contract_ids_populated(self):
        t = datetime(2025, 1, 1)
        moves = (
            Move(Decimal("1"), "USDT", "alice", "bob", "c1"),
            Move(Decimal("2"), "USDT", "bob", "alice", "c2"),
        )
        tx = Transaction(moves, ORIGIN, t, "abc", "exec:x:0", "x", t, 0)
        assert tx.contract_ids == frozenset({"c1", "c2"})

    def test_empty_transaction_rejected(self):
        t = datetime(2025, 1, 1)
        with pytest.raises(ValueError):
            Transaction((), ORIGIN, t, "abc", "exec:x:0", "x", t, 0)

    def test_origin_repr(self):
        assert repr(ORIGIN) == "Origin(user_action:alice, event=PURCHASE)"
