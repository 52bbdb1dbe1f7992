"""Tests for the record codec."""

import json
import pytest
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from pocketledger.codec import SCHEMA_VERSION, RecordCodec
from pocketledger.models import (
    AttachmentType,
    Category,
    Note,
    NoteAttachment,
    Transaction,
    TransactionType,
)
from pocketledger.services.storage import DecodeFailedError


def _transaction(**kwargs) -> Transaction:
    values = {
        "amount": Decimal("25.99"),
        "type": TransactionType.EXPENSE,
        "merchant": "Joe's Pizza",
        "account_id": uuid4(),
        "date": datetime(2024, 3, 5, 12, 30, 15, 123456),
        "tags": {"lunch"},
    }
    values.update(kwargs)
    return Transaction(**values)


class TestRecordCodec:
    """Tests for single records and collections."""

    def test_decode_restores_equal_record(self):
        """Test that a transaction survives encode/decode unchanged."""
        codec = RecordCodec(Transaction)
        original = _transaction()
        assert codec.decode(codec.encode(original)) == original

    def test_decimals_written_as_strings(self):
        """Test that money never passes through a float."""
        codec = RecordCodec(Transaction)
        payload = json.loads(codec.encode(_transaction()))
        assert payload["amount"] == "25.99"

    def test_collection_envelope(self):
        """Test the versioned collection format."""
        codec = RecordCodec(Category)
        records = [Category(name="Food"), Category(name="Travel")]
        payload = json.loads(codec.encode_many(records))
        assert payload["schema_version"] == SCHEMA_VERSION
        assert [r["name"] for r in payload["records"]] == ["Food", "Travel"]

    def test_collection_preserves_order(self):
        """Test that decode_many keeps insertion order."""
        codec = RecordCodec(Category)
        records = [Category(name=name) for name in ("C", "A", "B")]
        assert codec.decode_many(codec.encode_many(records)) == records

    def test_encoding_is_deterministic(self):
        """Test that the same collection always gives the same bytes."""
        codec = RecordCodec(Transaction)
        record = _transaction(tags={"b", "a", "c"})
        assert codec.encode_many([record]) == codec.encode_many([record])

    def test_binary_payload_round_trip(self):
        """Test that attachment bytes are kept exactly."""
        codec = RecordCodec(Note)
        note = Note(
            title="Receipt",
            attachments=[NoteAttachment(
                type=AttachmentType.IMAGE,
                data=b"\x89PNG\x00\xff",
                filename="receipt.png",
                media_type="image/png",
            )],
        )
        restored = codec.decode(codec.encode(note))
        assert restored.attachments[0].data == b"\x89PNG\x00\xff"
        assert restored == note


class TestDecodeFailures:
    """Tests for malformed input."""

    @pytest.mark.parametrize("data", [
        b"",
        b"not json",
        b'{"schema_version": 1}',
        b'{"schema_version": 1, "records": [{"name": ""}]}',
        b"\xff\xfe",
    ])
    def test_malformed_collection(self, data):
        """Test that malformed bytes raise DecodeFailedError."""
        with pytest.raises(DecodeFailedError):
            RecordCodec(Category).decode_many(data)

    def test_unknown_schema_version(self):
        """Test that a future format is refused rather than misread."""
        data = json.dumps({"schema_version": SCHEMA_VERSION + 1, "records": []}).encode()
        with pytest.raises(DecodeFailedError):
            RecordCodec(Category).decode_many(data)

    def test_malformed_single_record(self):
        """Test single-record decode failure."""
        with pytest.raises(DecodeFailedError):
            RecordCodec(Transaction).decode(b'{"amount": "abc"}')
