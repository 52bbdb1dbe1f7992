"""
Record Codec

Converts ledger records to and from bytes. One codec instance serves one
record type; a whole entity family is encoded as a single envelope:

    {"schema_version": 1, "records": [ ...record JSON... ]}

Pydantic does the heavy lifting: decimals are written as strings, datetimes
as ISO 8601, UUIDs canonically, binary payloads as base64, colors as hex.
Malformed bytes of any kind surface as DecodeFailedError.
"""

from typing import Generic, Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from pocketledger.services.storage.interface import DecodeFailedError


SCHEMA_VERSION = 1

RecordT = TypeVar("RecordT", bound=BaseModel)


class RecordEnvelope(BaseModel, Generic[RecordT]):
    """Versioned wrapper around a family's records."""

    schema_version: int
    records: list[RecordT]


class RecordCodec(Generic[RecordT]):
    """
    JSON codec for one record type.

    Encoding is deterministic for a given collection order.
    """

    def __init__(self, record_type: type[RecordT]):
        self._record_type = record_type
        self._envelope_type = RecordEnvelope[record_type]

    @property
    def record_type(self) -> type[RecordT]:
        return self._record_type

    def encode(self, record: RecordT) -> bytes:
        """Encode a single record."""
        return record.model_dump_json().encode("utf-8")

    def decode(self, data: bytes) -> RecordT:
        """
        Decode a single record.

        Raises:
            DecodeFailedError: If the bytes are not a valid record
        """
        try:
            return self._record_type.model_validate_json(data)
        except (ValidationError, ValueError) as e:
            raise DecodeFailedError(
                f"Malformed {self._record_type.__name__} payload: {e}"
            ) from e

    def encode_many(self, records: Iterable[RecordT]) -> bytes:
        """Encode a whole collection, preserving order."""
        envelope = self._envelope_type(
            schema_version=SCHEMA_VERSION,
            records=list(records),
        )
        return envelope.model_dump_json().encode("utf-8")

    def decode_many(self, data: bytes) -> list[RecordT]:
        """
        Decode a collection written by `encode_many`.

        Raises:
            DecodeFailedError: On malformed bytes or an unknown schema version
        """
        try:
            envelope = self._envelope_type.model_validate_json(data)
        except (ValidationError, ValueError) as e:
            raise DecodeFailedError(
                f"Malformed {self._record_type.__name__} collection: {e}"
            ) from e

        if envelope.schema_version != SCHEMA_VERSION:
            raise DecodeFailedError(
                f"Unsupported schema version {envelope.schema_version} "
                f"for {self._record_type.__name__}"
            )
        return envelope.records
