"""Journal record for one cached response.

A :class:`CacheEntry` is the metadata half of a cached response; the bytes
live in a separate blob file named by :attr:`CacheEntry.blob_location`.
Entries are immutable: the store never edits one in place, it removes the
old entry and writes a new one.

Journal record shape (one element of the journal's JSON array)::

    {
        "request_url": "https://api.example.com/users",
        "cache_url": "3f2b9c...e1.cache",
        "cached_at": "1767225600.123456",
        "status_code": 200,
        "expiration": "1767229200.0"
    }

Timestamps are epoch seconds written as *strings* so that no JSON number
handling can lose precision. ``expiration`` is omitted for entries that
never expire.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from swrcache.models import ensure_utc

_REQUEST_URL = "request_url"
_CACHE_URL = "cache_url"
_CACHED_AT = "cached_at"
_STATUS_CODE = "status_code"
_EXPIRATION = "expiration"


def _encode_timestamp(value: datetime) -> str:
    return repr(value.timestamp())


def _decode_timestamp(raw: Any, field_name: str) -> datetime:
    if not isinstance(raw, str):
        raise ValueError(f"{field_name} must be a string of epoch seconds, got {raw!r}")
    try:
        return datetime.fromtimestamp(float(raw), tz=timezone.utc)
    except (ValueError, OverflowError, OSError) as exc:
        raise ValueError(f"{field_name} is not a valid timestamp: {raw!r}") from exc


class CacheEntry(BaseModel):
    """Metadata for one cached response.

    Attributes:
        key: The canonical request URL. Unique within a store.
        blob_location: Opaque blob file name inside the store directory.
        status_code: HTTP status recorded when the response was cached.
        cached_at: When the entry was written (aware UTC).
        expires_at: When the entry stops being served, or ``None`` for never.
    """

    model_config = ConfigDict(frozen=True)

    key: str = Field(min_length=1)
    blob_location: str = Field(min_length=1)
    status_code: int
    cached_at: datetime
    expires_at: Optional[datetime] = None

    @field_validator("blob_location")
    @classmethod
    def _bare_file_name(cls, value: str) -> str:
        # The store deletes blobs by name; never let a record point outside it.
        if "/" in value or "\\" in value or value in (".", ".."):
            raise ValueError(f"blob_location must be a bare file name, got {value!r}")
        return value

    @field_validator("cached_at", "expires_at")
    @classmethod
    def _to_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return ensure_utc(value) if value is not None else None

    @classmethod
    def create(
        cls,
        key: str,
        blob_location: str,
        status_code: int,
        expires_at: Optional[datetime] = None,
    ) -> CacheEntry:
        """Build a new entry stamped with the current time."""
        return cls(
            key=key,
            blob_location=blob_location,
            status_code=status_code,
            cached_at=datetime.now(timezone.utc),
            expires_at=expires_at,
        )

    def is_expired(self, now: Optional[datetime] = None) -> bool:
        """Return ``True`` once ``expires_at`` lies strictly in the past."""
        if self.expires_at is None:
            return False
        current = ensure_utc(now) if now is not None else datetime.now(timezone.utc)
        return self.expires_at < current

    def to_journal(self) -> dict[str, Any]:
        """Serialise to the journal record shape."""
        record: dict[str, Any] = {
            _REQUEST_URL: self.key,
            _CACHE_URL: self.blob_location,
            _CACHED_AT: _encode_timestamp(self.cached_at),
            _STATUS_CODE: self.status_code,
        }
        if self.expires_at is not None:
            record[_EXPIRATION] = _encode_timestamp(self.expires_at)
        return record

    @classmethod
    def from_journal(cls, record: Mapping[str, Any]) -> CacheEntry:
        """Parse one journal record.

        Raises:
            ValueError: If a required field is missing or has the wrong type.
        """
        if not isinstance(record, Mapping):
            raise ValueError(f"journal record must be an object, got {type(record).__name__}")

        key = record.get(_REQUEST_URL)
        blob = record.get(_CACHE_URL)
        status = record.get(_STATUS_CODE)
        if not isinstance(key, str) or not isinstance(blob, str):
            raise ValueError("journal record is missing request_url or cache_url")
        # bool is an int subclass; a JSON true is not a status code.
        if not isinstance(status, int) or isinstance(status, bool):
            raise ValueError(f"status_code must be an integer, got {status!r}")

        expiration = record.get(_EXPIRATION)
        return cls(
            key=key,
            blob_location=blob,
            status_code=status,
            cached_at=_decode_timestamp(record.get(_CACHED_AT), _CACHED_AT),
            expires_at=_decode_timestamp(expiration, _EXPIRATION) if expiration is not None else None,
        )
