"""
Link record for pk-shorts.

A Link is the value stored under its identifier in the bucket. It is a
frozen pydantic model; the only mutation the system performs (one more
click) produces a new instance via `with_click()`.

Persisted layout:
    JSON object with the keys `short`, `original`, `created_at`, `clicks`.
    The same keys are used by the HTTP list endpoint.
"""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import SerializationError


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Link(BaseModel):
    """A short identifier and the destination it redirects to."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    identifier: str = Field(alias="short", min_length=1)
    destination: str = Field(alias="original")
    created_at: datetime = Field(default_factory=utcnow)
    click_count: int = Field(default=0, ge=0, alias="clicks")

    def with_click(self) -> "Link":
        """Return a copy with the click counter advanced by one."""
        return self.model_copy(update={"click_count": self.click_count + 1})

    def to_bytes(self) -> bytes:
        return self.model_dump_json(by_alias=True).encode("utf-8")

    @classmethod
    def from_bytes(cls, data: bytes) -> "Link":
        """
        Decode a stored record.

        Raises:
            SerializationError: If the bytes are not a valid record.
        """
        try:
            return cls.model_validate_json(data)
        except ValidationError as exc:
            raise SerializationError(f"corrupt link record: {exc.error_count()} error(s)") from exc
