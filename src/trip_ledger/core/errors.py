from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any

from fastapi import status


class LedgerError(Exception):
    """Base class for domain errors; the API layer maps them to responses."""

    status_code: int = status.HTTP_400_BAD_REQUEST

    def __init__(self, detail: str) -> None:
        super().__init__(detail)
        self.detail = detail

    def to_payload(self) -> dict[str, Any]:
        return {"detail": self.detail}


class UnknownCurrency(LedgerError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, currency: object) -> None:
        super().__init__(f"Unknown currency: {currency!r}")
        self.currency = currency


class InvalidValue(LedgerError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY


class RatesLocked(LedgerError):
    status_code = status.HTTP_409_CONFLICT


class EmptyCatalog(LedgerError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self) -> None:
        super().__init__("Category catalog is empty")


class TripNotFound(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND

    def __init__(self, trip_id: object) -> None:
        super().__init__(f"Trip not found: {trip_id}")
        self.trip_id = trip_id


@dataclass(frozen=True)
class ItemError:
    index: int
    field: str
    reason: str


class BatchValidationError(LedgerError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY

    def __init__(self, errors: list[ItemError]) -> None:
        first = errors[0]
        super().__init__(
            f"Validation failed for item {first.index} ({first.field}): {first.reason}"
        )
        self.errors = errors

    @property
    def index(self) -> int:
        return self.errors[0].index

    @property
    def reason(self) -> str:
        return self.errors[0].reason

    def to_payload(self) -> dict[str, Any]:
        return {"detail": "Validation failed", "errors": [asdict(e) for e in self.errors]}


class PersistenceFailed(LedgerError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class InvalidSessionState(LedgerError):
    status_code = status.HTTP_409_CONFLICT


class SessionNotFound(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND


class ItemNotFound(LedgerError):
    status_code = status.HTTP_404_NOT_FOUND


class UnsupportedUpload(LedgerError):
    status_code = status.HTTP_415_UNSUPPORTED_MEDIA_TYPE
