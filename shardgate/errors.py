"""
shardgate errors.

Lightweight, typed exception hierarchy with structured metadata suitable for
API layers or internal callers.

Usage:

    from shardgate.errors import DataIntegrity, InvalidInput

    raise DataIntegrity("fork in chain", data={"group_id": gid, "prev_ref": ref})

All errors expose:
- .code   : stable machine-readable code (snake_case)
- .status : suggested HTTP status (int)
- .data   : optional structured payload (dict-like)
- .to_problem() : RFC 7807-compatible dict for JSON responses

Taxonomy
--------
- InvalidInput          caller supplied a structurally invalid argument; never retried
- DataIntegrity         discovered records do not form exactly one valid chain
- RecordFormatError     a record carried the shard schema tag but a malformed body
- ExternalServiceError  persist/discover collaborator failed (opaque, propagated)
- NotFound              no key material available for the requested operation
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class GatewayError(Exception):
    """
    Base class for shardgate errors.

    Subclasses should set `default_code` and `default_status`.
    """
    default_code = "gateway_error"
    default_status = 400

    def __init__(
        self,
        message: str = "",
        *,
        code: Optional[str] = None,
        status: Optional[int] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code or self.default_code
        self.status = int(status if status is not None else self.default_status)
        self.data: Dict[str, Any] = dict(data) if data else {}

    def __str__(self) -> str:  # pragma: no cover - trivial
        if self.message:
            return f"{self.code}: {self.message}"
        return self.code

    def to_problem(self) -> Dict[str, Any]:
        """
        Render as an RFC 7807 "problem detail" object.
        """
        return {
            "type": f"urn:shardgate:{self.code}",
            "title": self.code.replace("_", " ").title(),
            "status": self.status,
            "detail": self.message or None,
            "data": self.data or None,
        }

    @classmethod
    def from_exc(
        cls,
        exc: BaseException,
        *,
        code: Optional[str] = None,
        status: Optional[int] = None,
        data: Optional[Mapping[str, Any]] = None,
    ) -> "GatewayError":
        """
        Wrap an arbitrary exception into a GatewayError with a best-effort message.
        """
        msg = f"{exc.__class__.__name__}: {exc}"
        return cls(msg, code=code, status=status, data=data)


class InvalidInput(GatewayError, ValueError):
    """
    Structurally invalid argument (non-positive shard size, empty seed, byte out of range).
    """
    default_code = "invalid_input"
    default_status = 400


class DataIntegrity(GatewayError):
    """
    The discovered record set does not form a valid single chain
    (fork, missing or ambiguous head, broken link, colliding self refs).
    """
    default_code = "data_integrity"
    default_status = 422  # Unprocessable Entity


class RecordFormatError(DataIntegrity):
    """
    A metadata blob claimed the shard schema but its fields could not be decoded.
    """
    default_code = "record_format"
    default_status = 422


class ExternalServiceError(GatewayError):
    """
    A persist/discover collaborator failed. Retry policy lives with the caller.
    """
    default_code = "external_service"
    default_status = 502


class NotFound(GatewayError):
    """
    No public key (or other required resource) is available.
    """
    default_code = "not_found"
    default_status = 404


__all__ = [
    "GatewayError",
    "InvalidInput",
    "DataIntegrity",
    "RecordFormatError",
    "ExternalServiceError",
    "NotFound",
]
