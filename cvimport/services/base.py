"""
Base interface for extraction services.

Defines the contract for schema-constrained structuring of raw CV text:
the caller sends the full text plus the fixed entity schema and gets back
either an entities object or one typed error code.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

from ..errors import (
    CVImportError,
    SchemaViolation,
    ServicePaymentRequired,
    ServiceRateLimited,
    ServiceUnavailable,
)


class ServiceErrorCode(str, Enum):
    RateLimited = "rate_limited"
    PaymentRequired = "payment_required"
    InvalidResponse = "invalid_response"
    ServiceUnavailable = "service_unavailable"


_ERRORS_BY_CODE = {
    ServiceErrorCode.RateLimited: ServiceRateLimited,
    ServiceErrorCode.PaymentRequired: ServicePaymentRequired,
    ServiceErrorCode.InvalidResponse: SchemaViolation,
    ServiceErrorCode.ServiceUnavailable: ServiceUnavailable,
}


@dataclass(frozen=True)
class ExtractionRequest:
    text: str
    schema: Dict[str, Any]


@dataclass(frozen=True)
class ExtractionResponse:
    """
    Either entities (the structured draft, not yet validated) or an error.
    """
    entities: Optional[Dict[str, Any]] = None
    error: Optional[ServiceErrorCode] = None
    detail: str = ""

    @classmethod
    def success(cls, entities: Dict[str, Any]) -> "ExtractionResponse":
        return cls(entities=entities)

    @classmethod
    def failure(cls, error: ServiceErrorCode, detail: str = "") -> "ExtractionResponse":
        return cls(error=ServiceErrorCode(error), detail=detail)

    @property
    def ok(self) -> bool:
        return self.error is None and self.entities is not None

    def to_exception(self) -> Optional[CVImportError]:
        """The typed error this response stands for, or None on success."""
        if self.ok:
            return None
        code = self.error or ServiceErrorCode.InvalidResponse
        return _ERRORS_BY_CODE[code](self.detail)


class ExtractionService(ABC):
    """
    Abstract base class for extraction services.

    Implementations turn raw CV text into an object shaped by the request
    schema. They must not invent values the text gives no evidence for;
    omitting a field is always allowed. Transport and quota problems are
    reported through ExtractionResponse.error, never retried here.
    """

    @abstractmethod
    def name(self) -> str:
        """
        Return the unique name/identifier for this service.

        Returns:
            String identifier used in the CLI (e.g., "openai")
        """
        ...

    @abstractmethod
    async def extract(self, request: ExtractionRequest) -> ExtractionResponse:
        """
        Structure the request text according to the request schema.

        Args:
            request: Full extracted text plus the fixed entity schema

        Returns:
            ExtractionResponse with entities or an error code
        """
        ...
