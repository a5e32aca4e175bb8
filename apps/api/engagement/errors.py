from __future__ import annotations

from typing import Any

from fastapi import HTTPException, status


class EsignError(Exception):
    """Base error for the e-signature pipeline; carries the HTTP status it maps to."""

    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR

    def __init__(self, message: str, **detail: Any) -> None:
        self.message = message
        self.detail = detail
        super().__init__(message)

    def to_payload(self) -> dict[str, Any]:
        return {"error": self.message, **self.detail}


class AuthenticationError(EsignError):
    status_code = status.HTTP_401_UNAUTHORIZED


class AuthorizationError(EsignError):
    status_code = status.HTTP_403_FORBIDDEN


class ValidationError(EsignError):
    status_code = status.HTTP_400_BAD_REQUEST


class MissingProviderDocumentError(ValidationError):
    """Raised when a letter has no provider document id, so there is nothing to download."""

    def __init__(self, letter_id: Any, esign_status: str | None = None) -> None:
        super().__init__(
            "No BoldSign document linked to this letter",
            letter_id=str(letter_id),
            esign_status=esign_status,
        )


class DocumentNotReadyError(ValidationError):
    def __init__(self, letter_id: Any, esign_status: str | None) -> None:
        super().__init__(
            "Signed document is not available yet",
            letter_id=str(letter_id),
            esign_status=esign_status,
        )


class PayloadTooLargeError(ValidationError):
    status_code = status.HTTP_413_REQUEST_ENTITY_TOO_LARGE


class NotFoundError(EsignError):
    status_code = status.HTTP_404_NOT_FOUND


class UpstreamError(EsignError):
    status_code = status.HTTP_502_BAD_GATEWAY


class ProviderError(UpstreamError):
    """The e-signature provider rejected or failed a call."""

    def __init__(self, message: str, provider_status: int | None = None, **detail: Any) -> None:
        self.provider_status = provider_status
        super().__init__(message, boldsignStatus=provider_status, **detail)


class ArtifactStoreError(UpstreamError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


class NotificationError(UpstreamError):
    pass


class ConfigurationError(EsignError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


def to_http_exception(exc: EsignError) -> HTTPException:
    return HTTPException(status_code=exc.status_code, detail=exc.to_payload())
