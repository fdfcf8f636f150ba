"""Error code registry and helpers for consistent API responses."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, NoReturn, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ErrorCodeSpec:
    code: str
    message: str
    hint: str
    http_status: int


class ErrorRegistry:
    def __init__(self) -> None:
        self._codes: Dict[str, ErrorCodeSpec] = {}

    def register(self, spec: ErrorCodeSpec) -> None:
        if spec.code in self._codes:
            raise ValueError(f"Error code {spec.code} already registered")
        self._codes[spec.code] = spec

    def get(self, code: str) -> ErrorCodeSpec:
        if code not in self._codes:
            raise KeyError(f"Unknown error code: {code}")
        return self._codes[code]

    def to_dict(self) -> Dict[str, ErrorCodeSpec]:
        return dict(self._codes)


ERRORS = ErrorRegistry()


def register_default_errors() -> None:
    ERRORS.register(
        ErrorCodeSpec(
            code="BAD_REQUEST",
            message="Invalid request",
            hint="Check the multipart fields and query parameters",
            http_status=status.HTTP_400_BAD_REQUEST,
        )
    )
    ERRORS.register(
        ErrorCodeSpec(
            code="UNSUPPORTED_MEDIA_TYPE",
            message="Unsupported media type",
            hint="Supported types: MP3, WAV, M4A, MP4, WebM, MKV",
            http_status=status.HTTP_415_UNSUPPORTED_MEDIA_TYPE,
        )
    )
    ERRORS.register(
        ErrorCodeSpec(
            code="FILE_TOO_LARGE",
            message="Uploaded file exceeds the size limit",
            hint="Upload a file smaller than 2 GiB",
            http_status=status.HTTP_413_REQUEST_ENTITY_TOO_LARGE,
        )
    )
    ERRORS.register(
        ErrorCodeSpec(
            code="PROCESSING_ERROR",
            message="Error processing media",
            hint="Verify that the input file is a valid media file",
            http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    )
    ERRORS.register(
        ErrorCodeSpec(
            code="SERVER_ERROR",
            message="Internal Server Error",
            hint="Contact the system administrator",
            http_status=status.HTTP_500_INTERNAL_SERVER_ERROR,
        )
    )


register_default_errors()


class ServiceError(Exception):
    """Request failure carrying a registered error code."""

    def __init__(
        self,
        code: str,
        *,
        detail: Optional[str] = None,
        hint: Optional[str] = None,
        logs_snippet: Optional[str] = None,
    ) -> None:
        self.spec = ERRORS.get(code)
        self.detail = detail or self.spec.message
        self.hint = hint or self.spec.hint
        self.logs_snippet = logs_snippet
        super().__init__(self.detail)

    @property
    def code(self) -> str:
        return self.spec.code

    @property
    def status_code(self) -> int:
        return self.spec.http_status

    def to_payload(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "error": self.detail,
            "hint": self.hint,
            "code": self.spec.code,
        }
        if self.logs_snippet:
            payload["logsSnippet"] = self.logs_snippet
        return payload


def raise_error(
    code: str,
    *,
    detail: Optional[str] = None,
    hint: Optional[str] = None,
    logs_snippet: Optional[str] = None,
) -> NoReturn:
    raise ServiceError(code, detail=detail, hint=hint, logs_snippet=logs_snippet)


def _validation_detail(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "Invalid request parameters: " + "; ".join(parts)


def install_error_handlers(app: FastAPI) -> None:
    """Render every failure as ``{error, hint, code, logsSnippet?}``."""

    @app.exception_handler(ServiceError)
    async def _service_error(request: Request, exc: ServiceError) -> JSONResponse:
        return JSONResponse(status_code=exc.status_code, content=exc.to_payload())

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        error = ServiceError("BAD_REQUEST", detail=_validation_detail(exc))
        return JSONResponse(status_code=error.status_code, content=error.to_payload())

    @app.exception_handler(Exception)
    async def _unhandled_error(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        error = ServiceError("SERVER_ERROR", detail=str(exc) or None)
        return JSONResponse(status_code=error.status_code, content=error.to_payload())
