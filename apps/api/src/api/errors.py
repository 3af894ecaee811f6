from __future__ import annotations

from dataclasses import dataclass

from route_safety.errors import IndexQueryError, MalformedInputError, ProviderError, ScoringTimeoutError


@dataclass
class ApiError(Exception):
    code: str
    message: str
    status_code: int


def not_found(resource: str) -> ApiError:
    return ApiError("NOT_FOUND", f"{resource} not found", 404)


def from_provider_error(exc: ProviderError) -> ApiError:
    if exc.code == "ROUTE_NOT_FOUND":
        return ApiError(exc.code, f"directions: {exc.message}", 400)
    if exc.code == "PROVIDER_TIMEOUT":
        return ApiError(exc.code, "directions: provider timeout", 504)
    return ApiError(exc.code, "directions: provider request failed", 502)


def from_scoring_error(exc: Exception) -> ApiError:
    if isinstance(exc, MalformedInputError):
        return ApiError("MALFORMED_POLYLINE", f"scoring: {exc}", 422)
    if isinstance(exc, IndexQueryError):
        return ApiError("REPORT_INDEX_UNAVAILABLE", "scoring: report index unavailable", 503)
    if isinstance(exc, ScoringTimeoutError):
        return ApiError("SCORING_TIMEOUT", "scoring: deadline exceeded", 504)
    return ApiError("SCORING_FAILURE", "scoring: route scoring failed", 500)
