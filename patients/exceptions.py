"""
Error types and the unified API exception handler.

Every failure that reaches the HTTP boundary is rendered with the same
envelope: ``{success: false, message, code, timestamp}``, plus
``details`` for validation failures.
"""
from __future__ import annotations

import logging
import traceback

from django.conf import settings
from django.db import DatabaseError, IntegrityError, OperationalError
from django.utils import timezone
from rest_framework import status
from rest_framework.exceptions import APIException
from rest_framework.response import Response
from rest_framework.views import exception_handler as drf_exception_handler

logger = logging.getLogger(__name__)


class ApiError(APIException):
    """Base class for errors carrying an HTTP status and a machine-readable code."""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_detail = 'Something went wrong'
    default_code = 'INTERNAL_SERVER_ERROR'

    def __init__(self, message=None, code=None, details=None):
        super().__init__(detail=message or self.default_detail, code=code or self.default_code)
        self.message = str(message or self.default_detail)
        self.code = code or self.default_code
        self.details = details


class ValidationFailed(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Validation failed'
    default_code = 'VALIDATION_ERROR'


class BadRequest(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Bad Request'
    default_code = 'BAD_REQUEST'


class BusinessRuleError(ApiError):
    status_code = status.HTTP_400_BAD_REQUEST
    default_detail = 'Business rule violated'
    default_code = 'BUSINESS_RULE_VIOLATION'


class DuplicateEmailError(ApiError):
    status_code = status.HTTP_409_CONFLICT
    default_detail = 'Email already registered'
    default_code = 'EMAIL_ALREADY_EXISTS'


class PatientNotFound(ApiError):
    status_code = status.HTTP_404_NOT_FOUND
    default_detail = 'Patient not found'
    default_code = 'NOT_FOUND'


# DRF's own exceptions keep their status; only the code is normalised
DRF_CODES = {
    400: 'BAD_REQUEST',
    401: 'UNAUTHORIZED',
    403: 'FORBIDDEN',
    404: 'NOT_FOUND',
    405: 'METHOD_NOT_ALLOWED',
    406: 'NOT_ACCEPTABLE',
    415: 'UNSUPPORTED_MEDIA_TYPE',
    429: 'TOO_MANY_REQUESTS',
}


def error_payload(message, code, details=None) -> dict:
    payload = {
        'success': False,
        'message': message,
        'code': code,
        'timestamp': timezone.now().isoformat(),
    }
    if details is not None:
        payload['details'] = details
    return payload


def database_error(exc):
    if isinstance(exc, IntegrityError):
        if 'check' in str(exc).lower():
            return status.HTTP_400_BAD_REQUEST, 'Invalid data provided', 'CHECK_CONSTRAINT_VIOLATION'
        return status.HTTP_409_CONFLICT, 'Duplicate entry', 'DUPLICATE_ENTRY'
    if isinstance(exc, OperationalError):
        return status.HTTP_503_SERVICE_UNAVAILABLE, 'Database connection error', 'DATABASE_CONNECTION_ERROR'
    return status.HTTP_500_INTERNAL_SERVER_ERROR, 'Database operation failed', 'DATABASE_ERROR'


def _request_label(context) -> str:
    request = context.get('request') if context else None
    if request is None:
        return '-'
    return f"{request.method} {request.get_full_path()}"


def api_exception_handler(exc, context):
    if isinstance(exc, ApiError):
        if exc.status_code >= 500:
            logger.error('%s failed: %s', _request_label(context), exc.message)
        return Response(error_payload(exc.message, exc.code, exc.details), status=exc.status_code)

    resp = drf_exception_handler(exc, context)
    if resp is not None:
        detail = resp.data.get('detail') if isinstance(resp.data, dict) else resp.data
        message = str(detail) if detail is not None else str(resp.data)
        code = DRF_CODES.get(resp.status_code, 'API_ERROR')
        return Response(error_payload(message, code), status=resp.status_code, headers=_passthrough_headers(resp))

    if isinstance(exc, DatabaseError):
        status_code, message, code = database_error(exc)
        logger.error('%s database error: %s', _request_label(context), exc, exc_info=exc)
        return Response(error_payload(message, code), status=status_code)

    logger.error('%s unhandled error: %s', _request_label(context), exc, exc_info=exc)
    payload = error_payload('Something went wrong', 'INTERNAL_SERVER_ERROR')
    if settings.DEBUG:
        payload['stack'] = ''.join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return Response(payload, status=status.HTTP_500_INTERNAL_SERVER_ERROR)


def _passthrough_headers(resp) -> dict:
    headers = {}
    for name in ('WWW-Authenticate', 'Retry-After', 'Allow'):
        if resp.has_header(name):
            headers[name] = resp[name]
    return headers
