"""Helpers producing the uniform JSON envelope used by every endpoint."""
from __future__ import annotations

from django.utils import timezone
from rest_framework import status
from rest_framework.response import Response


def envelope(data=None, message='Success', *, success=True, **extra) -> dict:
    payload = {'success': success, 'message': message, 'data': data}
    payload.update(extra)
    payload['timestamp'] = timezone.now().isoformat()
    return payload


def success(data=None, message='Success', status_code=status.HTTP_200_OK) -> Response:
    return Response(envelope(data, message), status=status_code)


def created(data=None, message='Resource created successfully') -> Response:
    return success(data, message, status.HTTP_201_CREATED)


def paginated(records, pagination: dict, message='Data retrieved successfully') -> Response:
    return Response(envelope(records, message, pagination=pagination))


def failure(message, code, status_code=status.HTTP_400_BAD_REQUEST, data=None) -> Response:
    """Error envelope that still carries a ``data`` payload (e.g. bulk reports)."""
    return Response(envelope(data, message, success=False, code=code), status=status_code)
