"""
Patient management views.

These endpoints expose the patient service under ``/api/patients``:
CRUD, list with search/sort/age filters, search, age-range listing,
statistics, export and bulk creation.  Request shapes are validated by
the serializers in :mod:`patients.serializers.patient`; every response
uses the envelope from :mod:`patients.responses`.
"""
from __future__ import annotations

import logging
import uuid

from django.db import DatabaseError
from django.http import HttpResponse
from rest_framework.decorators import api_view, permission_classes
from rest_framework.permissions import AllowAny

from patients import responses
from patients.exceptions import ApiError, BadRequest, PatientNotFound, ValidationFailed, database_error
from patients.serializers.patient import (
    AgeRangeQuerySerializer,
    BulkCreateSerializer,
    ExportQuerySerializer,
    PatientCreateSerializer,
    PatientListQuerySerializer,
    PatientUpdateSerializer,
    SearchQuerySerializer,
    flatten_errors,
)
from patients.services import export
from patients.services.patients import PatientService

logger = logging.getLogger(__name__)


def get_patient_service() -> PatientService:
    return PatientService()


def _validate(serializer_class, data):
    serializer = serializer_class(data=data)
    if not serializer.is_valid():
        raise ValidationFailed(details=flatten_errors(serializer.errors, data))
    return serializer


def _parse_id(patient_id: str) -> uuid.UUID:
    try:
        return uuid.UUID(str(patient_id))
    except ValueError:
        raise ValidationFailed(details=[{'field': 'id', 'message': 'Please provide a valid ID', 'value': patient_id}])


@api_view(['GET', 'POST'])
@permission_classes([AllowAny])
def patients_collection(request):
    if request.method == 'POST':
        return create_patient(request)
    return list_patients(request)


def list_patients(request):
    """List patients, paginated and filtered.

    Query params: ``page``, ``limit`` (1..100), ``search``, ``sortBy``,
    ``sortOrder``, ``minAge``, ``maxAge``.
    """
    logger.info('GET /api/patients - listing patients')
    q = _validate(PatientListQuerySerializer, request.query_params)
    result = get_patient_service().list_patients(q.to_options())
    return responses.paginated(result['patients'], result['pagination'], 'Patients retrieved successfully')


def create_patient(request):
    logger.info('POST /api/patients - creating patient')
    data = _validate(PatientCreateSerializer, request.data)
    patient = get_patient_service().create_patient(data.validated_data)
    return responses.created(patient, 'Patient created successfully')


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([AllowAny])
def patient_detail(request, patient_id):
    pid = _parse_id(patient_id)
    service = get_patient_service()

    if request.method == 'GET':
        patient = service.get_patient(pid)
        if patient is None:
            raise PatientNotFound()
        return responses.success(patient, 'Patient retrieved successfully')

    if request.method == 'DELETE':
        logger.info('DELETE /api/patients/%s - deleting patient', pid)
        if not service.delete_patient(pid):
            raise PatientNotFound()
        return responses.success(None, 'Patient deleted successfully')

    # PUT 与 PATCH 使用相同的部分更新语义
    logger.info('%s /api/patients/%s - updating patient', request.method, pid)
    data = _validate(PatientUpdateSerializer, request.data)
    patient = service.update_patient(pid, data.validated_data)
    if patient is None:
        raise PatientNotFound()
    return responses.success(patient, 'Patient updated successfully')


@api_view(['GET'])
@permission_classes([AllowAny])
def search_patients(request):
    term = (request.query_params.get('q') or '').strip()
    if not term:
        raise BadRequest('Search term is required')
    logger.info('GET /api/patients/search - q=%s', term)
    q = _validate(SearchQuerySerializer, request.query_params)
    result = get_patient_service().list_patients(q.to_options())
    return responses.paginated(result['patients'], result['pagination'], f'Search results for "{term}"')


@api_view(['GET'])
@permission_classes([AllowAny])
def patients_by_age(request):
    q = _validate(AgeRangeQuerySerializer, request.query_params)
    options = q.to_options()
    lo, hi = options['min_age'], options['max_age']
    logger.info('GET /api/patients/age-range - %s-%s', lo, hi)
    result = get_patient_service().list_patients(options)
    label = f"{lo if lo is not None else 0}-{hi if hi is not None else '∞'}"
    return responses.paginated(result['patients'], result['pagination'], f'Patients in age range {label}')


@api_view(['GET'])
@permission_classes([AllowAny])
def patient_stats(request):
    stats = get_patient_service().get_stats()
    return responses.success(stats, 'Statistics retrieved successfully')


@api_view(['GET'])
@permission_classes([AllowAny])
def export_patients(request):
    """Download every patient as a JSON or CSV attachment."""
    q = _validate(ExportQuerySerializer, request.query_params)
    fmt = q.validated_data['format']
    if fmt not in export.EXPORT_FORMATS:
        raise BadRequest('Unsupported export format. Use json or csv')
    logger.info('GET /api/patients/export - format=%s', fmt)
    body, content_type, filename = export.render(get_patient_service().export_patients(), fmt)
    resp = HttpResponse(body, content_type=f'{content_type}; charset=utf-8')
    resp['Content-Disposition'] = f'attachment; filename={filename}'
    return resp


@api_view(['POST'])
@permission_classes([AllowAny])
def bulk_create_patients(request):
    """Create patients one at a time, reporting per-item failures.

    Each item succeeds or fails on its own; the response status reflects
    the aggregate outcome (201 all created, 200 partial, 400 none).
    """
    logger.info('POST /api/patients/bulk - bulk creating patients')
    body = request.data if isinstance(request.data, dict) else {}
    payload = BulkCreateSerializer(data=body)
    if not payload.is_valid():
        messages = flatten_errors(payload.errors)
        raise BadRequest(messages[0]['message'] if messages else 'Patients array is required')

    service = get_patient_service()
    items = payload.validated_data['patients']
    results, errors = [], []
    for index, item in enumerate(items):
        serializer = PatientCreateSerializer(data=item)
        if not serializer.is_valid():
            errors.append({
                'index': index,
                'error': 'Validation failed',
                'code': 'VALIDATION_ERROR',
                'details': flatten_errors(serializer.errors, item),
                'data': item,
                'success': False,
            })
            continue
        try:
            results.append(service.create_patient(serializer.validated_data))
        except ApiError as exc:
            errors.append({'index': index, 'error': exc.message, 'code': exc.code, 'data': item, 'success': False})
        except DatabaseError as exc:
            logger.error('bulk item %s failed: %s', index, exc)
            _, message, code = database_error(exc)
            errors.append({'index': index, 'error': message, 'code': code, 'data': item, 'success': False})

    report = {
        'created': len(results),
        'failed': len(errors),
        'total': len(items),
        'results': results,
        'errors': errors,
    }
    if not errors:
        return responses.created(report, 'All patients created successfully')
    if not results:
        return responses.failure('No patients were created', 'BAD_REQUEST', data=report)
    return responses.success(report, 'Patients created with some errors')


@api_view(['GET'])
@permission_classes([AllowAny])
def patients_health(request):
    stats = get_patient_service().get_stats()
    return responses.success({
        'service': 'Patient Service',
        'status': 'healthy',
        'totalPatients': stats['total'],
    }, 'Patient service is healthy')
