import html

import bleach
from django.utils import timezone
from rest_framework import serializers

MAX_BULK_ITEMS = 100


def _clean_text(value):
    # bleach 会把 & < > 转义成实体，而这里存的是纯文本
    cleaned = bleach.clean((value or '').strip(), tags=[], strip=True)
    return html.unescape(cleaned).strip()


class PatientWriteSerializer(serializers.Serializer):
    name = serializers.CharField(max_length=255, trim_whitespace=True)
    birthDate = serializers.DateField(source='birth_date', input_formats=['iso-8601'])
    email = serializers.EmailField(max_length=255)
    address = serializers.CharField(max_length=500, trim_whitespace=True)

    default_error_messages = {
        'empty_update': 'At least one field must be provided for update',
    }

    def validate_name(self, v):
        v = _clean_text(v)
        if len(v) < 2:
            raise serializers.ValidationError('Name must be at least 2 characters long')
        return v

    def validate_birthDate(self, v):
        if v > timezone.localdate():
            raise serializers.ValidationError('Birth date cannot be in the future')
        return v

    def validate_email(self, v):
        return v.strip().lower()

    def validate_address(self, v):
        v = _clean_text(v)
        if len(v) < 10:
            raise serializers.ValidationError('Address must be at least 10 characters long')
        return v


class PatientCreateSerializer(PatientWriteSerializer):
    """All four fields are required on create."""


class PatientUpdateSerializer(PatientWriteSerializer):
    """Any subset of the writable fields, but at least one."""

    def __init__(self, *args, **kwargs):
        kwargs.setdefault('partial', True)
        super().__init__(*args, **kwargs)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError(self.error_messages['empty_update'])
        return attrs


class PatientListQuerySerializer(serializers.Serializer):
    page = serializers.IntegerField(required=False, min_value=1, default=1)
    limit = serializers.IntegerField(required=False, min_value=1, max_value=100, default=10)
    search = serializers.CharField(required=False, allow_blank=True, max_length=100)
    # 排序字段不在白名单内时由数据层回退为 createdAt，这里不拒绝
    sortBy = serializers.CharField(required=False, allow_blank=True, max_length=50)
    sortOrder = serializers.CharField(required=False, allow_blank=True, max_length=10)
    minAge = serializers.IntegerField(required=False, min_value=0)
    maxAge = serializers.IntegerField(required=False, min_value=0)

    def validate(self, attrs):
        lo, hi = attrs.get('minAge'), attrs.get('maxAge')
        if lo is not None and hi is not None and lo > hi:
            raise serializers.ValidationError({'minAge': 'Minimum age cannot be greater than maximum age'})
        return attrs

    def to_options(self) -> dict:
        data = self.validated_data
        return {
            'page': data['page'],
            'limit': data['limit'],
            'search': data.get('search'),
            'sort_by': data.get('sortBy'),
            'sort_order': data.get('sortOrder'),
            'min_age': data.get('minAge'),
            'max_age': data.get('maxAge'),
        }


class SearchQuerySerializer(PatientListQuerySerializer):
    q = serializers.CharField(max_length=100, trim_whitespace=True)

    def to_options(self) -> dict:
        options = super().to_options()
        options['search'] = self.validated_data['q']
        return options


class AgeRangeQuerySerializer(PatientListQuerySerializer):

    def validate(self, attrs):
        attrs = super().validate(attrs)
        if attrs.get('minAge') is None and attrs.get('maxAge') is None:
            raise serializers.ValidationError(
                'At least one age parameter (minAge or maxAge) is required'
            )
        return attrs


class ExportQuerySerializer(serializers.Serializer):
    format = serializers.CharField(required=False, default='json', max_length=10)

    def validate_format(self, v):
        return v.strip().lower()


class BulkCreateSerializer(serializers.Serializer):
    patients = serializers.ListField(
        child=serializers.DictField(),
        allow_empty=False,
        max_length=MAX_BULK_ITEMS,
        error_messages={
            'required': 'Patients array is required',
            'null': 'Patients array is required',
            'not_a_list': 'Patients must be an array',
            'empty': 'Patients array is required',
            'max_length': f'Cannot create more than {MAX_BULK_ITEMS} patients at once',
        },
    )


def flatten_errors(errors, data=None, path=None):
    """Turn DRF's nested ``serializer.errors`` into ``[{field, message, value}]``."""
    if isinstance(errors, dict):
        details = []
        for name, value in errors.items():
            if name == 'non_field_errors':
                details.extend(flatten_errors(value, None, path))
                continue
            child = data.get(name) if isinstance(data, dict) else None
            details.extend(flatten_errors(value, child, f'{path}.{name}' if path else str(name)))
        return details

    details = []
    for message in errors if isinstance(errors, list) else [errors]:
        if isinstance(message, (dict, list)):
            details.extend(flatten_errors(message, data, path))
        else:
            details.append({'field': path, 'message': str(message), 'value': data})
    return details
