"""
Business rules and caching around the patient repository.

Reads are cache-first; writes go to the repository and then invalidate
the list and statistics entries (invalidate-on-write).  The email
uniqueness pre-check reads the store directly, never the cache; the
unique constraint on ``patients.email`` remains the final guard when two
writers race past the pre-check.
"""
from __future__ import annotations

import logging
from typing import Mapping, Optional

from django.utils import timezone

from patients.exceptions import BusinessRuleError, DuplicateEmailError
from patients.models import Patient
from patients.services.ages import MAX_PLAUSIBLE_AGE, calculate_age
from patients.services.cache import PatientCache
from patients.services.repository import DEFAULT_SORT_BY, PatientRepository, resolve_sort

logger = logging.getLogger(__name__)

DEFAULT_PAGE = 1
DEFAULT_LIMIT = 10

# Inverse of the sort allow-list so that aliases share one cache key
_SORT_NAMES = {
    'name': 'name',
    'email': 'email',
    'birth_date': 'birthDate',
    'created_at': 'createdAt',
    'updated_at': 'updatedAt',
}


def format_patient(patient: Patient) -> dict:
    """API representation of a patient; ``age`` is derived at call time."""
    return {
        'id': str(patient.id),
        'name': patient.name,
        'birthDate': patient.birth_date.isoformat(),
        'email': patient.email,
        'address': patient.address,
        'age': calculate_age(patient.birth_date),
        'createdAt': patient.created_at.isoformat(),
        'updatedAt': patient.updated_at.isoformat(),
    }


def normalize_list_options(options: Mapping) -> dict:
    """Apply defaults and allow-list fallbacks to raw list options.

    Two requests that would run the same query end up with equal dicts,
    so they share one cache key.
    """
    column, order = resolve_sort(options.get('sort_by'), options.get('sort_order'))
    search = (options.get('search') or '').strip().lower() or None
    return {
        'page': int(options.get('page') or DEFAULT_PAGE),
        'limit': int(options.get('limit') or DEFAULT_LIMIT),
        'search': search,
        'sort_by': _SORT_NAMES.get(column, DEFAULT_SORT_BY),
        'sort_order': order,
        'min_age': options.get('min_age'),
        'max_age': options.get('max_age'),
    }


def _percentage(part: int, total: int) -> float:
    return round(part / total * 100, 1) if total else 0


class PatientService:

    def __init__(self, repository: Optional[PatientRepository] = None, cache: Optional[PatientCache] = None):
        self.repository = repository or PatientRepository()
        self.cache = cache or PatientCache()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    def create_patient(self, fields: Mapping) -> dict:
        logger.info('creating patient email=%s', fields.get('email'))
        if self.repository.find_by_email(fields['email']) is not None:
            raise DuplicateEmailError('Email already registered')
        self._check_business_rules(fields)

        patient = self.repository.create(fields)
        data = format_patient(patient)
        self.cache.set(self.cache.patient_key(data['id']), data, self.cache.ttl('PATIENT'))
        self.cache.invalidate_collections()
        return data

    def update_patient(self, patient_id, fields: Mapping) -> Optional[dict]:
        existing = self.repository.find_by_id(patient_id)
        if existing is None:
            return None

        email = fields.get('email')
        if email and email.strip().lower() != existing.email:
            if self.repository.email_exists(email, exclude_id=existing.pk):
                raise DuplicateEmailError('Email already in use')
        self._check_business_rules(fields)

        patient = self.repository.update(patient_id, fields)
        if patient is None:
            # removed by a concurrent delete after the existence check
            return None
        data = format_patient(patient)
        self.cache.set(self.cache.patient_key(data['id']), data, self.cache.ttl('PATIENT'))
        self.cache.invalidate_collections()
        return data

    def delete_patient(self, patient_id) -> bool:
        if self.repository.find_by_id(patient_id) is None:
            return False
        deleted = self.repository.delete(patient_id)
        if deleted:
            self.cache.delete(self.cache.patient_key(patient_id))
            self.cache.invalidate_collections()
        return deleted

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    def get_patient(self, patient_id) -> Optional[dict]:
        key = self.cache.patient_key(patient_id)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        patient = self.repository.find_by_id(patient_id)
        if patient is None:
            return None
        data = format_patient(patient)
        self.cache.set(key, data, self.cache.ttl('PATIENT'))
        return data

    def list_patients(self, options: Optional[Mapping] = None) -> dict:
        query = normalize_list_options(options or {})
        key = self.cache.list_key(query)
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        records, pagination = self.repository.find_all(**query)
        result = {'patients': [format_patient(p) for p in records], 'pagination': pagination}
        self.cache.set(key, result, self.cache.ttl('LIST'))
        return result

    def get_stats(self) -> dict:
        key = self.cache.stats_key()
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        stats = self.repository.age_group_stats()
        total = stats['total']
        result = {
            **stats,
            'demographics': {
                'minorPercentage': _percentage(stats['minors'], total),
                'adultPercentage': _percentage(stats['adults'], total),
                'seniorPercentage': _percentage(stats['seniors'], total),
            },
            'lastUpdated': timezone.now().isoformat(),
        }
        self.cache.set(key, result, self.cache.ttl('STATS'))
        return result

    def recent_patients(self, limit: int = 5) -> list[dict]:
        return [format_patient(p) for p in self.repository.recent(limit)]

    def export_patients(self) -> list[dict]:
        """Every record in API form, read straight from the store."""
        return [format_patient(p) for p in self.repository.iter_all()]

    # ------------------------------------------------------------------
    def _check_business_rules(self, fields: Mapping) -> None:
        birth_date = fields.get('birth_date')
        if birth_date is not None and calculate_age(birth_date) > MAX_PLAUSIBLE_AGE:
            raise BusinessRuleError(
                f'Invalid birth date - age cannot exceed {MAX_PLAUSIBLE_AGE} years', code='INVALID_AGE'
            )
