"""
Data access for :class:`~patients.models.Patient`.

All queries are built from Django querysets; user input only ever
reaches the database as bound parameters.  The sort column is resolved
through :data:`SORT_COLUMNS` and never interpolated from the request.
"""
from __future__ import annotations

import logging
import math
from datetime import date
from typing import Iterable, Iterator, Mapping, Optional

from django.db import IntegrityError, transaction
from django.db.models import Avg, Case, Count, ExpressionWrapper, FloatField, IntegerField, Q, Value, When
from django.db.models.functions import ExtractYear
from django.utils import timezone

from patients.exceptions import BadRequest, DuplicateEmailError
from patients.models import Patient
from patients.services.ages import (
    MINOR_MAX_AGE,
    SENIOR_MIN_AGE,
    earliest_birth_date_for_age,
    latest_birth_date_for_age,
    today,
)

logger = logging.getLogger(__name__)

SORT_COLUMNS = {
    'name': 'name',
    'email': 'email',
    'birthDate': 'birth_date',
    'birth_date': 'birth_date',
    'createdAt': 'created_at',
    'created_at': 'created_at',
    'updatedAt': 'updated_at',
    'updated_at': 'updated_at',
}
DEFAULT_SORT_BY = 'createdAt'
DEFAULT_SORT_ORDER = 'desc'
UPDATABLE_FIELDS = ('name', 'birth_date', 'email', 'address')


def resolve_sort(sort_by: Optional[str], sort_order: Optional[str]) -> tuple[str, str]:
    """Map request values onto the allow-list; unknown values fall back silently."""
    column = SORT_COLUMNS.get(sort_by or '', SORT_COLUMNS[DEFAULT_SORT_BY])
    order = 'asc' if (sort_order or '').lower() == 'asc' else DEFAULT_SORT_ORDER
    return column, order


def build_pagination(page: int, limit: int, total: int) -> dict:
    total_pages = math.ceil(total / limit) if limit else 0
    return {
        'page': page,
        'limit': limit,
        'total': total,
        'totalPages': total_pages,
        'hasNext': page < total_pages,
        'hasPrev': page > 1,
    }


def age_expression(as_of: date):
    """Whole-year age of ``birth_date`` on ``as_of`` as a SQL expression."""
    before_birthday = Case(
        When(
            Q(birth_date__month__gt=as_of.month)
            | Q(birth_date__month=as_of.month, birth_date__day__gt=as_of.day),
            then=Value(1),
        ),
        default=Value(0),
        output_field=IntegerField(),
    )
    return ExpressionWrapper(
        Value(as_of.year) - ExtractYear('birth_date') - before_birthday,
        output_field=IntegerField(),
    )


def _is_email_violation(exc: IntegrityError) -> bool:
    text = str(exc).lower()
    # patients_email_format 是 CHECK 约束，不是重复邮箱
    if 'check' in text:
        return False
    return 'email' in text or 'unique' in text


class PatientRepository:
    """Typed operations over the ``patients`` table."""

    model = Patient

    def create(self, fields: Mapping) -> Patient:
        patient = self.model(
            name=fields['name'].strip(),
            birth_date=fields['birth_date'],
            email=fields['email'].strip().lower(),
            address=fields['address'].strip(),
        )
        try:
            with transaction.atomic():
                patient.save(force_insert=True)
        except IntegrityError as exc:
            if _is_email_violation(exc):
                raise DuplicateEmailError('Email already exists') from exc
            raise
        logger.info('patient created id=%s', patient.id)
        return patient

    def find_by_id(self, patient_id) -> Optional[Patient]:
        return self.model.objects.filter(pk=patient_id).first()

    def find_by_email(self, email: str) -> Optional[Patient]:
        return self.model.objects.filter(email=email.strip().lower()).first()

    def email_exists(self, email: str, exclude_id=None) -> bool:
        qs = self.model.objects.filter(email=email.strip().lower())
        if exclude_id is not None:
            qs = qs.exclude(pk=exclude_id)
        return qs.exists()

    def filter_queryset(self, *, search: Optional[str] = None, min_age: Optional[int] = None,
                        max_age: Optional[int] = None, as_of: Optional[date] = None):
        """Queryset matching every present filter (conjunction only)."""
        as_of = as_of or today()
        qs = self.model.objects.all()
        if search:
            qs = qs.filter(Q(name__icontains=search) | Q(email__icontains=search))
        if min_age is not None:
            qs = qs.filter(birth_date__lte=latest_birth_date_for_age(min_age, as_of))
        if max_age is not None:
            qs = qs.filter(birth_date__gt=earliest_birth_date_for_age(max_age, as_of))
        return qs

    def find_all(self, *, page: int = 1, limit: int = 10, search: Optional[str] = None,
                 sort_by: Optional[str] = None, sort_order: Optional[str] = None,
                 min_age: Optional[int] = None, max_age: Optional[int] = None) -> tuple[list[Patient], dict]:
        qs = self.filter_queryset(search=search, min_age=min_age, max_age=max_age)
        total = qs.count()

        column, order = resolve_sort(sort_by, sort_order)
        prefix = '-' if order == 'desc' else ''
        # 主键作为次级排序，保证分页结果稳定
        qs = qs.order_by(f'{prefix}{column}', f'{prefix}id')

        start = (page - 1) * limit
        records = list(qs[start:start + limit])
        return records, build_pagination(page, limit, total)

    def update(self, patient_id, fields: Mapping) -> Optional[Patient]:
        patient = self.find_by_id(patient_id)
        if patient is None:
            return None

        changes = {k: v for k, v in fields.items() if k in UPDATABLE_FIELDS}
        if not changes:
            raise BadRequest('No valid fields to update', code='NO_UPDATE_FIELDS')
        for field in ('name', 'address'):
            if field in changes:
                changes[field] = changes[field].strip()
        if 'email' in changes:
            changes['email'] = changes['email'].strip().lower()
        changes['updated_at'] = timezone.now()

        try:
            with transaction.atomic():
                updated = self.model.objects.filter(pk=patient_id).update(**changes)
        except IntegrityError as exc:
            if _is_email_violation(exc):
                raise DuplicateEmailError('Email already in use') from exc
            raise
        if not updated:
            return None
        patient.refresh_from_db()
        logger.info('patient updated id=%s fields=%s', patient_id, ','.join(sorted(changes)))
        return patient

    def delete(self, patient_id) -> bool:
        deleted, _ = self.model.objects.filter(pk=patient_id).delete()
        if deleted:
            logger.info('patient deleted id=%s', patient_id)
        return bool(deleted)

    def bulk_create(self, items: Iterable[Mapping]) -> list[Patient]:
        """Create every item or none of them."""
        with transaction.atomic():
            created = [self.create(item) for item in items]
        logger.info('bulk created %s patients', len(created))
        return created

    def recent(self, limit: int = 5) -> list[Patient]:
        return list(self.model.objects.order_by('-created_at', '-id')[:limit])

    def iter_all(self) -> Iterator[Patient]:
        return self.model.objects.order_by('-created_at', '-id').iterator()

    def age_group_stats(self, as_of: Optional[date] = None) -> dict:
        as_of = as_of or today()
        adult_cutoff = latest_birth_date_for_age(MINOR_MAX_AGE + 1, as_of)
        senior_cutoff = latest_birth_date_for_age(SENIOR_MIN_AGE, as_of)
        counts = self.model.objects.aggregate(
            total=Count('id'),
            minors=Count('id', filter=Q(birth_date__gt=adult_cutoff)),
            adults=Count('id', filter=Q(birth_date__lte=adult_cutoff, birth_date__gt=senior_cutoff)),
            seniors=Count('id', filter=Q(birth_date__lte=senior_cutoff)),
            averageAge=Avg(age_expression(as_of), output_field=FloatField()),
        )
        if counts['averageAge'] is not None:
            counts['averageAge'] = round(float(counts['averageAge']), 1)
        return counts
