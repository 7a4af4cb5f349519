"""
Database models for the patient records service.

The service manages a single entity, :class:`Patient`.  Age is never
stored; it is derived from ``birth_date`` whenever a record is read
(see :mod:`patients.services.ages`).
"""
from __future__ import annotations

import uuid

from django.db import models
from django.db.models.functions import Length, Trim
from django.db.models.lookups import GreaterThanOrEqual


class Patient(models.Model):
    """Demographic record of a patient.

    ``email`` is always stored lowercased so the unique constraint acts
    as a case-insensitive guard.  ``updated_at`` is refreshed by the ORM
    on save and, on PostgreSQL, by a trigger for any row modification.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    # 列表搜索按姓名匹配，加索引
    name = models.CharField(max_length=255, db_index=True)
    birth_date = models.DateField()
    email = models.EmailField(max_length=255, unique=True)
    address = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = 'patients'
        ordering = ['-created_at', 'id']
        constraints = [
            models.CheckConstraint(
                condition=GreaterThanOrEqual(Length(Trim('name')), 2),
                name='patients_name_min_length',
            ),
            models.CheckConstraint(
                condition=GreaterThanOrEqual(Length(Trim('address')), 10),
                name='patients_address_min_length',
            ),
        ]

    def __str__(self) -> str:
        return f"{self.name} <{self.email}>"
