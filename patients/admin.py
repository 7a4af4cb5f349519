"""
Django admin registration for patient records, reachable under ``/admin/``.

Edits made here bypass the API service, so cached patient entries may
stay stale until their TTL expires; run ``manage.py refresh_caches``
after bulk edits.
"""
from django.contrib import admin

from .models import Patient


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ('name', 'email', 'birth_date', 'created_at', 'updated_at')
    search_fields = ('name', 'email')
    date_hierarchy = 'created_at'
    ordering = ('-created_at',)
    readonly_fields = ('id', 'created_at', 'updated_at')
