"""
URL mappings for the patient API.

Fixed paths under ``api/patients/`` are registered before the
``<patient_id>`` catch-all so that ``search``, ``stats`` and friends are
never parsed as ids.  Trailing slashes are deliberately omitted.
"""
from django.urls import include, path

from .views import health
from .views.patients import (
    bulk_create_patients,
    export_patients,
    patient_detail,
    patient_stats,
    patients_by_age,
    patients_collection,
    patients_health,
    search_patients,
)

urlpatterns = [
    path('', include('django_prometheus.urls')),
    path('healthz', health.healthz),
    path('api', health.api_info),
    path('api/health', health.healthz),
    # Patients
    path('api/patients', patients_collection),
    path('api/patients/search', search_patients),
    path('api/patients/age-range', patients_by_age),
    path('api/patients/stats', patient_stats),
    path('api/patients/export', export_patients),
    path('api/patients/bulk', bulk_create_patients),
    path('api/patients/health', patients_health),
    path('api/patients/<str:patient_id>', patient_detail),
]
