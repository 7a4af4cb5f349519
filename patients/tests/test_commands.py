from io import StringIO

import pytest
from django.core.management import call_command

from patients.models import Patient
from patients.services.cache import PatientCache

pytestmark = pytest.mark.django_db


def test_populate_data_is_idempotent():
    call_command('populate_data', stdout=StringIO())
    assert Patient.objects.count() == 5
    call_command('populate_data', stdout=StringIO())
    assert Patient.objects.count() == 5
    assert Patient.objects.filter(email='joao.silva@email.com').exists()


def test_refresh_caches_warms_stats():
    call_command('populate_data', stdout=StringIO())
    out = StringIO()
    call_command('refresh_caches', stdout=out)
    assert 'total=5' in out.getvalue()
    cache = PatientCache()
    assert cache.get(cache.stats_key())['total'] == 5
