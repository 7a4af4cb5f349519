from datetime import date

import pytest
from django.core.cache import caches
from rest_framework.test import APIClient

from patients.services.repository import PatientRepository


@pytest.fixture(autouse=True)
def _clear_cache():
    caches['default'].clear()
    yield
    caches['default'].clear()


@pytest.fixture
def api_client():
    return APIClient()


@pytest.fixture
def repo():
    return PatientRepository()


@pytest.fixture
def make_patient(db, repo):
    """Create a patient straight through the repository."""
    counter = {'n': 0}

    def _make(name=None, birth_date=date(1990, 1, 1), email=None, address='Rua das Flores, 123'):
        counter['n'] += 1
        n = counter['n']
        return repo.create({
            'name': name or f'Patient {n}',
            'birth_date': birth_date,
            'email': email or f'patient{n}@example.com',
            'address': address,
        })

    return _make


def patient_payload(**overrides):
    payload = {
        'name': 'Ana Souza',
        'birthDate': '1990-05-01',
        'email': 'Ana@Example.com',
        'address': 'Rua das Flores, 123, Centro',
    }
    payload.update(overrides)
    return payload
