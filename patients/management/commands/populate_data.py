"""
Management command to seed the database with sample patients.
"""
from datetime import date

from django.core.management.base import BaseCommand

from patients.services.cache import PatientCache
from patients.services.patients import PatientService
from patients.services.repository import PatientRepository

SAMPLE_PATIENTS = [
    {
        'name': 'João Silva Santos',
        'birth_date': date(1985, 3, 15),
        'email': 'joao.silva@email.com',
        'address': 'Rua das Flores, 123, Centro, São Paulo - SP, CEP: 01234-567',
    },
    {
        'name': 'Maria Oliveira Costa',
        'birth_date': date(1990, 7, 22),
        'email': 'maria.oliveira@email.com',
        'address': 'Avenida Brasil, 456, Zona Sul, Rio de Janeiro - RJ, CEP: 22071-900',
    },
    {
        'name': 'Carlos Alberto Ferreira',
        'birth_date': date(1978, 12, 3),
        'email': 'carlos.ferreira@email.com',
        'address': 'Praça da Liberdade, 789, Centro, Belo Horizonte - MG, CEP: 30112-000',
    },
    {
        'name': 'Ana Carolina Mendes',
        'birth_date': date(1992, 5, 18),
        'email': 'ana.mendes@email.com',
        'address': 'Rua Augusta, 321, Consolação, São Paulo - SP, CEP: 01305-100',
    },
    {
        'name': 'Roberto Lima Souza',
        'birth_date': date(1983, 9, 10),
        'email': 'roberto.souza@email.com',
        'address': 'Rua do Mercado, 654, Pelourinho, Salvador - BA, CEP: 40026-010',
    },
]


class Command(BaseCommand):
    help = 'Populate database with sample patients'

    def handle(self, *args, **options):
        self.stdout.write('开始创建测试数据...')
        repo = PatientRepository()

        pending = [p for p in SAMPLE_PATIENTS if not repo.email_exists(p['email'])]
        skipped = len(SAMPLE_PATIENTS) - len(pending)
        if skipped:
            self.stdout.write(f'跳过已存在的患者: {skipped}')

        created = repo.bulk_create(pending) if pending else []
        if created:
            PatientCache().invalidate_collections()

        for p in PatientService(repository=repo).recent_patients(limit=len(SAMPLE_PATIENTS)):
            self.stdout.write(f"  {p['name']} <{p['email']}> age={p['age']}")
        self.stdout.write(self.style.SUCCESS(f'Created {len(created)} patients'))
