from django.core.management.base import BaseCommand
from django.utils import timezone

from patients.services.patients import PatientService, normalize_list_options


class Command(BaseCommand):
    help = "Drop cached patient lists and statistics, then warm the common entries."

    def handle(self, *args, **options):
        now = timezone.now()
        service = PatientService()
        service.cache.invalidate_collections()

        # 预热统计与默认列表第一页
        stats = service.get_stats()
        first_page = service.list_patients({})
        keys_refreshed = [service.cache.stats_key(), service.cache.list_key(normalize_list_options({}))]

        self.stdout.write(f"total={stats['total']} firstPage={len(first_page['patients'])}")
        self.stdout.write(self.style.SUCCESS(f"Refreshed {len(keys_refreshed)} keys at {now}"))
