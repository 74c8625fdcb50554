"""
Management command to rebuild the role cache from role assignments.

The cache is normally maintained by trigger; run this after restoring data
with triggers disabled, or when check_role_cache reports drift.

Usage:
    python manage.py rebuild_role_cache
"""

from django.core.management.base import BaseCommand

from apps.core.principal_context import bypass_rls
from apps.core.role_cache import find_cache_drift, rebuild_role_cache


class Command(BaseCommand):
    help = "Rebuild the role cache from role assignments"

    def handle(self, *args, **options):
        self.stdout.write("Rebuilding role cache...")

        with bypass_rls():
            refreshed = rebuild_role_cache()
            drift = find_cache_drift()

        self.stdout.write(self.style.SUCCESS(f"✓ Refreshed {refreshed} principals"))

        if drift:
            self.stdout.write(
                self.style.WARNING(f"{len(drift)} principals still drift after rebuild")
            )
