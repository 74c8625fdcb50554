"""
Management command to compare the role cache with role assignments.

Exits with an error when at least one principal's cache entry disagrees
with its assignment.

Usage:
    python manage.py check_role_cache
"""

from django.core.management.base import BaseCommand, CommandError

from apps.core.role_cache import find_cache_drift


class Command(BaseCommand):
    help = "Report principals whose role cache entry disagrees with their role assignment"

    def handle(self, *args, **options):
        drift = find_cache_drift()

        if not drift:
            self.stdout.write(self.style.SUCCESS("✓ Role cache is consistent"))
            return

        for row in drift:
            self.stdout.write(
                self.style.ERROR(
                    f"✗ {row['principal_id']}: "
                    f"expected {row['expected_role']}/{row['expected_tenant_id']}"
                    f"/active={row['expected_active']}, "
                    f"cached {row['cached_role']}/{row['cached_tenant_id']}"
                    f"/active={row['cached_active']}"
                )
            )

        raise CommandError(f"{len(drift)} principals have a stale role cache entry")
