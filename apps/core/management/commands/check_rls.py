"""
Management command to verify the Row-Level Security setup.

Usage:
    python manage.py check_rls
"""

from django.core.management.base import BaseCommand, CommandError

from apps.core.rls import PROTECTED_TABLES, find_rls_problems, list_policies


class Command(BaseCommand):
    help = "Verify that every protected table has row level security enabled"

    def add_arguments(self, parser):
        parser.add_argument(
            "--verbose-policies",
            action="store_true",
            help="List the policies defined on each protected table",
        )

    def handle(self, *args, **options):
        problems = find_rls_problems()

        if options["verbose_policies"]:
            for table in PROTECTED_TABLES:
                self.stdout.write(f"{table}:")
                for policy in list_policies(table):
                    self.stdout.write(f"  - {policy}")

        if problems:
            for problem in problems:
                self.stdout.write(self.style.ERROR(f"✗ {problem}"))
            raise CommandError(f"{len(problems)} row level security problems found")

        self.stdout.write(
            self.style.SUCCESS(f"✓ Row level security enabled on {len(PROTECTED_TABLES)} tables")
        )
