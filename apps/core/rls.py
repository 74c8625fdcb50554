"""
Introspection of the Row-Level Security setup.

Used by the ``check_rls`` management command and the test suite to verify
that migrations left every protected table with RLS enabled and the role
cache without it.
"""

from django.db import connection

PROTECTED_TABLES = [
    "schools",
    "municipal_directorates",
    "provincial_directorates",
    "role_assignments",
    "superadmin_actions",
    "row_changes",
    "school_backups",
    "teachers",
    "classes",
    "disciplines",
    "students",
    "teacher_class_disciplines",
]

# Must stay readable without evaluating any policy
UNPROTECTED_TABLES = ["role_cache"]


def get_rls_status(tables=None):
    """
    Return ``{table: rls_enabled}`` for the given tables (default: all known).

    Tables that do not exist are omitted.
    """
    tables = list(tables or PROTECTED_TABLES + UNPROTECTED_TABLES)
    with connection.cursor() as cursor:
        cursor.execute(
            """
            SELECT c.relname, c.relrowsecurity
            FROM pg_class c
            JOIN pg_namespace n ON n.oid = c.relnamespace
            WHERE n.nspname = current_schema()
              AND c.relkind = 'r'
              AND c.relname = ANY(%s);
            """,
            [tables],
        )
        return dict(cursor.fetchall())


def list_policies(table):
    """Names of the policies defined on ``table``, sorted."""
    with connection.cursor() as cursor:
        cursor.execute(
            "SELECT policyname FROM pg_policies WHERE tablename = %s ORDER BY policyname;",
            [table],
        )
        return [row[0] for row in cursor.fetchall()]


def find_rls_problems():
    """
    List human-readable problems with the RLS setup; empty when healthy.

    Checks that every protected table exists with RLS enabled and at least
    a SUPERADMIN policy, and that the role cache has RLS disabled.
    """
    problems = []
    status = get_rls_status()

    for table in PROTECTED_TABLES:
        if table not in status:
            problems.append(f"{table}: table is missing")
        elif not status[table]:
            problems.append(f"{table}: row level security is disabled")
        elif not any(name.startswith(f"{table}_superadmin_") for name in list_policies(table)):
            problems.append(f"{table}: no superadmin policy")

    for table in UNPROTECTED_TABLES:
        if status.get(table):
            problems.append(f"{table}: row level security must be disabled")

    return problems
