"""
Enable Row-Level Security on the school hierarchy tables.

Child tables are scoped through a single EXISTS hop to classes; classes
carry the school id. Students and guardians see the classes their
students are enrolled in through current_student_class_ids().
"""

from django.conf import settings
from django.db import migrations

APP_ROLE = settings.RLS_APPLICATION_ROLE

ACADEMIC_TABLES = ["teachers", "classes", "disciplines", "students", "teacher_class_disciplines"]

# Tables whose school is reached through classes.class_id
CLASS_SCOPED_TABLES = ["disciplines", "students", "teacher_class_disciplines"]


def _system_and_superadmin_policies(table):
    return f"""
    ALTER TABLE {table} ENABLE ROW LEVEL SECURITY;

    CREATE POLICY {table}_system_all_policy ON {table}
        USING (is_rls_bypassed())
        WITH CHECK (is_rls_bypassed());

    CREATE POLICY {table}_superadmin_all_policy ON {table}
        USING (is_superadmin())
        WITH CHECK (is_superadmin());
    """


def _class_scope(table, predicate):
    return (
        f"EXISTS (SELECT 1 FROM classes c "
        f"WHERE c.id = {table}.class_id AND {predicate.format(school='c.school_id')})"
    )


def _class_scoped_policies(table):
    own_school = _class_scope(table, "{school} = current_tenant_id()")
    in_directorate = _class_scope(table, "is_school_in_directorate_scope({school})")
    return f"""
    CREATE POLICY {table}_staff_select_policy ON {table}
        FOR SELECT
        USING (is_school_staff() AND {own_school});

    CREATE POLICY {table}_admin_all_policy ON {table}
        USING (is_school_admin() AND {own_school})
        WITH CHECK (is_school_admin() AND {own_school});

    CREATE POLICY {table}_directorate_select_policy ON {table}
        FOR SELECT
        USING ({in_directorate});
    """


def _drop_policies(table, audiences):
    statements = [
        f"DROP POLICY IF EXISTS {table}_{audience}_policy ON {table};" for audience in audiences
    ]
    statements.append(f"ALTER TABLE {table} DISABLE ROW LEVEL SECURITY;")
    return "\n".join(statements)


ENABLE_RLS = "\n".join(
    [
        _system_and_superadmin_policies("teachers"),
        """
        CREATE POLICY teachers_staff_select_policy ON teachers
            FOR SELECT
            USING (is_school_staff() AND school_id = current_tenant_id());

        CREATE POLICY teachers_admin_all_policy ON teachers
            USING (is_school_admin() AND school_id = current_tenant_id())
            WITH CHECK (is_school_admin() AND school_id = current_tenant_id());

        CREATE POLICY teachers_self_update_policy ON teachers
            FOR UPDATE
            USING (is_teacher() AND principal_id = current_principal_id())
            WITH CHECK (
                is_teacher()
                AND principal_id = current_principal_id()
                AND school_id = current_tenant_id()
            );

        CREATE POLICY teachers_directorate_select_policy ON teachers
            FOR SELECT
            USING (is_school_in_directorate_scope(school_id));
        """,
        _system_and_superadmin_policies("classes"),
        """
        CREATE POLICY classes_staff_select_policy ON classes
            FOR SELECT
            USING (is_school_staff() AND school_id = current_tenant_id());

        CREATE POLICY classes_admin_all_policy ON classes
            USING (is_school_admin() AND school_id = current_tenant_id())
            WITH CHECK (is_school_admin() AND school_id = current_tenant_id());

        CREATE POLICY classes_enrolled_select_policy ON classes
            FOR SELECT
            USING (id IN (SELECT current_student_class_ids()));

        CREATE POLICY classes_directorate_select_policy ON classes
            FOR SELECT
            USING (is_school_in_directorate_scope(school_id));
        """,
        _system_and_superadmin_policies("disciplines"),
        _class_scoped_policies("disciplines"),
        """
        CREATE POLICY disciplines_enrolled_select_policy ON disciplines
            FOR SELECT
            USING (class_id IN (SELECT current_student_class_ids()));
        """,
        _system_and_superadmin_policies("students"),
        _class_scoped_policies("students"),
        """
        CREATE POLICY students_self_select_policy ON students
            FOR SELECT
            USING (is_student() AND principal_id = current_principal_id());

        CREATE POLICY students_guardian_select_policy ON students
            FOR SELECT
            USING (is_guardian() AND guardian_principal_id = current_principal_id());
        """,
        _system_and_superadmin_policies("teacher_class_disciplines"),
        _class_scoped_policies("teacher_class_disciplines"),
        """
        COMMENT ON POLICY students_staff_select_policy ON students IS
            'Teachers and school admins read every student of their school';
        COMMENT ON POLICY students_admin_all_policy ON students IS
            'Only the school admin writes students of its school';
        """,
    ]
)

COMMON_AUDIENCES = ["system_all", "superadmin_all", "staff_select", "admin_all", "directorate_select"]

DISABLE_RLS = "\n".join(
    [
        _drop_policies("teacher_class_disciplines", COMMON_AUDIENCES),
        _drop_policies("students", COMMON_AUDIENCES + ["self_select", "guardian_select"]),
        _drop_policies("disciplines", COMMON_AUDIENCES + ["enrolled_select"]),
        _drop_policies("classes", COMMON_AUDIENCES + ["enrolled_select"]),
        _drop_policies("teachers", COMMON_AUDIENCES + ["self_update"]),
    ]
)


class Migration(migrations.Migration):

    dependencies = [
        ("academics", "0003_consistency_triggers"),
        ("core", "0007_enable_rls"),
    ]

    operations = [
        migrations.RunSQL(
            sql=f"""
            -- Classes of the students the session principal is, or guards
            CREATE OR REPLACE FUNCTION current_student_class_ids()
            RETURNS SETOF UUID AS $$
                SELECT class_id FROM students
                WHERE active
                  AND (
                      (is_student() AND principal_id = current_principal_id())
                      OR (is_guardian() AND guardian_principal_id = current_principal_id())
                  );
            $$ LANGUAGE sql STABLE SECURITY DEFINER;

            GRANT SELECT, INSERT, UPDATE, DELETE ON {", ".join(ACADEMIC_TABLES)} TO {APP_ROLE};
            """,
            reverse_sql=f"""
            REVOKE ALL ON {", ".join(ACADEMIC_TABLES)} FROM {APP_ROLE};
            DROP FUNCTION IF EXISTS current_student_class_ids();
            """,
        ),
        migrations.RunSQL(sql=ENABLE_RLS, reverse_sql=DISABLE_RLS),
    ]
