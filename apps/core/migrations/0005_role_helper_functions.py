# Role helper functions used by row-level security policies
#
# Every helper reads role_cache (which has RLS disabled) and never the
# protected role_assignments table, so evaluating a policy cannot recurse
# into another policy. A helper returns false/NULL when the session has no
# principal, no cache row, or an inactive assignment.

from django.db import migrations


class Migration(migrations.Migration):

    dependencies = [
        ("core", "0004_role_cache_sync"),
    ]

    operations = [
        migrations.RunSQL(
            sql="""
            CREATE OR REPLACE FUNCTION current_principal_role()
            RETURNS TEXT AS $$
                SELECT role FROM role_cache
                WHERE principal_id = current_principal_id() AND active;
            $$ LANGUAGE sql STABLE SECURITY DEFINER;

            CREATE OR REPLACE FUNCTION has_cached_role(p_role TEXT)
            RETURNS BOOLEAN AS $$
                SELECT EXISTS (
                    SELECT 1 FROM role_cache
                    WHERE principal_id = current_principal_id()
                      AND role = p_role
                      AND active
                );
            $$ LANGUAGE sql STABLE SECURITY DEFINER;

            CREATE OR REPLACE FUNCTION is_superadmin()
            RETURNS BOOLEAN AS $$
                SELECT EXISTS (
                    SELECT 1 FROM role_cache
                    WHERE principal_id = current_principal_id()
                      AND role = 'SUPERADMIN'
                      AND active
                );
            $$ LANGUAGE sql STABLE SECURITY DEFINER;

            CREATE OR REPLACE FUNCTION is_school_admin()
            RETURNS BOOLEAN AS $$
                SELECT has_cached_role('SCHOOL_ADMIN');
            $$ LANGUAGE sql STABLE;

            CREATE OR REPLACE FUNCTION is_teacher()
            RETURNS BOOLEAN AS $$
                SELECT has_cached_role('TEACHER');
            $$ LANGUAGE sql STABLE;

            CREATE OR REPLACE FUNCTION is_school_staff()
            RETURNS BOOLEAN AS $$
                SELECT has_cached_role('SCHOOL_ADMIN') OR has_cached_role('TEACHER');
            $$ LANGUAGE sql STABLE;

            CREATE OR REPLACE FUNCTION is_student()
            RETURNS BOOLEAN AS $$
                SELECT has_cached_role('STUDENT');
            $$ LANGUAGE sql STABLE;

            CREATE OR REPLACE FUNCTION is_guardian()
            RETURNS BOOLEAN AS $$
                SELECT has_cached_role('GUARDIAN');
            $$ LANGUAGE sql STABLE;

            CREATE OR REPLACE FUNCTION is_municipal_directorate()
            RETURNS BOOLEAN AS $$
                SELECT has_cached_role('MUNICIPAL_DIRECTORATE');
            $$ LANGUAGE sql STABLE;

            CREATE OR REPLACE FUNCTION is_provincial_directorate()
            RETURNS BOOLEAN AS $$
                SELECT has_cached_role('PROVINCIAL_DIRECTORATE');
            $$ LANGUAGE sql STABLE;

            -- Tenant scope: school id for school roles, directorate id for
            -- directorate roles, NULL for SUPERADMIN and anonymous sessions
            CREATE OR REPLACE FUNCTION current_tenant_id()
            RETURNS UUID AS $$
                SELECT tenant_id FROM role_cache
                WHERE principal_id = current_principal_id() AND active;
            $$ LANGUAGE sql STABLE SECURITY DEFINER;

            CREATE OR REPLACE FUNCTION current_municipality()
            RETURNS TEXT AS $$
                SELECT municipality FROM role_cache
                WHERE principal_id = current_principal_id() AND active;
            $$ LANGUAGE sql STABLE SECURITY DEFINER;

            CREATE OR REPLACE FUNCTION current_province()
            RETURNS TEXT AS $$
                SELECT province FROM role_cache
                WHERE principal_id = current_principal_id() AND active;
            $$ LANGUAGE sql STABLE SECURITY DEFINER;

            -- Is the school inside the geographic scope of the current directorate?
            CREATE OR REPLACE FUNCTION is_school_in_directorate_scope(p_school_id UUID)
            RETURNS BOOLEAN AS $$
                SELECT EXISTS (
                    SELECT 1
                    FROM schools s
                    JOIN role_cache rc ON rc.principal_id = current_principal_id()
                    WHERE s.id = p_school_id
                      AND rc.active
                      AND (
                          (rc.role = 'MUNICIPAL_DIRECTORATE'
                              AND s.municipality = rc.municipality
                              AND s.province = rc.province)
                          OR (rc.role = 'PROVINCIAL_DIRECTORATE'
                              AND s.province = rc.province)
                      )
                );
            $$ LANGUAGE sql STABLE SECURITY DEFINER;

            COMMENT ON FUNCTION is_superadmin() IS
                'True when the session principal holds an active SUPERADMIN cache entry';
            COMMENT ON FUNCTION current_tenant_id() IS
                'Tenant scope of the session principal (school or directorate id)';
            """,
            reverse_sql="""
            DROP FUNCTION IF EXISTS is_school_in_directorate_scope(UUID);
            DROP FUNCTION IF EXISTS current_province();
            DROP FUNCTION IF EXISTS current_municipality();
            DROP FUNCTION IF EXISTS current_tenant_id();
            DROP FUNCTION IF EXISTS is_provincial_directorate();
            DROP FUNCTION IF EXISTS is_municipal_directorate();
            DROP FUNCTION IF EXISTS is_guardian();
            DROP FUNCTION IF EXISTS is_student();
            DROP FUNCTION IF EXISTS is_school_staff();
            DROP FUNCTION IF EXISTS is_teacher();
            DROP FUNCTION IF EXISTS is_school_admin();
            DROP FUNCTION IF EXISTS is_superadmin();
            DROP FUNCTION IF EXISTS has_cached_role(TEXT);
            DROP FUNCTION IF EXISTS current_principal_role();
            """,
        ),
    ]
