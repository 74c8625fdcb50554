"""
Enable Row-Level Security on the core tables.

Policies are evaluated for the non-owner application role
(settings.RLS_APPLICATION_ROLE). The table owner, which runs migrations and
owns the SECURITY DEFINER helper functions, is not subject to RLS, so the
helpers can read protected tables without re-entering a policy.

Policy naming: <table>_<audience>_<operation>_policy. Permissive policies
for the same command are OR-ed together by PostgreSQL.
"""

from django.conf import settings
from django.db import migrations

APP_ROLE = settings.RLS_APPLICATION_ROLE

CREATE_APP_ROLE = f"""
DO $$
BEGIN
    IF NOT EXISTS (SELECT 1 FROM pg_roles WHERE rolname = '{APP_ROLE}') THEN
        CREATE ROLE {APP_ROLE} NOLOGIN;
    END IF;
END
$$;

GRANT USAGE ON SCHEMA public TO {APP_ROLE};
GRANT SELECT ON principals TO {APP_ROLE};
GRANT SELECT, INSERT, UPDATE, DELETE ON schools TO {APP_ROLE};
GRANT SELECT, INSERT, UPDATE, DELETE ON municipal_directorates TO {APP_ROLE};
GRANT SELECT, INSERT, UPDATE, DELETE ON provincial_directorates TO {APP_ROLE};
GRANT SELECT, INSERT, UPDATE, DELETE ON role_assignments TO {APP_ROLE};
GRANT SELECT, INSERT, UPDATE, DELETE ON school_backups TO {APP_ROLE};
GRANT SELECT, INSERT ON superadmin_actions TO {APP_ROLE};
GRANT SELECT ON row_changes TO {APP_ROLE};
GRANT SELECT ON role_cache TO {APP_ROLE};
GRANT SELECT ON role_cache_drift TO {APP_ROLE};
"""

REVOKE_APP_ROLE = f"""
REVOKE ALL ON principals, schools, municipal_directorates, provincial_directorates,
    role_assignments, school_backups, superadmin_actions, row_changes, role_cache,
    role_cache_drift FROM {APP_ROLE};
"""


class Migration(migrations.Migration):

    dependencies = [
        ("core", "0006_audit_triggers"),
    ]

    operations = [
        migrations.RunSQL(sql=CREATE_APP_ROLE, reverse_sql=REVOKE_APP_ROLE),
        migrations.RunSQL(
            sql="""
            -- Only SUPERADMIN (or system context) may change status or ownership
            CREATE OR REPLACE FUNCTION protect_school_status()
            RETURNS TRIGGER AS $$
            BEGIN
                IF current_principal_id() IS NULL OR is_rls_bypassed() OR is_superadmin() THEN
                    RETURN NEW;
                END IF;

                IF NEW.active IS DISTINCT FROM OLD.active
                   OR NEW.blocked IS DISTINCT FROM OLD.blocked
                   OR NEW.blocked_reason IS DISTINCT FROM OLD.blocked_reason
                   OR NEW.blocked_at IS DISTINCT FROM OLD.blocked_at
                   OR NEW.blocked_by_id IS DISTINCT FROM OLD.blocked_by_id
                   OR NEW.owner_id IS DISTINCT FROM OLD.owner_id
                   OR NEW.code IS DISTINCT FROM OLD.code THEN
                    RAISE EXCEPTION 'Only a superadmin can change the status of school %', OLD.id
                        USING ERRCODE = 'insufficient_privilege';
                END IF;

                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql;

            CREATE TRIGGER schools_protect_status
                BEFORE UPDATE ON schools
                FOR EACH ROW EXECUTE FUNCTION protect_school_status();
            """,
            reverse_sql="""
            DROP TRIGGER IF EXISTS schools_protect_status ON schools;
            DROP FUNCTION IF EXISTS protect_school_status();
            """,
        ),
        migrations.RunSQL(
            sql="""
            -- role_cache is read by every policy helper: never protect it
            ALTER TABLE role_cache DISABLE ROW LEVEL SECURITY;

            -- schools
            ALTER TABLE schools ENABLE ROW LEVEL SECURITY;

            CREATE POLICY schools_system_all_policy ON schools
                USING (is_rls_bypassed())
                WITH CHECK (is_rls_bypassed());

            CREATE POLICY schools_superadmin_all_policy ON schools
                USING (is_superadmin())
                WITH CHECK (is_superadmin());

            CREATE POLICY schools_member_select_policy ON schools
                FOR SELECT
                USING (id = current_tenant_id());

            CREATE POLICY schools_admin_update_policy ON schools
                FOR UPDATE
                USING (is_school_admin() AND id = current_tenant_id())
                WITH CHECK (is_school_admin() AND id = current_tenant_id());

            CREATE POLICY schools_directorate_select_policy ON schools
                FOR SELECT
                USING (is_school_in_directorate_scope(id));

            -- municipal_directorates
            ALTER TABLE municipal_directorates ENABLE ROW LEVEL SECURITY;

            CREATE POLICY municipal_directorates_system_all_policy ON municipal_directorates
                USING (is_rls_bypassed())
                WITH CHECK (is_rls_bypassed());

            CREATE POLICY municipal_directorates_superadmin_all_policy ON municipal_directorates
                USING (is_superadmin())
                WITH CHECK (is_superadmin());

            CREATE POLICY municipal_directorates_own_select_policy ON municipal_directorates
                FOR SELECT
                USING (is_municipal_directorate() AND id = current_tenant_id());

            CREATE POLICY municipal_directorates_own_update_policy ON municipal_directorates
                FOR UPDATE
                USING (is_municipal_directorate() AND id = current_tenant_id())
                WITH CHECK (is_municipal_directorate() AND id = current_tenant_id());

            CREATE POLICY municipal_directorates_provincial_select_policy ON municipal_directorates
                FOR SELECT
                USING (is_provincial_directorate() AND province = current_province());

            CREATE POLICY municipal_directorates_provincial_update_policy ON municipal_directorates
                FOR UPDATE
                USING (is_provincial_directorate() AND province = current_province())
                WITH CHECK (is_provincial_directorate() AND province = current_province());

            -- provincial_directorates
            ALTER TABLE provincial_directorates ENABLE ROW LEVEL SECURITY;

            CREATE POLICY provincial_directorates_system_all_policy ON provincial_directorates
                USING (is_rls_bypassed())
                WITH CHECK (is_rls_bypassed());

            CREATE POLICY provincial_directorates_superadmin_all_policy ON provincial_directorates
                USING (is_superadmin())
                WITH CHECK (is_superadmin());

            CREATE POLICY provincial_directorates_own_select_policy ON provincial_directorates
                FOR SELECT
                USING (is_provincial_directorate() AND id = current_tenant_id());

            CREATE POLICY provincial_directorates_own_update_policy ON provincial_directorates
                FOR UPDATE
                USING (is_provincial_directorate() AND id = current_tenant_id())
                WITH CHECK (is_provincial_directorate() AND id = current_tenant_id());

            CREATE POLICY provincial_directorates_municipal_select_policy ON provincial_directorates
                FOR SELECT
                USING (is_municipal_directorate() AND province = current_province());

            -- role_assignments
            ALTER TABLE role_assignments ENABLE ROW LEVEL SECURITY;

            CREATE POLICY role_assignments_system_all_policy ON role_assignments
                USING (is_rls_bypassed())
                WITH CHECK (is_rls_bypassed());

            CREATE POLICY role_assignments_superadmin_all_policy ON role_assignments
                USING (is_superadmin())
                WITH CHECK (is_superadmin());

            CREATE POLICY role_assignments_own_select_policy ON role_assignments
                FOR SELECT
                USING (principal_id = current_principal_id());

            CREATE POLICY role_assignments_admin_select_policy ON role_assignments
                FOR SELECT
                USING (is_school_admin() AND tenant_id = current_tenant_id());

            CREATE POLICY role_assignments_admin_insert_policy ON role_assignments
                FOR INSERT
                WITH CHECK (
                    is_school_admin()
                    AND tenant_id = current_tenant_id()
                    AND role IN ('TEACHER', 'STUDENT', 'GUARDIAN')
                );

            CREATE POLICY role_assignments_admin_update_policy ON role_assignments
                FOR UPDATE
                USING (
                    is_school_admin()
                    AND tenant_id = current_tenant_id()
                    AND role IN ('TEACHER', 'STUDENT', 'GUARDIAN')
                )
                WITH CHECK (
                    is_school_admin()
                    AND tenant_id = current_tenant_id()
                    AND role IN ('TEACHER', 'STUDENT', 'GUARDIAN')
                );

            CREATE POLICY role_assignments_directorate_select_policy ON role_assignments
                FOR SELECT
                USING (is_school_in_directorate_scope(tenant_id));

            -- superadmin_actions (append-only: no UPDATE/DELETE policies)
            ALTER TABLE superadmin_actions ENABLE ROW LEVEL SECURITY;

            CREATE POLICY superadmin_actions_system_select_policy ON superadmin_actions
                FOR SELECT
                USING (is_rls_bypassed());

            CREATE POLICY superadmin_actions_system_insert_policy ON superadmin_actions
                FOR INSERT
                WITH CHECK (is_rls_bypassed());

            CREATE POLICY superadmin_actions_superadmin_select_policy ON superadmin_actions
                FOR SELECT
                USING (is_superadmin());

            CREATE POLICY superadmin_actions_superadmin_insert_policy ON superadmin_actions
                FOR INSERT
                WITH CHECK (is_superadmin());

            -- row_changes (written by a SECURITY DEFINER trigger only)
            ALTER TABLE row_changes ENABLE ROW LEVEL SECURITY;

            CREATE POLICY row_changes_system_select_policy ON row_changes
                FOR SELECT
                USING (is_rls_bypassed());

            CREATE POLICY row_changes_superadmin_select_policy ON row_changes
                FOR SELECT
                USING (is_superadmin());

            -- school_backups
            ALTER TABLE school_backups ENABLE ROW LEVEL SECURITY;

            CREATE POLICY school_backups_system_all_policy ON school_backups
                USING (is_rls_bypassed())
                WITH CHECK (is_rls_bypassed());

            CREATE POLICY school_backups_superadmin_all_policy ON school_backups
                USING (is_superadmin())
                WITH CHECK (is_superadmin());

            COMMENT ON POLICY schools_member_select_policy ON schools IS
                'Principals bound to a school can read that school';
            COMMENT ON POLICY role_assignments_admin_insert_policy ON role_assignments IS
                'School admins may only grant TEACHER, STUDENT and GUARDIAN inside their own school';
            """,
            reverse_sql="""
            DROP POLICY IF EXISTS school_backups_superadmin_all_policy ON school_backups;
            DROP POLICY IF EXISTS school_backups_system_all_policy ON school_backups;
            ALTER TABLE school_backups DISABLE ROW LEVEL SECURITY;

            DROP POLICY IF EXISTS row_changes_superadmin_select_policy ON row_changes;
            DROP POLICY IF EXISTS row_changes_system_select_policy ON row_changes;
            ALTER TABLE row_changes DISABLE ROW LEVEL SECURITY;

            DROP POLICY IF EXISTS superadmin_actions_superadmin_insert_policy ON superadmin_actions;
            DROP POLICY IF EXISTS superadmin_actions_superadmin_select_policy ON superadmin_actions;
            DROP POLICY IF EXISTS superadmin_actions_system_insert_policy ON superadmin_actions;
            DROP POLICY IF EXISTS superadmin_actions_system_select_policy ON superadmin_actions;
            ALTER TABLE superadmin_actions DISABLE ROW LEVEL SECURITY;

            DROP POLICY IF EXISTS role_assignments_directorate_select_policy ON role_assignments;
            DROP POLICY IF EXISTS role_assignments_admin_update_policy ON role_assignments;
            DROP POLICY IF EXISTS role_assignments_admin_insert_policy ON role_assignments;
            DROP POLICY IF EXISTS role_assignments_admin_select_policy ON role_assignments;
            DROP POLICY IF EXISTS role_assignments_own_select_policy ON role_assignments;
            DROP POLICY IF EXISTS role_assignments_superadmin_all_policy ON role_assignments;
            DROP POLICY IF EXISTS role_assignments_system_all_policy ON role_assignments;
            ALTER TABLE role_assignments DISABLE ROW LEVEL SECURITY;

            DROP POLICY IF EXISTS provincial_directorates_municipal_select_policy ON provincial_directorates;
            DROP POLICY IF EXISTS provincial_directorates_own_update_policy ON provincial_directorates;
            DROP POLICY IF EXISTS provincial_directorates_own_select_policy ON provincial_directorates;
            DROP POLICY IF EXISTS provincial_directorates_superadmin_all_policy ON provincial_directorates;
            DROP POLICY IF EXISTS provincial_directorates_system_all_policy ON provincial_directorates;
            ALTER TABLE provincial_directorates DISABLE ROW LEVEL SECURITY;

            DROP POLICY IF EXISTS municipal_directorates_provincial_update_policy ON municipal_directorates;
            DROP POLICY IF EXISTS municipal_directorates_provincial_select_policy ON municipal_directorates;
            DROP POLICY IF EXISTS municipal_directorates_own_update_policy ON municipal_directorates;
            DROP POLICY IF EXISTS municipal_directorates_own_select_policy ON municipal_directorates;
            DROP POLICY IF EXISTS municipal_directorates_superadmin_all_policy ON municipal_directorates;
            DROP POLICY IF EXISTS municipal_directorates_system_all_policy ON municipal_directorates;
            ALTER TABLE municipal_directorates DISABLE ROW LEVEL SECURITY;

            DROP POLICY IF EXISTS schools_directorate_select_policy ON schools;
            DROP POLICY IF EXISTS schools_admin_update_policy ON schools;
            DROP POLICY IF EXISTS schools_member_select_policy ON schools;
            DROP POLICY IF EXISTS schools_superadmin_all_policy ON schools;
            DROP POLICY IF EXISTS schools_system_all_policy ON schools;
            ALTER TABLE schools DISABLE ROW LEVEL SECURITY;
            """,
        ),
    ]
