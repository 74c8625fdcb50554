# Role cache maintenance
#
# role_cache is a projection of role_assignments enriched with the
# geographic scope (municipality, province) of the assignment's tenant.
# It is written only from here, inside the same transaction as the source
# write, so it can never be observed out of sync by a committed reader.

from django.db import migrations


class Migration(migrations.Migration):

    dependencies = [
        ("core", "0003_referential_actions"),
    ]

    operations = [
        migrations.RunSQL(
            sql="""
            -- Upsert (or remove) the cache row of one principal from its assignment
            CREATE OR REPLACE FUNCTION refresh_role_cache(p_principal_id UUID)
            RETURNS void AS $$
            DECLARE
                v_assignment role_assignments%ROWTYPE;
                v_municipality TEXT;
                v_province TEXT;
            BEGIN
                IF p_principal_id IS NULL THEN
                    RETURN;
                END IF;

                SELECT * INTO v_assignment
                FROM role_assignments
                WHERE principal_id = p_principal_id;

                IF NOT FOUND THEN
                    DELETE FROM role_cache WHERE principal_id = p_principal_id;
                    RETURN;
                END IF;

                IF v_assignment.role IN ('SCHOOL_ADMIN', 'TEACHER', 'STUDENT', 'GUARDIAN') THEN
                    SELECT municipality, province INTO v_municipality, v_province
                    FROM schools WHERE id = v_assignment.tenant_id;
                ELSIF v_assignment.role = 'MUNICIPAL_DIRECTORATE' THEN
                    SELECT municipality, province INTO v_municipality, v_province
                    FROM municipal_directorates WHERE id = v_assignment.tenant_id;
                ELSIF v_assignment.role = 'PROVINCIAL_DIRECTORATE' THEN
                    SELECT province INTO v_province
                    FROM provincial_directorates WHERE id = v_assignment.tenant_id;
                END IF;

                INSERT INTO role_cache (
                    principal_id, role, tenant_id, municipality, province, active, updated_at
                )
                VALUES (
                    p_principal_id,
                    v_assignment.role,
                    v_assignment.tenant_id,
                    v_municipality,
                    v_province,
                    v_assignment.active,
                    NOW()
                )
                ON CONFLICT (principal_id) DO UPDATE SET
                    role = EXCLUDED.role,
                    tenant_id = EXCLUDED.tenant_id,
                    municipality = EXCLUDED.municipality,
                    province = EXCLUDED.province,
                    active = EXCLUDED.active,
                    updated_at = EXCLUDED.updated_at;
            END;
            $$ LANGUAGE plpgsql SECURITY DEFINER;

            -- Trigger: keep the cache in step with role_assignments.
            -- Errors propagate so that a failed cache write aborts the source write.
            CREATE OR REPLACE FUNCTION sync_role_cache()
            RETURNS TRIGGER AS $$
            BEGIN
                IF TG_OP = 'DELETE' THEN
                    PERFORM refresh_role_cache(OLD.principal_id);
                    RETURN OLD;
                END IF;

                IF TG_OP = 'UPDATE' AND OLD.principal_id IS DISTINCT FROM NEW.principal_id THEN
                    PERFORM refresh_role_cache(OLD.principal_id);
                END IF;

                PERFORM refresh_role_cache(NEW.principal_id);
                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql SECURITY DEFINER;

            CREATE TRIGGER role_assignments_sync_role_cache
                AFTER INSERT OR UPDATE OR DELETE ON role_assignments
                FOR EACH ROW EXECUTE FUNCTION sync_role_cache();

            -- Trigger: a tenant moved to another municipality/province
            CREATE OR REPLACE FUNCTION refresh_role_cache_for_scope()
            RETURNS TRIGGER AS $$
            DECLARE
                v_principal_id UUID;
            BEGIN
                IF to_jsonb(NEW) ->> 'municipality' IS DISTINCT FROM to_jsonb(OLD) ->> 'municipality'
                   OR NEW.province IS DISTINCT FROM OLD.province THEN
                    FOR v_principal_id IN
                        SELECT principal_id FROM role_assignments
                        WHERE tenant_id = NEW.id AND principal_id IS NOT NULL
                    LOOP
                        PERFORM refresh_role_cache(v_principal_id);
                    END LOOP;
                END IF;
                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql SECURITY DEFINER;

            CREATE TRIGGER schools_refresh_role_cache
                AFTER UPDATE ON schools
                FOR EACH ROW EXECUTE FUNCTION refresh_role_cache_for_scope();

            CREATE TRIGGER municipal_directorates_refresh_role_cache
                AFTER UPDATE ON municipal_directorates
                FOR EACH ROW EXECUTE FUNCTION refresh_role_cache_for_scope();

            CREATE TRIGGER provincial_directorates_refresh_role_cache
                AFTER UPDATE ON provincial_directorates
                FOR EACH ROW EXECUTE FUNCTION refresh_role_cache_for_scope();

            -- Trigger: deleting a tenant removes the assignments scoped to it
            CREATE OR REPLACE FUNCTION delete_scoped_role_assignments()
            RETURNS TRIGGER AS $$
            BEGIN
                DELETE FROM role_assignments WHERE tenant_id = OLD.id;
                RETURN OLD;
            END;
            $$ LANGUAGE plpgsql SECURITY DEFINER;

            CREATE TRIGGER schools_delete_role_assignments
                AFTER DELETE ON schools
                FOR EACH ROW EXECUTE FUNCTION delete_scoped_role_assignments();

            CREATE TRIGGER municipal_directorates_delete_role_assignments
                AFTER DELETE ON municipal_directorates
                FOR EACH ROW EXECUTE FUNCTION delete_scoped_role_assignments();

            CREATE TRIGGER provincial_directorates_delete_role_assignments
                AFTER DELETE ON provincial_directorates
                FOR EACH ROW EXECUTE FUNCTION delete_scoped_role_assignments();

            -- Full rebuild: drops orphans and refreshes every claimed assignment
            CREATE OR REPLACE FUNCTION rebuild_role_cache()
            RETURNS INTEGER AS $$
            DECLARE
                v_principal_id UUID;
                v_count INTEGER := 0;
            BEGIN
                DELETE FROM role_cache rc
                WHERE NOT EXISTS (
                    SELECT 1 FROM role_assignments ra WHERE ra.principal_id = rc.principal_id
                );

                FOR v_principal_id IN
                    SELECT principal_id FROM role_assignments WHERE principal_id IS NOT NULL
                LOOP
                    PERFORM refresh_role_cache(v_principal_id);
                    v_count := v_count + 1;
                END LOOP;

                RETURN v_count;
            END;
            $$ LANGUAGE plpgsql SECURITY DEFINER;

            REVOKE EXECUTE ON FUNCTION rebuild_role_cache() FROM PUBLIC;

            -- Rows where the cache disagrees with the source of truth
            CREATE OR REPLACE VIEW role_cache_drift AS
            SELECT
                COALESCE(ra.principal_id, rc.principal_id) AS principal_id,
                ra.role AS expected_role,
                rc.role AS cached_role,
                ra.tenant_id AS expected_tenant_id,
                rc.tenant_id AS cached_tenant_id,
                ra.active AS expected_active,
                rc.active AS cached_active
            FROM (
                SELECT principal_id, role, tenant_id, active
                FROM role_assignments
                WHERE principal_id IS NOT NULL
            ) ra
            FULL OUTER JOIN role_cache rc ON rc.principal_id = ra.principal_id
            WHERE ra.principal_id IS NULL
               OR rc.principal_id IS NULL
               OR ra.role IS DISTINCT FROM rc.role
               OR ra.tenant_id IS DISTINCT FROM rc.tenant_id
               OR ra.active IS DISTINCT FROM rc.active;

            COMMENT ON TABLE role_cache IS
                'Projection of role_assignments read by RLS helper functions; written only by triggers';
            COMMENT ON FUNCTION rebuild_role_cache() IS
                'Recomputes role_cache from role_assignments; returns the number of refreshed principals';
            """,
            reverse_sql="""
            DROP VIEW IF EXISTS role_cache_drift;
            DROP FUNCTION IF EXISTS rebuild_role_cache();
            DROP TRIGGER IF EXISTS provincial_directorates_delete_role_assignments ON provincial_directorates;
            DROP TRIGGER IF EXISTS municipal_directorates_delete_role_assignments ON municipal_directorates;
            DROP TRIGGER IF EXISTS schools_delete_role_assignments ON schools;
            DROP FUNCTION IF EXISTS delete_scoped_role_assignments();
            DROP TRIGGER IF EXISTS provincial_directorates_refresh_role_cache ON provincial_directorates;
            DROP TRIGGER IF EXISTS municipal_directorates_refresh_role_cache ON municipal_directorates;
            DROP TRIGGER IF EXISTS schools_refresh_role_cache ON schools;
            DROP FUNCTION IF EXISTS refresh_role_cache_for_scope();
            DROP TRIGGER IF EXISTS role_assignments_sync_role_cache ON role_assignments;
            DROP FUNCTION IF EXISTS sync_role_cache();
            DROP FUNCTION IF EXISTS refresh_role_cache(UUID);
            """,
        ),
    ]
