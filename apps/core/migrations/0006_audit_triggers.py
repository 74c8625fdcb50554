# Append-only audit tables and generic row change history

from django.db import migrations


class Migration(migrations.Migration):

    dependencies = [
        ("core", "0005_role_helper_functions"),
    ]

    operations = [
        migrations.RunSQL(
            sql="""
            -- Audit rows are immutable. The only UPDATE accepted is the
            -- database nulling one of the columns passed as trigger
            -- arguments (ON DELETE SET NULL of a referenced row).
            CREATE OR REPLACE FUNCTION prevent_audit_mutation()
            RETURNS TRIGGER AS $$
            DECLARE
                v_old JSONB;
                v_new JSONB;
                v_key TEXT;
            BEGIN
                IF TG_OP = 'DELETE' THEN
                    RAISE EXCEPTION 'Rows of % are append-only and cannot be deleted', TG_TABLE_NAME;
                END IF;

                v_old := to_jsonb(OLD);
                v_new := to_jsonb(NEW);

                FOR v_key IN SELECT jsonb_object_keys(v_old) LOOP
                    IF (v_old -> v_key) IS DISTINCT FROM (v_new -> v_key)
                       AND NOT (v_key = ANY (TG_ARGV) AND (v_new -> v_key) = 'null'::jsonb) THEN
                        RAISE EXCEPTION 'Rows of % are append-only (column % cannot change)',
                            TG_TABLE_NAME, v_key;
                    END IF;
                END LOOP;

                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql;

            CREATE TRIGGER superadmin_actions_append_only
                BEFORE UPDATE OR DELETE ON superadmin_actions
                FOR EACH ROW EXECUTE FUNCTION prevent_audit_mutation('actor_id', 'target_school_id');

            CREATE TRIGGER row_changes_append_only
                BEFORE UPDATE OR DELETE ON row_changes
                FOR EACH ROW EXECUTE FUNCTION prevent_audit_mutation();

            -- Generic change history: one row per INSERT/UPDATE/DELETE
            CREATE OR REPLACE FUNCTION record_row_change()
            RETURNS TRIGGER AS $$
            BEGIN
                IF TG_OP = 'INSERT' THEN
                    INSERT INTO row_changes (
                        id, principal_id, table_name, operation, row_id, old_data, new_data, created_at
                    )
                    VALUES (
                        gen_random_uuid(), current_principal_id(), TG_TABLE_NAME, TG_OP,
                        NEW.id, NULL, to_jsonb(NEW), clock_timestamp()
                    );
                ELSIF TG_OP = 'UPDATE' THEN
                    INSERT INTO row_changes (
                        id, principal_id, table_name, operation, row_id, old_data, new_data, created_at
                    )
                    VALUES (
                        gen_random_uuid(), current_principal_id(), TG_TABLE_NAME, TG_OP,
                        NEW.id, to_jsonb(OLD), to_jsonb(NEW), clock_timestamp()
                    );
                ELSE
                    INSERT INTO row_changes (
                        id, principal_id, table_name, operation, row_id, old_data, new_data, created_at
                    )
                    VALUES (
                        gen_random_uuid(), current_principal_id(), TG_TABLE_NAME, TG_OP,
                        OLD.id, to_jsonb(OLD), NULL, clock_timestamp()
                    );
                END IF;
                RETURN NULL;
            END;
            $$ LANGUAGE plpgsql SECURITY DEFINER;

            CREATE TRIGGER schools_record_row_change
                AFTER INSERT OR UPDATE OR DELETE ON schools
                FOR EACH ROW EXECUTE FUNCTION record_row_change();

            CREATE TRIGGER municipal_directorates_record_row_change
                AFTER INSERT OR UPDATE OR DELETE ON municipal_directorates
                FOR EACH ROW EXECUTE FUNCTION record_row_change();

            CREATE TRIGGER provincial_directorates_record_row_change
                AFTER INSERT OR UPDATE OR DELETE ON provincial_directorates
                FOR EACH ROW EXECUTE FUNCTION record_row_change();

            CREATE TRIGGER role_assignments_record_row_change
                AFTER INSERT OR UPDATE OR DELETE ON role_assignments
                FOR EACH ROW EXECUTE FUNCTION record_row_change();

            COMMENT ON TABLE superadmin_actions IS
                'Append-only log of privileged actions; target_school_id is nulled when the school is deleted';
            COMMENT ON TABLE row_changes IS
                'Append-only row change history written by record_row_change()';
            """,
            reverse_sql="""
            DROP TRIGGER IF EXISTS role_assignments_record_row_change ON role_assignments;
            DROP TRIGGER IF EXISTS provincial_directorates_record_row_change ON provincial_directorates;
            DROP TRIGGER IF EXISTS municipal_directorates_record_row_change ON municipal_directorates;
            DROP TRIGGER IF EXISTS schools_record_row_change ON schools;
            DROP FUNCTION IF EXISTS record_row_change();
            DROP TRIGGER IF EXISTS row_changes_append_only ON row_changes;
            DROP TRIGGER IF EXISTS superadmin_actions_append_only ON superadmin_actions;
            DROP FUNCTION IF EXISTS prevent_audit_mutation();
            """,
        ),
    ]
