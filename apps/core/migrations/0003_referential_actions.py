# Database-level ON DELETE actions for the core foreign keys
#
# Django models declare DO_NOTHING so that PostgreSQL performs cascades and
# SET NULL inside the deleting statement. This migration looks up the
# constraints Django created (their names are hashed) and re-creates them
# with the right action. The helper function is kept for later migrations.

from django.db import migrations

CORE_FOREIGN_KEYS = [
    ("schools", "owner_id", "SET NULL"),
    ("schools", "blocked_by_id", "SET NULL"),
    ("role_assignments", "principal_id", "CASCADE"),
    ("role_cache", "principal_id", "CASCADE"),
    ("superadmin_actions", "actor_id", "SET NULL"),
    ("superadmin_actions", "target_school_id", "SET NULL"),
    ("school_backups", "deleted_by_id", "SET NULL"),
    ("school_backups", "restored_by_id", "SET NULL"),
]


def _redefine(action_for):
    return "\n".join(
        f"SELECT redefine_foreign_key_action('{table}', '{column}', '{action_for(action)}');"
        for table, column, action in CORE_FOREIGN_KEYS
    )


class Migration(migrations.Migration):

    dependencies = [
        ("core", "0002_principal_context"),
    ]

    operations = [
        migrations.RunSQL(
            sql="""
            CREATE OR REPLACE FUNCTION redefine_foreign_key_action(
                p_table TEXT,
                p_column TEXT,
                p_action TEXT
            )
            RETURNS void AS $$
            DECLARE
                v_constraint TEXT;
                v_ref_table TEXT;
                v_ref_column TEXT;
            BEGIN
                IF p_action NOT IN ('CASCADE', 'SET NULL', 'NO ACTION', 'RESTRICT') THEN
                    RAISE EXCEPTION 'Unsupported ON DELETE action: %', p_action;
                END IF;

                SELECT con.conname, ref.relname, refatt.attname
                INTO v_constraint, v_ref_table, v_ref_column
                FROM pg_constraint con
                JOIN pg_class tbl ON tbl.oid = con.conrelid
                JOIN pg_namespace ns ON ns.oid = tbl.relnamespace
                JOIN pg_attribute att
                    ON att.attrelid = con.conrelid AND att.attnum = con.conkey[1]
                JOIN pg_class ref ON ref.oid = con.confrelid
                JOIN pg_attribute refatt
                    ON refatt.attrelid = con.confrelid AND refatt.attnum = con.confkey[1]
                WHERE con.contype = 'f'
                  AND ns.nspname = current_schema()
                  AND tbl.relname = p_table
                  AND att.attname = p_column;

                IF v_constraint IS NULL THEN
                    RAISE EXCEPTION 'No foreign key found on %.%', p_table, p_column;
                END IF;

                EXECUTE format('ALTER TABLE %I DROP CONSTRAINT %I', p_table, v_constraint);
                EXECUTE format(
                    'ALTER TABLE %I ADD CONSTRAINT %I FOREIGN KEY (%I) REFERENCES %I (%I) '
                    'ON DELETE %s DEFERRABLE INITIALLY DEFERRED',
                    p_table, v_constraint, p_column, v_ref_table, v_ref_column, p_action
                );
            END;
            $$ LANGUAGE plpgsql;

            COMMENT ON FUNCTION redefine_foreign_key_action(TEXT, TEXT, TEXT) IS
                'Re-creates the foreign key on table.column with the given ON DELETE action';
            """,
            reverse_sql="DROP FUNCTION IF EXISTS redefine_foreign_key_action(TEXT, TEXT, TEXT);",
        ),
        migrations.RunSQL(
            sql=_redefine(lambda action: action),
            reverse_sql=_redefine(lambda action: "NO ACTION"),
        ),
    ]
