# Session-level principal context used by every row-level security policy

from django.db import migrations


class Migration(migrations.Migration):

    dependencies = [
        ("core", "0001_initial"),
    ]

    operations = [
        migrations.RunSQL(
            sql="""
            -- Set the authenticated principal for the current session
            CREATE OR REPLACE FUNCTION set_principal_context(principal_uuid UUID)
            RETURNS void AS $$
            BEGIN
                PERFORM set_config('app.current_principal', COALESCE(principal_uuid::text, ''), false);
            END;
            $$ LANGUAGE plpgsql;

            -- Resolve the authenticated principal (NULL when anonymous)
            CREATE OR REPLACE FUNCTION current_principal_id()
            RETURNS UUID AS $$
            DECLARE
                principal_uuid TEXT;
            BEGIN
                principal_uuid := current_setting('app.current_principal', true);
                IF principal_uuid IS NULL OR principal_uuid = '' THEN
                    RETURN NULL;
                END IF;
                RETURN principal_uuid::UUID;
            EXCEPTION
                WHEN invalid_text_representation THEN
                    RETURN NULL;
            END;
            $$ LANGUAGE plpgsql STABLE;

            -- System context: registration entry points and maintenance jobs
            CREATE OR REPLACE FUNCTION is_rls_bypassed()
            RETURNS BOOLEAN AS $$
            BEGIN
                RETURN COALESCE(current_setting('app.bypass_rls', true), '') = 'true';
            END;
            $$ LANGUAGE plpgsql STABLE;

            COMMENT ON FUNCTION set_principal_context(UUID) IS
                'Sets app.current_principal for the session; NULL clears it';
            COMMENT ON FUNCTION current_principal_id() IS
                'Authenticated principal of the session, NULL when anonymous';
            COMMENT ON FUNCTION is_rls_bypassed() IS
                'True while the session runs in system context (app.bypass_rls)';
            """,
            reverse_sql="""
            DROP FUNCTION IF EXISTS is_rls_bypassed();
            DROP FUNCTION IF EXISTS current_principal_id();
            DROP FUNCTION IF EXISTS set_principal_context(UUID);
            """,
        ),
    ]
