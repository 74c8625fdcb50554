# Cross-table consistency enforced by triggers
#
# - teacher_class_disciplines: teacher and class in the same school, the
#   discipline belongs to the class
# - disciplines: the responsible teacher works at the class's school
# - teachers/classes/disciplines: no re-parenting under existing associations
# - students: academic transition normalisation
# - teachers: TEACHER role assignment granted to and revoked from the linked
#   principal, never overriding another role
# - row change history for every hierarchy table

from django.db import migrations

HISTORY_TABLES = ["teachers", "classes", "disciplines", "students", "teacher_class_disciplines"]


class Migration(migrations.Migration):

    dependencies = [
        ("academics", "0002_referential_actions"),
        ("core", "0006_audit_triggers"),
    ]

    operations = [
        migrations.RunSQL(
            sql="""
            -- Lookups run as the function owner: the caller may not be able
            -- to see the referenced rows, and an invisible row must not be
            -- mistaken for a matching one.
            CREATE OR REPLACE FUNCTION validate_teacher_class_discipline()
            RETURNS TRIGGER AS $$
            DECLARE
                v_teacher_school_id UUID;
                v_class_school_id UUID;
                v_discipline_class_id UUID;
            BEGIN
                SELECT school_id INTO v_teacher_school_id FROM teachers WHERE id = NEW.teacher_id;
                SELECT school_id INTO v_class_school_id FROM classes WHERE id = NEW.class_id;
                SELECT class_id INTO v_discipline_class_id FROM disciplines WHERE id = NEW.discipline_id;

                IF v_teacher_school_id IS NULL THEN
                    RAISE EXCEPTION 'Teacher % does not exist', NEW.teacher_id
                        USING ERRCODE = 'foreign_key_violation';
                END IF;
                IF v_class_school_id IS NULL THEN
                    RAISE EXCEPTION 'Class % does not exist', NEW.class_id
                        USING ERRCODE = 'foreign_key_violation';
                END IF;
                IF v_discipline_class_id IS NULL THEN
                    RAISE EXCEPTION 'Discipline % does not exist', NEW.discipline_id
                        USING ERRCODE = 'foreign_key_violation';
                END IF;

                IF v_teacher_school_id IS DISTINCT FROM v_class_school_id THEN
                    RAISE EXCEPTION 'Teacher % (school %) cannot be assigned to class % (school %)',
                        NEW.teacher_id, v_teacher_school_id, NEW.class_id, v_class_school_id
                        USING ERRCODE = 'check_violation';
                END IF;

                IF v_discipline_class_id IS DISTINCT FROM NEW.class_id THEN
                    RAISE EXCEPTION 'Discipline % belongs to class %, not to class %',
                        NEW.discipline_id, v_discipline_class_id, NEW.class_id
                        USING ERRCODE = 'check_violation';
                END IF;

                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql SECURITY DEFINER;

            CREATE TRIGGER teacher_class_disciplines_validate
                BEFORE INSERT OR UPDATE ON teacher_class_disciplines
                FOR EACH ROW EXECUTE FUNCTION validate_teacher_class_discipline();

            CREATE OR REPLACE FUNCTION validate_discipline_teacher()
            RETURNS TRIGGER AS $$
            DECLARE
                v_teacher_school_id UUID;
                v_class_school_id UUID;
            BEGIN
                IF NEW.teacher_id IS NULL THEN
                    RETURN NEW;
                END IF;

                SELECT school_id INTO v_teacher_school_id FROM teachers WHERE id = NEW.teacher_id;
                SELECT school_id INTO v_class_school_id FROM classes WHERE id = NEW.class_id;

                IF v_teacher_school_id IS NULL OR v_class_school_id IS NULL THEN
                    RAISE EXCEPTION 'Discipline % references a missing teacher or class', NEW.id
                        USING ERRCODE = 'foreign_key_violation';
                END IF;

                IF v_teacher_school_id IS DISTINCT FROM v_class_school_id THEN
                    RAISE EXCEPTION 'Teacher % (school %) cannot teach discipline % of school %',
                        NEW.teacher_id, v_teacher_school_id, NEW.id, v_class_school_id
                        USING ERRCODE = 'check_violation';
                END IF;

                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql SECURITY DEFINER;

            CREATE TRIGGER disciplines_validate_teacher
                BEFORE INSERT OR UPDATE OF teacher_id, class_id ON disciplines
                FOR EACH ROW EXECUTE FUNCTION validate_discipline_teacher();

            -- Moving a teacher/class to another school, or a discipline to
            -- another class, would invalidate existing associations. The
            -- table checks are nested: a NEW field is only read on the table
            -- that has it.
            CREATE OR REPLACE FUNCTION prevent_association_reparenting()
            RETURNS TRIGGER AS $$
            BEGIN
                IF TG_TABLE_NAME = 'teachers' THEN
                    IF NEW.school_id IS DISTINCT FROM OLD.school_id
                       AND EXISTS (SELECT 1 FROM teacher_class_disciplines WHERE teacher_id = OLD.id) THEN
                        RAISE EXCEPTION 'Teacher % has class assignments and cannot change school', OLD.id
                            USING ERRCODE = 'check_violation';
                    END IF;
                ELSIF TG_TABLE_NAME = 'classes' THEN
                    IF NEW.school_id IS DISTINCT FROM OLD.school_id
                       AND EXISTS (SELECT 1 FROM teacher_class_disciplines WHERE class_id = OLD.id) THEN
                        RAISE EXCEPTION 'Class % has teacher assignments and cannot change school', OLD.id
                            USING ERRCODE = 'check_violation';
                    END IF;
                ELSIF TG_TABLE_NAME = 'disciplines' THEN
                    IF NEW.class_id IS DISTINCT FROM OLD.class_id
                       AND EXISTS (SELECT 1 FROM teacher_class_disciplines WHERE discipline_id = OLD.id) THEN
                        RAISE EXCEPTION 'Discipline % has teacher assignments and cannot change class', OLD.id
                            USING ERRCODE = 'check_violation';
                    END IF;
                END IF;
                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql SECURITY DEFINER;

            CREATE TRIGGER teachers_prevent_reparenting
                BEFORE UPDATE OF school_id ON teachers
                FOR EACH ROW EXECUTE FUNCTION prevent_association_reparenting();

            CREATE TRIGGER classes_prevent_reparenting
                BEFORE UPDATE OF school_id ON classes
                FOR EACH ROW EXECUTE FUNCTION prevent_association_reparenting();

            CREATE TRIGGER disciplines_prevent_reparenting
                BEFORE UPDATE OF class_id ON disciplines
                FOR EACH ROW EXECUTE FUNCTION prevent_association_reparenting();
            """,
            reverse_sql="""
            DROP TRIGGER IF EXISTS disciplines_prevent_reparenting ON disciplines;
            DROP TRIGGER IF EXISTS classes_prevent_reparenting ON classes;
            DROP TRIGGER IF EXISTS teachers_prevent_reparenting ON teachers;
            DROP FUNCTION IF EXISTS prevent_association_reparenting();
            DROP TRIGGER IF EXISTS disciplines_validate_teacher ON disciplines;
            DROP FUNCTION IF EXISTS validate_discipline_teacher();
            DROP TRIGGER IF EXISTS teacher_class_disciplines_validate ON teacher_class_disciplines;
            DROP FUNCTION IF EXISTS validate_teacher_class_discipline();
            """,
        ),
        migrations.RunSQL(
            sql="""
            -- Attendance below 66.67% rules out conditional enrollment and
            -- fills in the retention reason; conditional enrollment defaults
            -- the exam type. Explicit values are never overwritten, so
            -- re-applying the rule is a no-op.
            CREATE OR REPLACE FUNCTION normalize_student_transition()
            RETURNS TRIGGER AS $$
            DECLARE
                v_rate TEXT;
            BEGIN
                IF NEW.attendance_rate IS NOT NULL AND NEW.attendance_rate < 66.67 THEN
                    NEW.conditional_enrollment := false;
                    v_rate := replace(to_char(round(NEW.attendance_rate, 2), 'FM990.00'), '.', ',');

                    IF NEW.retention_reason IS NULL OR NEW.retention_reason = '' THEN
                        NEW.retention_reason :=
                            'Frequência insuficiente (' || v_rate || '%, inferior ao mínimo de 66,67%)';
                    END IF;

                    IF NEW.transition_note IS NULL OR NEW.transition_note = '' THEN
                        NEW.transition_note :=
                            'Não transitou por frequência insuficiente ('
                            || v_rate || '%, inferior ao mínimo de 66,67%).';
                    END IF;
                END IF;

                IF NEW.conditional_enrollment AND (NEW.exam_type IS NULL OR NEW.exam_type = '') THEN
                    NEW.exam_type := 'Extraordinário';
                END IF;

                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql;

            CREATE TRIGGER students_normalize_transition
                BEFORE INSERT OR UPDATE ON students
                FOR EACH ROW EXECUTE FUNCTION normalize_student_transition();
            """,
            reverse_sql="""
            DROP TRIGGER IF EXISTS students_normalize_transition ON students;
            DROP FUNCTION IF EXISTS normalize_student_transition();
            """,
        ),
        migrations.RunSQL(
            sql="""
            -- A teacher with a linked principal holds a TEACHER assignment in
            -- its school. Linking never overrides another role or another
            -- school's TEACHER assignment. Unlinking or deleting the teacher
            -- revokes the assignment it granted.
            CREATE OR REPLACE FUNCTION revoke_teacher_role_assignment(
                p_teacher_id UUID,
                p_principal_id UUID
            )
            RETURNS VOID AS $$
            BEGIN
                DELETE FROM role_assignments
                WHERE principal_id = p_principal_id
                  AND role = 'TEACHER'
                  AND metadata->>'teacher_id' = p_teacher_id::text;
            END;
            $$ LANGUAGE plpgsql SECURITY DEFINER;

            CREATE OR REPLACE FUNCTION sync_teacher_role_assignment()
            RETURNS TRIGGER AS $$
            DECLARE
                v_role TEXT;
                v_tenant_id UUID;
                v_teacher_id TEXT;
            BEGIN
                IF TG_OP = 'DELETE' THEN
                    IF OLD.principal_id IS NOT NULL THEN
                        PERFORM revoke_teacher_role_assignment(OLD.id, OLD.principal_id);
                    END IF;
                    RETURN OLD;
                END IF;

                IF TG_OP = 'UPDATE' THEN
                    IF OLD.principal_id IS NOT NULL
                       AND OLD.principal_id IS DISTINCT FROM NEW.principal_id THEN
                        PERFORM revoke_teacher_role_assignment(OLD.id, OLD.principal_id);
                    END IF;
                END IF;

                IF NEW.principal_id IS NULL THEN
                    RETURN NEW;
                END IF;

                SELECT role, tenant_id, metadata->>'teacher_id'
                INTO v_role, v_tenant_id, v_teacher_id
                FROM role_assignments
                WHERE principal_id = NEW.principal_id
                FOR UPDATE;

                IF NOT FOUND THEN
                    INSERT INTO role_assignments (
                        id, principal_id, role, tenant_id, active, metadata, created_at, updated_at
                    )
                    VALUES (
                        gen_random_uuid(), NEW.principal_id, 'TEACHER', NEW.school_id,
                        NEW.active, jsonb_build_object('teacher_id', NEW.id), NOW(), NOW()
                    );
                ELSIF v_role = 'TEACHER'
                      AND (v_tenant_id = NEW.school_id OR v_teacher_id = NEW.id::text) THEN
                    UPDATE role_assignments SET
                        tenant_id = NEW.school_id,
                        active = NEW.active,
                        metadata = metadata || jsonb_build_object('teacher_id', NEW.id),
                        updated_at = NOW()
                    WHERE principal_id = NEW.principal_id;
                ELSE
                    RAISE EXCEPTION 'Principal % already holds role % (tenant %) and cannot be linked to teacher %',
                        NEW.principal_id, v_role, v_tenant_id, NEW.id
                        USING ERRCODE = 'check_violation';
                END IF;

                RETURN NEW;
            END;
            $$ LANGUAGE plpgsql SECURITY DEFINER;

            CREATE TRIGGER teachers_sync_role_assignment
                AFTER INSERT OR UPDATE OF principal_id, school_id, active OR DELETE ON teachers
                FOR EACH ROW EXECUTE FUNCTION sync_teacher_role_assignment();
            """,
            reverse_sql="""
            DROP TRIGGER IF EXISTS teachers_sync_role_assignment ON teachers;
            DROP FUNCTION IF EXISTS sync_teacher_role_assignment();
            DROP FUNCTION IF EXISTS revoke_teacher_role_assignment(UUID, UUID);
            """,
        ),
        migrations.RunSQL(
            sql="\n".join(
                f"CREATE TRIGGER {table}_record_row_change "
                f"AFTER INSERT OR UPDATE OR DELETE ON {table} "
                f"FOR EACH ROW EXECUTE FUNCTION record_row_change();"
                for table in HISTORY_TABLES
            ),
            reverse_sql="\n".join(
                f"DROP TRIGGER IF EXISTS {table}_record_row_change ON {table};"
                for table in HISTORY_TABLES
            ),
        ),
    ]
