# Database-level ON DELETE actions for the school hierarchy
#
# Deleting a school removes its teachers and classes; deleting a class
# removes its disciplines, students and teacher associations. Principals
# outlive their profiles (SET NULL).

from django.db import migrations

ACADEMIC_FOREIGN_KEYS = [
    ("teachers", "school_id", "CASCADE"),
    ("teachers", "principal_id", "SET NULL"),
    ("classes", "school_id", "CASCADE"),
    ("disciplines", "class_id", "CASCADE"),
    ("disciplines", "teacher_id", "SET NULL"),
    ("students", "class_id", "CASCADE"),
    ("students", "principal_id", "SET NULL"),
    ("students", "guardian_principal_id", "SET NULL"),
    ("teacher_class_disciplines", "teacher_id", "CASCADE"),
    ("teacher_class_disciplines", "class_id", "CASCADE"),
    ("teacher_class_disciplines", "discipline_id", "CASCADE"),
]


def _redefine(action_for):
    return "\n".join(
        f"SELECT redefine_foreign_key_action('{table}', '{column}', '{action_for(action)}');"
        for table, column, action in ACADEMIC_FOREIGN_KEYS
    )


class Migration(migrations.Migration):

    dependencies = [
        ("academics", "0001_initial"),
        ("core", "0003_referential_actions"),
    ]

    operations = [
        migrations.RunSQL(
            sql=_redefine(lambda action: action),
            reverse_sql=_redefine(lambda action: "NO ACTION"),
        ),
    ]
