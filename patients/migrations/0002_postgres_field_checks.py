from django.db import migrations

# CURRENT_DATE and ~* are PostgreSQL-only, so these checks are added with raw SQL
FIELD_CHECKS_SQL = r"""
ALTER TABLE patients
    ADD CONSTRAINT patients_birth_date_not_future CHECK (birth_date <= CURRENT_DATE);
ALTER TABLE patients
    ADD CONSTRAINT patients_email_format
    CHECK (email ~* '^[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}$');
"""

DROP_FIELD_CHECKS_SQL = """
ALTER TABLE patients DROP CONSTRAINT IF EXISTS patients_email_format;
ALTER TABLE patients DROP CONSTRAINT IF EXISTS patients_birth_date_not_future;
"""


def add_field_checks(apps, schema_editor):
    if schema_editor.connection.vendor != 'postgresql':
        return
    schema_editor.execute(FIELD_CHECKS_SQL, params=None)


def drop_field_checks(apps, schema_editor):
    if schema_editor.connection.vendor != 'postgresql':
        return
    schema_editor.execute(DROP_FIELD_CHECKS_SQL, params=None)


class Migration(migrations.Migration):

    dependencies = [
        ('patients', '0001_initial'),
    ]

    operations = [
        migrations.RunPython(add_field_checks, drop_field_checks),
    ]
