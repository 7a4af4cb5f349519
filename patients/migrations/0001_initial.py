import uuid

import django.db.models.functions.text
import django.db.models.lookups
from django.db import migrations, models


UPDATED_AT_TRIGGER_SQL = """
CREATE OR REPLACE FUNCTION update_updated_at_column()
RETURNS TRIGGER AS $$
BEGIN
    NEW.updated_at = CURRENT_TIMESTAMP;
    RETURN NEW;
END;
$$ language 'plpgsql';

DROP TRIGGER IF EXISTS update_patients_updated_at ON patients;
CREATE TRIGGER update_patients_updated_at
    BEFORE UPDATE ON patients
    FOR EACH ROW
    EXECUTE FUNCTION update_updated_at_column();
"""

DROP_UPDATED_AT_TRIGGER_SQL = """
DROP TRIGGER IF EXISTS update_patients_updated_at ON patients;
DROP FUNCTION IF EXISTS update_updated_at_column();
"""


def create_updated_at_trigger(apps, schema_editor):
    # plpgsql triggers only exist on PostgreSQL; other engines rely on auto_now
    if schema_editor.connection.vendor != 'postgresql':
        return
    schema_editor.execute(UPDATED_AT_TRIGGER_SQL, params=None)


def drop_updated_at_trigger(apps, schema_editor):
    if schema_editor.connection.vendor != 'postgresql':
        return
    schema_editor.execute(DROP_UPDATED_AT_TRIGGER_SQL, params=None)


class Migration(migrations.Migration):

    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name='Patient',
            fields=[
                ('id', models.UUIDField(default=uuid.uuid4, editable=False, primary_key=True, serialize=False)),
                ('name', models.CharField(db_index=True, max_length=255)),
                ('birth_date', models.DateField()),
                ('email', models.EmailField(max_length=255, unique=True)),
                ('address', models.TextField()),
                ('created_at', models.DateTimeField(auto_now_add=True)),
                ('updated_at', models.DateTimeField(auto_now=True)),
            ],
            options={
                'db_table': 'patients',
                'ordering': ['-created_at', 'id'],
                'constraints': [
                    models.CheckConstraint(
                        condition=django.db.models.lookups.GreaterThanOrEqual(
                            django.db.models.functions.text.Length(django.db.models.functions.text.Trim('name')), 2
                        ),
                        name='patients_name_min_length',
                    ),
                    models.CheckConstraint(
                        condition=django.db.models.lookups.GreaterThanOrEqual(
                            django.db.models.functions.text.Length(django.db.models.functions.text.Trim('address')), 10
                        ),
                        name='patients_address_min_length',
                    ),
                ],
            },
        ),
        migrations.RunPython(create_updated_at_trigger, drop_updated_at_trigger),
    ]
