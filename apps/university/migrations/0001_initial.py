# Generated migration for the university content gate

import uuid
import django.db.models.deletion
from django.db import migrations, models


def timestamp_fields():
    return [
        ('id', models.UUIDField(default=uuid.uuid4, editable=False, help_text='Unique identifier', primary_key=True, serialize=False)),
        ('created_at', models.DateTimeField(auto_now_add=True, db_index=True, help_text='Timestamp when the record was created')),
        ('updated_at', models.DateTimeField(auto_now=True, help_text='Timestamp when the record was last updated')),
    ]


class Migration(migrations.Migration):

    initial = True

    dependencies = [
        ('tenants', '0001_initial'),
        ('rbac', '0001_initial'),
    ]

    operations = [
        migrations.CreateModel(
            name='Course',
            fields=timestamp_fields() + [
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('title', models.CharField(max_length=255)),
                ('description', models.TextField(blank=True)),
                ('status', models.CharField(choices=[('draft', 'Draft'), ('published', 'Published'), ('archived', 'Archived')], db_index=True, default='draft', max_length=20)),
                ('tenant', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='courses', to='tenants.tenant')),
            ],
            options={
                'db_table': 'courses',
                'ordering': ['title'],
            },
        ),
        migrations.CreateModel(
            name='Section',
            fields=timestamp_fields() + [
                ('title', models.CharField(max_length=255)),
                ('position', models.PositiveIntegerField(help_text='Order within the course (1-based)')),
                ('course', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='sections', to='university.course')),
            ],
            options={
                'db_table': 'course_sections',
                'ordering': ['course', 'position'],
                'constraints': [
                    models.UniqueConstraint(fields=('course', 'position'), name='course_sections_position_uniq'),
                ],
            },
        ),
        migrations.CreateModel(
            name='Video',
            fields=timestamp_fields() + [
                ('title', models.CharField(max_length=255)),
                ('url', models.URLField(blank=True)),
                ('duration_seconds', models.PositiveIntegerField(default=0)),
                ('position', models.PositiveIntegerField()),
                ('is_preview', models.BooleanField(default=False, help_text='Preview videos are shown in the outline of locked sections')),
                ('section', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='videos', to='university.section')),
            ],
            options={
                'db_table': 'course_videos',
                'ordering': ['section', 'position'],
                'constraints': [
                    models.UniqueConstraint(fields=('section', 'position'), name='course_videos_position_uniq'),
                ],
            },
        ),
        migrations.CreateModel(
            name='RoleContentAccess',
            fields=timestamp_fields() + [
                ('course', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='role_access', to='university.course')),
                ('section_limit', models.ForeignKey(blank=True, help_text='Last section the role may see; empty for the whole course', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='access_limits', to='university.section')),
                ('tenant_role', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='content_access', to='rbac.tenantrole')),
            ],
            options={
                'db_table': 'role_content_access',
                'unique_together': {('tenant_role', 'course')},
            },
        ),
    ]
