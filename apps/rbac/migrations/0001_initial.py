# Generated migration for the RBAC role hierarchy

import uuid
import django.db.models.deletion
import django.db.models.functions.text
from django.db import migrations, models


SCOPE_CHOICES = [('own', 'Own records'), ('team', 'Team records'), ('all', 'All records')]


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
    ]

    operations = [
        migrations.CreateModel(
            name='Module',
            fields=timestamp_fields() + [
                ('code', models.SlugField(help_text="Module identifier (e.g., 'contactos', 'propuestas')", unique=True)),
                ('name', models.CharField(help_text='Human-readable module name', max_length=100)),
                ('category', models.CharField(choices=[('crm', 'CRM'), ('finanzas', 'Finanzas'), ('rendimiento', 'Rendimiento'), ('web', 'Web'), ('comunicacion', 'Comunicación'), ('tools', 'Herramientas'), ('admin', 'Administración')], db_index=True, help_text='Module category for grouping', max_length=20)),
                ('position', models.PositiveIntegerField(default=0, help_text='Display order within the category')),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Inactive modules are hidden from the role editor')),
            ],
            options={
                'db_table': 'modules',
                'ordering': ['category', 'position', 'name'],
            },
        ),
        migrations.CreateModel(
            name='GlobalRole',
            fields=timestamp_fields() + [
                ('code', models.SlugField(help_text="Role identifier (e.g., 'asesor')", unique=True)),
                ('name', models.CharField(help_text="Role name (e.g., 'Asesor')", max_length=100)),
                ('description', models.TextField(blank=True, help_text='Role description')),
                ('color', models.CharField(default='#667eea', help_text='Hex color used to render the role', max_length=7)),
                ('is_active', models.BooleanField(db_index=True, default=True)),
                ('visible_to_tenants', models.BooleanField(default=True, help_text='Whether tenants may derive roles from this one')),
                ('position', models.PositiveIntegerField(default=0, help_text='Display order')),
            ],
            options={
                'db_table': 'global_roles',
                'ordering': ['position', 'name'],
            },
        ),
        migrations.CreateModel(
            name='GlobalRolePermission',
            fields=timestamp_fields() + [
                ('can_view', models.BooleanField(default=False)),
                ('can_create', models.BooleanField(default=False)),
                ('can_edit', models.BooleanField(default=False)),
                ('can_delete', models.BooleanField(default=False)),
                ('max_scope_view', models.CharField(choices=SCOPE_CHOICES, default='own', help_text='Widest view scope tenant roles may receive', max_length=10)),
                ('max_scope_edit', models.CharField(choices=SCOPE_CHOICES, default='own', help_text='Widest edit scope tenant roles may receive', max_length=10)),
                ('global_role', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='envelope_entries', to='rbac.globalrole')),
                ('module', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='global_role_permissions', to='rbac.module')),
            ],
            options={
                'db_table': 'global_role_permissions',
                'ordering': ['global_role', 'module'],
                'unique_together': {('global_role', 'module')},
            },
        ),
        migrations.CreateModel(
            name='TenantRole',
            fields=timestamp_fields() + [
                ('deleted_at', models.DateTimeField(blank=True, db_index=True, help_text='Timestamp when the record was soft deleted', null=True)),
                ('name', models.CharField(help_text="Role name (e.g., 'Asesor Junior')", max_length=100)),
                ('code', models.CharField(help_text='Role identifier, unique per tenant (case-insensitive)', max_length=100)),
                ('description', models.TextField(blank=True, help_text='Role description')),
                ('color', models.CharField(default='#667eea', help_text='Hex color used to render the role', max_length=7)),
                ('is_active', models.BooleanField(db_index=True, default=True, help_text='Inactive roles are kept but switched off')),
                ('parent_global_role', models.ForeignKey(blank=True, help_text="Global role whose envelope bounds this role", null=True, on_delete=django.db.models.deletion.PROTECT, related_name='tenant_roles', to='rbac.globalrole')),
                ('tenant', models.ForeignKey(help_text='Tenant this role belongs to', on_delete=django.db.models.deletion.CASCADE, related_name='roles', to='tenants.tenant')),
            ],
            options={
                'db_table': 'tenant_roles',
                'ordering': ['tenant', 'name'],
                'indexes': [models.Index(fields=['tenant', 'is_active'], name='tenant_roles_active_idx')],
                'constraints': [
                    models.UniqueConstraint(
                        django.db.models.functions.text.Lower('code'),
                        models.F('tenant'),
                        condition=models.Q(deleted_at__isnull=True),
                        name='tenant_roles_tenant_code_ci_uniq',
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name='TenantRolePermission',
            fields=timestamp_fields() + [
                ('can_view', models.BooleanField(default=False)),
                ('can_create', models.BooleanField(default=False)),
                ('can_edit', models.BooleanField(default=False)),
                ('can_delete', models.BooleanField(default=False)),
                ('scope_view', models.CharField(choices=SCOPE_CHOICES, default='own', max_length=10)),
                ('scope_edit', models.CharField(choices=SCOPE_CHOICES, default='own', max_length=10)),
                ('module', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='tenant_role_permissions', to='rbac.module')),
                ('role', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='permissions', to='rbac.tenantrole')),
            ],
            options={
                'db_table': 'tenant_role_permissions',
                'ordering': ['role', 'module'],
                'unique_together': {('role', 'module')},
            },
        ),
        migrations.CreateModel(
            name='TenantRoleAssignment',
            fields=timestamp_fields() + [
                ('user_id', models.UUIDField(db_index=True, help_text='Identity-service user id')),
                ('tenant_role', models.ForeignKey(on_delete=django.db.models.deletion.CASCADE, related_name='assignments', to='rbac.tenantrole')),
            ],
            options={
                'db_table': 'tenant_role_assignments',
                'unique_together': {('tenant_role', 'user_id')},
            },
        ),
        migrations.CreateModel(
            name='AuditLog',
            fields=timestamp_fields() + [
                ('actor_id', models.UUIDField(blank=True, db_index=True, help_text='User who performed the action (null for system actions)', null=True)),
                ('action', models.CharField(db_index=True, help_text="Action performed (e.g., 'role_created', 'permissions_saved')", max_length=100)),
                ('target_type', models.CharField(db_index=True, help_text="Type of target entity (e.g., 'TenantRole', 'Course')", max_length=50)),
                ('target_id', models.UUIDField(blank=True, db_index=True, help_text='ID of target entity', null=True)),
                ('diff', models.JSONField(blank=True, default=dict, help_text='Before/after changes in JSON format')),
                ('request_id', models.CharField(blank=True, db_index=True, help_text='Request ID for tracing', max_length=64)),
                ('metadata', models.JSONField(blank=True, default=dict, help_text='Additional context metadata')),
                ('tenant', models.ForeignKey(blank=True, help_text='Tenant this action belongs to (null for platform-level)', null=True, on_delete=django.db.models.deletion.CASCADE, related_name='audit_logs', to='tenants.tenant')),
            ],
            options={
                'db_table': 'audit_logs',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['tenant', 'created_at'], name='audit_logs_tenant_idx'),
                    models.Index(fields=['target_type', 'target_id'], name='audit_logs_target_idx'),
                ],
            },
        ),
    ]
