"""
RBAC models for the two-level role hierarchy.

Implements:
- Module (registry of functional modules permissions are granted on)
- GlobalRole (platform-defined role, candidate parent for tenant roles)
- GlobalRolePermission (per-module envelope of a global role)
- TenantRole (per-tenant role derived from one global role)
- TenantRolePermission (per-module grant of a tenant role)
- TenantRoleAssignment (users holding a tenant role)
- AuditLog (audit trail of role and permission changes)
"""
import logging
from django.db import models, transaction
from django.db.models import Q
from django.db.models.functions import Lower
from apps.core.models import BaseModel, BaseModelManager, BaseModelQuerySet, TimestampedModel
from apps.rbac.matrix import PermissionGrant, Envelope

logger = logging.getLogger(__name__)


class Scope(models.TextChoices):
    """Record visibility; ordered own < team < all."""
    OWN = 'own', 'Own records'
    TEAM = 'team', 'Team records'
    ALL = 'all', 'All records'


class ModuleManager(models.Manager):
    """Manager for Module queries."""

    def active(self):
        """Return only active modules in display order."""
        return self.filter(is_active=True).order_by('category', 'position', 'name')

    def by_code(self, code):
        return self.filter(code=code).first()


class Module(TimestampedModel):
    """
    A functional area of the product (contacts, proposals, reports...).

    Module codes are the keys of every permission matrix.
    """

    CATEGORY_CHOICES = [
        ('crm', 'CRM'),
        ('finanzas', 'Finanzas'),
        ('rendimiento', 'Rendimiento'),
        ('web', 'Web'),
        ('comunicacion', 'Comunicación'),
        ('tools', 'Herramientas'),
        ('admin', 'Administración'),
    ]

    code = models.SlugField(
        max_length=50,
        unique=True,
        help_text="Module identifier (e.g., 'contactos', 'propuestas')"
    )
    name = models.CharField(
        max_length=100,
        help_text="Human-readable module name"
    )
    category = models.CharField(
        max_length=20,
        choices=CATEGORY_CHOICES,
        db_index=True,
        help_text="Module category for grouping"
    )
    position = models.PositiveIntegerField(
        default=0,
        help_text="Display order within the category"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive modules are hidden from the role editor"
    )

    objects = ModuleManager()

    class Meta:
        db_table = 'modules'
        ordering = ['category', 'position', 'name']

    def __str__(self):
        return self.code


class GlobalRoleManager(models.Manager):
    """Manager for GlobalRole queries."""

    def visible_to_tenants(self):
        """Global roles tenants may pick as a parent, in display order."""
        return self.filter(is_active=True, visible_to_tenants=True).order_by('position', 'name')


class GlobalRole(TimestampedModel):
    """
    Platform-defined role.

    Its GlobalRolePermission rows form the envelope: the most any tenant role
    derived from it may be granted, module by module.
    """

    code = models.SlugField(
        max_length=50,
        unique=True,
        help_text="Role identifier (e.g., 'asesor')"
    )
    name = models.CharField(
        max_length=100,
        help_text="Role name (e.g., 'Asesor')"
    )
    description = models.TextField(
        blank=True,
        help_text="Role description"
    )
    color = models.CharField(
        max_length=7,
        default='#667eea',
        help_text="Hex color used to render the role"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
    )
    visible_to_tenants = models.BooleanField(
        default=True,
        help_text="Whether tenants may derive roles from this one"
    )
    position = models.PositiveIntegerField(
        default=0,
        help_text="Display order"
    )

    objects = GlobalRoleManager()

    class Meta:
        db_table = 'global_roles'
        ordering = ['position', 'name']

    def __str__(self):
        return self.name


class GlobalRolePermissionManager(models.Manager):
    """Manager for envelope rows."""

    def for_global_role(self, global_role_id):
        return self.filter(global_role_id=global_role_id).select_related('module')


class GlobalRolePermission(TimestampedModel):
    """
    Envelope entry: what a global role allows for one module.
    """

    global_role = models.ForeignKey(
        GlobalRole,
        on_delete=models.CASCADE,
        related_name='envelope_entries',
    )
    module = models.ForeignKey(
        Module,
        on_delete=models.CASCADE,
        related_name='global_role_permissions',
    )
    can_view = models.BooleanField(default=False)
    can_create = models.BooleanField(default=False)
    can_edit = models.BooleanField(default=False)
    can_delete = models.BooleanField(default=False)
    max_scope_view = models.CharField(
        max_length=10,
        choices=Scope.choices,
        default=Scope.OWN,
        help_text="Widest view scope tenant roles may receive"
    )
    max_scope_edit = models.CharField(
        max_length=10,
        choices=Scope.choices,
        default=Scope.OWN,
        help_text="Widest edit scope tenant roles may receive"
    )

    objects = GlobalRolePermissionManager()

    class Meta:
        db_table = 'global_role_permissions'
        unique_together = [('global_role', 'module')]
        ordering = ['global_role', 'module']

    def __str__(self):
        return f"{self.global_role_id} - {self.module_id}"

    def save(self, *args, **kwargs):
        # Create, edit and delete are meaningless without view.
        if self.can_create or self.can_edit or self.can_delete:
            self.can_view = True
        super().save(*args, **kwargs)

    def as_envelope(self) -> Envelope:
        return Envelope(
            can_view=self.can_view,
            can_create=self.can_create,
            can_edit=self.can_edit,
            can_delete=self.can_delete,
            max_scope_view=self.max_scope_view,
            max_scope_edit=self.max_scope_edit,
        )


class TenantRoleManager(BaseModelManager.from_queryset(BaseModelQuerySet)):
    """Manager for tenant role queries."""

    def for_tenant(self, tenant):
        """Get all roles of a specific tenant."""
        return self.filter(tenant=tenant)

    def active(self):
        return self.filter(is_active=True)

    def code_taken(self, tenant, code, exclude_id=None):
        """Case-insensitive code lookup among the tenant's live roles."""
        qs = self.filter(tenant=tenant, code__iexact=code)
        if exclude_id:
            qs = qs.exclude(id=exclude_id)
        return qs.exists()


class TenantRole(BaseModel):
    """
    Per-tenant role.

    Created bare; bound to a parent GlobalRole and given permissions on the
    first permission save. ``code`` never changes after creation.
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        related_name='roles',
        db_index=True,
        help_text="Tenant this role belongs to"
    )
    name = models.CharField(
        max_length=100,
        help_text="Role name (e.g., 'Asesor Junior')"
    )
    code = models.CharField(
        max_length=100,
        help_text="Role identifier, unique per tenant (case-insensitive)"
    )
    description = models.TextField(
        blank=True,
        help_text="Role description"
    )
    color = models.CharField(
        max_length=7,
        default='#667eea',
        help_text="Hex color used to render the role"
    )
    is_active = models.BooleanField(
        default=True,
        db_index=True,
        help_text="Inactive roles are kept but switched off"
    )
    parent_global_role = models.ForeignKey(
        GlobalRole,
        on_delete=models.PROTECT,
        null=True,
        blank=True,
        related_name='tenant_roles',
        help_text="Global role whose envelope bounds this role"
    )

    objects = TenantRoleManager()

    class Meta:
        db_table = 'tenant_roles'
        ordering = ['tenant', 'name']
        constraints = [
            models.UniqueConstraint(
                Lower('code'),
                'tenant',
                condition=Q(deleted_at__isnull=True),
                name='tenant_roles_tenant_code_ci_uniq',
            ),
        ]
        indexes = [
            models.Index(fields=['tenant', 'is_active'], name='tenant_roles_active_idx'),
        ]

    def __str__(self):
        return f"{self.tenant_id} - {self.name}"


class TenantRolePermissionManager(models.Manager):
    """Manager for tenant role permission rows."""

    def for_role(self, role):
        return self.filter(role=role).select_related('module')


class TenantRolePermission(TimestampedModel):
    """
    Grant of one tenant role on one module.

    Only rows with ``can_view`` set are stored; a missing row means the role
    has nothing on that module. Rows are replaced wholesale on every save.
    """

    role = models.ForeignKey(
        TenantRole,
        on_delete=models.CASCADE,
        related_name='permissions',
    )
    module = models.ForeignKey(
        Module,
        on_delete=models.CASCADE,
        related_name='tenant_role_permissions',
    )
    can_view = models.BooleanField(default=False)
    can_create = models.BooleanField(default=False)
    can_edit = models.BooleanField(default=False)
    can_delete = models.BooleanField(default=False)
    scope_view = models.CharField(
        max_length=10,
        choices=Scope.choices,
        default=Scope.OWN,
    )
    scope_edit = models.CharField(
        max_length=10,
        choices=Scope.choices,
        default=Scope.OWN,
    )

    objects = TenantRolePermissionManager()

    class Meta:
        db_table = 'tenant_role_permissions'
        unique_together = [('role', 'module')]
        ordering = ['role', 'module']

    def __str__(self):
        return f"{self.role_id} - {self.module_id}"

    def as_grant(self) -> PermissionGrant:
        return PermissionGrant(
            can_view=self.can_view,
            can_create=self.can_create,
            can_edit=self.can_edit,
            can_delete=self.can_delete,
            scope_view=self.scope_view,
            scope_edit=self.scope_edit,
        )

    @classmethod
    def from_grant(cls, role, module, grant: PermissionGrant):
        return cls(role=role, module=module, **grant.as_dict())


class TenantRoleAssignment(TimestampedModel):
    """
    A user holding a tenant role.

    Users live in the identity service; only their id is kept here.
    """

    tenant_role = models.ForeignKey(
        TenantRole,
        on_delete=models.CASCADE,
        related_name='assignments',
    )
    user_id = models.UUIDField(
        db_index=True,
        help_text="Identity-service user id"
    )

    class Meta:
        db_table = 'tenant_role_assignments'
        unique_together = [('tenant_role', 'user_id')]

    def __str__(self):
        return f"{self.user_id} -> {self.tenant_role_id}"


class AuditLogManager(models.Manager):
    """Manager for AuditLog queries with tenant scoping."""

    def for_tenant(self, tenant):
        """Get audit logs for a specific tenant."""
        return self.filter(tenant=tenant)

    def by_action(self, action):
        """Get audit logs for a specific action."""
        return self.filter(action=action)

    def by_target(self, target_type, target_id=None):
        """Get audit logs for a specific target type and optionally target ID."""
        qs = self.filter(target_type=target_type)
        if target_id:
            qs = qs.filter(target_id=target_id)
        return qs


class AuditLog(TimestampedModel):
    """
    Audit trail for role, permission and content access changes.
    """

    tenant = models.ForeignKey(
        'tenants.Tenant',
        on_delete=models.CASCADE,
        null=True,
        blank=True,
        related_name='audit_logs',
        db_index=True,
        help_text="Tenant this action belongs to (null for platform-level)"
    )
    actor_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="User who performed the action (null for system actions)"
    )
    action = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Action performed (e.g., 'role_created', 'permissions_saved')"
    )
    target_type = models.CharField(
        max_length=50,
        db_index=True,
        help_text="Type of target entity (e.g., 'TenantRole', 'Course')"
    )
    target_id = models.UUIDField(
        null=True,
        blank=True,
        db_index=True,
        help_text="ID of target entity"
    )
    diff = models.JSONField(
        default=dict,
        blank=True,
        help_text="Before/after changes in JSON format"
    )
    request_id = models.CharField(
        max_length=64,
        blank=True,
        db_index=True,
        help_text="Request ID for tracing"
    )
    metadata = models.JSONField(
        default=dict,
        blank=True,
        help_text="Additional context metadata"
    )

    objects = AuditLogManager()

    class Meta:
        db_table = 'audit_logs'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['tenant', 'created_at'], name='audit_logs_tenant_idx'),
            models.Index(fields=['target_type', 'target_id'], name='audit_logs_target_idx'),
        ]

    def __str__(self):
        return f"{self.tenant_id or 'Platform'} - {self.actor_id or 'System'} - {self.action}"

    @classmethod
    def log_action(cls, action, tenant=None, actor_id=None, target_type='',
                   target_id=None, diff=None, metadata=None):
        """
        Convenience method to create audit log entry.

        Never raises: a failed audit write is logged and the caller carries on.
        """
        from apps.core.middleware import get_request_id

        try:
            # Savepoint keeps a failed insert from poisoning the caller's transaction.
            with transaction.atomic():
                return cls.objects.create(
                    action=action,
                    tenant=tenant,
                    actor_id=actor_id,
                    target_type=target_type,
                    target_id=target_id,
                    diff=diff or {},
                    metadata=metadata or {},
                    request_id=get_request_id() or '',
                )
        except Exception as e:
            # Fail silently - audit logging should not break the main operation
            logger.error(
                f"Failed to create audit log: {str(e)}",
                extra={'action': action, 'tenant_id': tenant.id if tenant else None},
                exc_info=True
            )
            return None
