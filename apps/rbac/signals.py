"""
RBAC signals.

- tenant_role_deleted: sent inside the delete transaction so apps holding
  per-role rows (course access) can drop them.
- Envelope rows changing re-clamps every tenant role bound to that global role.
"""
from django.db.models.signals import post_save, post_delete
from django.dispatch import Signal, receiver

# Sent with ``role`` (the TenantRole being deleted).
tenant_role_deleted = Signal()


@receiver(post_save, sender='rbac.GlobalRolePermission')
def reclamp_on_envelope_saved(sender, instance, created, **kwargs):
    """Narrow bound tenant roles when an envelope entry is tightened."""
    if kwargs.get('raw'):
        # Fixture loading
        return

    # Import here to avoid circular imports
    from apps.rbac.services import PermissionMatrixService
    PermissionMatrixService.reclamp_for_global_role(instance.global_role_id)


@receiver(post_delete, sender='rbac.GlobalRolePermission')
def reclamp_on_envelope_deleted(sender, instance, **kwargs):
    """A removed envelope entry revokes the module from bound tenant roles."""
    from apps.rbac.services import PermissionMatrixService
    PermissionMatrixService.reclamp_for_global_role(instance.global_role_id)
