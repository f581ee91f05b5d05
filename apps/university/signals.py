"""
University signal handlers.
"""
from django.dispatch import receiver

from apps.rbac.signals import tenant_role_deleted


@receiver(tenant_role_deleted)
def drop_content_access(sender, role, **kwargs):
    """A deleted role keeps no course access behind."""
    from apps.university.models import RoleContentAccess
    RoleContentAccess.objects.filter(tenant_role=role).delete()
