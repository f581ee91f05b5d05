"""
Lookup of user-to-role assignments.

The engine never assigns users itself; it only needs to know whether a
tenant role is held by anyone. The backend answering that is configurable
through ``RBAC_ASSIGNMENT_BACKEND`` so a deployment can point it at the
identity service instead of the local table.
"""
from typing import Dict, Iterable
from django.conf import settings
from django.db.models import Count
from django.utils.module_loading import import_string


class BaseAssignmentBackend:
    """Interface every assignment backend implements."""

    def exists_assignment(self, role_id) -> bool:
        raise NotImplementedError

    def assignment_counts(self, role_ids: Iterable) -> Dict[str, int]:
        """Number of users holding each role, keyed by role id string."""
        raise NotImplementedError


class ModelAssignmentBackend(BaseAssignmentBackend):
    """Answers from the local TenantRoleAssignment table."""

    def exists_assignment(self, role_id) -> bool:
        from apps.rbac.models import TenantRoleAssignment
        return TenantRoleAssignment.objects.filter(tenant_role_id=role_id).exists()

    def assignment_counts(self, role_ids: Iterable) -> Dict[str, int]:
        from apps.rbac.models import TenantRoleAssignment

        role_ids = list(role_ids)
        counts = {str(role_id): 0 for role_id in role_ids}
        rows = (
            TenantRoleAssignment.objects
            .filter(tenant_role_id__in=role_ids)
            .values('tenant_role_id')
            .annotate(total=Count('id'))
        )
        for row in rows:
            counts[str(row['tenant_role_id'])] = row['total']
        return counts


def get_assignment_backend() -> BaseAssignmentBackend:
    """Instantiate the backend named by ``RBAC_ASSIGNMENT_BACKEND``."""
    return import_string(settings.RBAC_ASSIGNMENT_BACKEND)()
