"""
Tests for GlobalRoleCatalog and TenantRoleService.
"""
import uuid

import pytest
from django.db import connection

from apps.core.exceptions import ValidationError, NotFound, Conflict
from apps.rbac.models import (
    GlobalRole, TenantRole, TenantRolePermission, TenantRoleAssignment, AuditLog
)
from apps.rbac.services import (
    GlobalRoleCatalog, TenantRoleService, PermissionMatrixService, role_code_from_name
)
from apps.university.models import RoleContentAccess


class TestRoleCodeFromName:

    def test_lowercases_and_joins(self):
        assert role_code_from_name('Asesor Junior') == 'asesor_junior'

    def test_strips_accents_and_punctuation(self):
        assert role_code_from_name('Asesor Júnior (Ventas)') == 'asesor_junior_ventas'

    def test_nothing_left(self):
        assert role_code_from_name('¡¿?!') == ''


@pytest.mark.django_db
class TestGlobalRoleCatalog:

    def test_list_global_roles(self, tenant, asesor, gerente):
        GlobalRole.objects.create(code='interno', name='Interno', visible_to_tenants=False)
        roles = GlobalRoleCatalog.list_global_roles(tenant.id)
        assert [role.code for role in roles] == ['asesor', 'gerente']

    def test_unknown_tenant(self, db):
        with pytest.raises(NotFound):
            GlobalRoleCatalog.list_global_roles(uuid.uuid4())

    def test_get_envelope(self, asesor):
        envelope = GlobalRoleCatalog.get_envelope(asesor.id)
        assert set(envelope) == {'contactos', 'propiedades'}
        assert envelope['contactos'].can_delete is False
        assert envelope['contactos'].max_scope_view == 'team'

    def test_get_envelope_unknown_role(self, db):
        with pytest.raises(NotFound):
            GlobalRoleCatalog.get_envelope(uuid.uuid4())

    def test_list_modules(self, modules):
        codes = [module.code for module in GlobalRoleCatalog.list_modules()]
        assert codes == ['contactos', 'propiedades', 'reportes']


@pytest.mark.django_db
class TestCreateRole:

    def test_code_derived_from_name(self, tenant):
        role = TenantRoleService.create_role(tenant.id, name='Asesor Senior')
        assert role.code == 'asesor_senior'
        assert role.parent_global_role is None
        assert role.color == '#667eea'
        assert not role.permissions.exists()

    def test_audited(self, tenant):
        actor = uuid.uuid4()
        role = TenantRoleService.create_role(tenant.id, name='Asesor Senior', actor_id=actor)
        entry = AuditLog.objects.by_action('role_created').get()
        assert entry.target_id == role.id
        assert entry.actor_id == actor
        assert entry.tenant == tenant

    def test_duplicate_code_ignores_case(self, tenant, tenant_role):
        with pytest.raises(ValidationError) as exc_info:
            TenantRoleService.create_role(tenant.id, name='Otro', code='ASESOR_JUNIOR')
        assert exc_info.value.items[0]['field'] == 'code'

    def test_duplicate_derived_code(self, tenant, tenant_role):
        with pytest.raises(ValidationError):
            TenantRoleService.create_role(tenant.id, name='Asesor Junior')

    def test_same_code_other_tenant(self, other_tenant, tenant_role):
        role = TenantRoleService.create_role(other_tenant.id, name='Asesor Junior')
        assert role.code == 'asesor_junior'

    def test_invalid_fields_itemized(self, tenant):
        with pytest.raises(ValidationError) as exc_info:
            TenantRoleService.create_role(tenant.id, name='  ', color='red')
        fields = {item['field'] for item in exc_info.value.items}
        assert fields == {'name', 'code', 'color'}

    def test_unknown_tenant(self, db):
        with pytest.raises(NotFound):
            TenantRoleService.create_role(uuid.uuid4(), name='Asesor')


@pytest.mark.django_db
class TestUpdateRole:

    def test_updates_descriptive_fields(self, tenant, tenant_role):
        role = TenantRoleService.update_role(
            tenant.id, tenant_role.id, {'name': 'Asesor Trainee', 'is_active': False}
        )
        assert role.name == 'Asesor Trainee'
        assert role.is_active is False
        assert role.code == 'asesor_junior'
        assert AuditLog.objects.by_action('role_updated').count() == 1

    def test_code_is_immutable(self, tenant, tenant_role):
        with pytest.raises(ValidationError) as exc_info:
            TenantRoleService.update_role(tenant.id, tenant_role.id, {'code': 'otro'})
        assert exc_info.value.items == [{'field': 'code', 'message': 'Field is immutable'}]

    def test_parent_not_updatable(self, tenant, tenant_role, asesor):
        with pytest.raises(ValidationError):
            TenantRoleService.update_role(
                tenant.id, tenant_role.id, {'parent_global_role_id': str(asesor.id)}
            )

    def test_unknown_field(self, tenant, tenant_role):
        with pytest.raises(ValidationError):
            TenantRoleService.update_role(tenant.id, tenant_role.id, {'priority': 3})

    def test_update_keeps_permissions(self, tenant, tenant_role, asesor):
        PermissionMatrixService.save_permissions(
            tenant.id, tenant_role.id, asesor.id, {'contactos': {'can_view': True}}
        )
        TenantRoleService.update_role(tenant.id, tenant_role.id, {'description': 'x'})
        tenant_role.refresh_from_db()
        assert tenant_role.parent_global_role == asesor
        assert tenant_role.permissions.count() == 1

    def test_other_tenant_role_not_found(self, other_tenant, tenant_role):
        with pytest.raises(NotFound):
            TenantRoleService.update_role(other_tenant.id, tenant_role.id, {'name': 'x'})


@pytest.mark.django_db
class TestDeleteRole:

    def test_removes_role_permissions_and_access(self, tenant, tenant_role, asesor, course):
        PermissionMatrixService.save_permissions(
            tenant.id, tenant_role.id, asesor.id, {'contactos': {'can_view': True}}
        )
        RoleContentAccess.objects.create(tenant_role=tenant_role, course=course)

        TenantRoleService.delete_role(tenant.id, tenant_role.id)

        assert not TenantRole.objects.filter(id=tenant_role.id).exists()
        assert not TenantRolePermission.objects.filter(role_id=tenant_role.id).exists()
        assert not RoleContentAccess.objects.filter(tenant_role_id=tenant_role.id).exists()
        assert AuditLog.objects.by_action('role_deleted').count() == 1

    def test_refused_while_assigned(self, tenant, tenant_role):
        TenantRoleAssignment.objects.create(tenant_role=tenant_role, user_id=uuid.uuid4())

        with pytest.raises(Conflict):
            TenantRoleService.delete_role(tenant.id, tenant_role.id)
        assert TenantRole.objects.filter(id=tenant_role.id).exists()

    def test_deleted_role_not_listed(self, tenant, tenant_role):
        TenantRoleService.delete_role(tenant.id, tenant_role.id)
        assert TenantRoleService.list_roles(tenant.id) == []

    def test_backend_is_configurable(self, tenant, tenant_role, settings):
        settings.RBAC_ASSIGNMENT_BACKEND = 'apps.rbac.tests.test_role_store.AlwaysAssigned'
        with pytest.raises(Conflict):
            TenantRoleService.delete_role(tenant.id, tenant_role.id)

    def test_assignment_checked_inside_transaction(self, tenant, tenant_role, settings):
        settings.RBAC_ASSIGNMENT_BACKEND = 'apps.rbac.tests.test_role_store.SavepointRecorder'
        SavepointRecorder.depths = []
        outer = len(connection.savepoint_ids)

        TenantRoleService.delete_role(tenant.id, tenant_role.id)

        assert SavepointRecorder.depths == [outer + 1]

    def test_refused_delete_changes_nothing(self, tenant, tenant_role, asesor):
        PermissionMatrixService.save_permissions(
            tenant.id, tenant_role.id, asesor.id, {'contactos': {'can_view': True}}
        )
        TenantRoleAssignment.objects.create(tenant_role=tenant_role, user_id=uuid.uuid4())

        with pytest.raises(Conflict):
            TenantRoleService.delete_role(tenant.id, tenant_role.id)

        assert tenant_role.permissions.count() == 1
        assert not AuditLog.objects.by_action('role_deleted').exists()


class AlwaysAssigned:
    """Assignment backend stand-in that reports every role as held."""

    def exists_assignment(self, role_id):
        return True

    def assignment_counts(self, role_ids):
        return {str(role_id): 1 for role_id in role_ids}


class SavepointRecorder(AlwaysAssigned):
    """Records how deep in transactions the assignment check runs."""

    depths = []

    def exists_assignment(self, role_id):
        SavepointRecorder.depths.append(len(connection.savepoint_ids))
        return False


@pytest.mark.django_db
class TestListAndCounts:

    def test_list_roles_active_filter(self, tenant, tenant_role):
        TenantRole.objects.create(tenant=tenant, name='Baja', code='baja', is_active=False)

        assert len(TenantRoleService.list_roles(tenant.id)) == 2
        assert TenantRoleService.list_roles(tenant.id, include_inactive=False) == [tenant_role]

    def test_list_is_tenant_scoped(self, other_tenant, tenant_role):
        assert TenantRoleService.list_roles(other_tenant.id) == []

    def test_assignment_counts(self, tenant, tenant_role):
        other = TenantRole.objects.create(tenant=tenant, name='Gerente', code='gerente')
        TenantRoleAssignment.objects.create(tenant_role=tenant_role, user_id=uuid.uuid4())
        TenantRoleAssignment.objects.create(tenant_role=tenant_role, user_id=uuid.uuid4())

        counts = TenantRoleService.assignment_counts(tenant.id)
        assert counts == {str(tenant_role.id): 2, str(other.id): 0}
