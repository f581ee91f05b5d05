"""
Tests for RBAC models.
"""
import pytest
from django.db import IntegrityError, transaction

from apps.rbac.matrix import PermissionGrant, Envelope
from apps.rbac.models import (
    Module, GlobalRole, GlobalRolePermission, TenantRole,
    TenantRolePermission, AuditLog
)


@pytest.mark.django_db
class TestModule:

    def test_active_excludes_inactive(self, modules):
        modules['reportes'].is_active = False
        modules['reportes'].save()

        codes = list(Module.objects.active().values_list('code', flat=True))
        assert 'reportes' not in codes
        assert 'contactos' in codes

    def test_by_code(self, modules):
        assert Module.objects.by_code('contactos') == modules['contactos']


@pytest.mark.django_db
class TestGlobalRole:

    def test_visible_to_tenants(self, asesor, gerente):
        GlobalRole.objects.create(code='soporte', name='Soporte', visible_to_tenants=False)
        GlobalRole.objects.create(code='legacy', name='Legacy', is_active=False)

        codes = [role.code for role in GlobalRole.objects.visible_to_tenants()]
        assert codes == ['asesor', 'gerente']

    def test_envelope_row_forces_view(self, modules):
        role = GlobalRole.objects.create(code='x', name='X')
        entry = GlobalRolePermission.objects.create(
            global_role=role, module=modules['reportes'], can_edit=True
        )
        entry.refresh_from_db()
        assert entry.can_view is True

    def test_as_envelope(self, asesor, modules):
        entry = GlobalRolePermission.objects.get(global_role=asesor, module=modules['contactos'])
        assert entry.as_envelope() == Envelope(
            can_view=True, can_create=True, can_edit=True, can_delete=False,
            max_scope_view='team', max_scope_edit='own',
        )

    def test_one_entry_per_module(self, asesor, modules):
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                GlobalRolePermission.objects.create(global_role=asesor, module=modules['contactos'])


@pytest.mark.django_db
class TestTenantRole:

    def test_code_unique_ignoring_case(self, tenant):
        TenantRole.objects.create(tenant=tenant, name='Asesor', code='asesor')
        with pytest.raises(IntegrityError):
            with transaction.atomic():
                TenantRole.objects.create(tenant=tenant, name='Otro', code='ASESOR')

    def test_same_code_in_other_tenant(self, tenant, other_tenant):
        TenantRole.objects.create(tenant=tenant, name='Asesor', code='asesor')
        TenantRole.objects.create(tenant=other_tenant, name='Asesor', code='asesor')
        assert TenantRole.objects.filter(code='asesor').count() == 2

    def test_code_reusable_after_soft_delete(self, tenant):
        role = TenantRole.objects.create(tenant=tenant, name='Asesor', code='asesor')
        role.delete()
        TenantRole.objects.create(tenant=tenant, name='Asesor', code='asesor')

        assert TenantRole.objects.filter(tenant=tenant).count() == 1
        assert TenantRole.objects_with_deleted.filter(tenant=tenant).count() == 2

    def test_code_taken(self, tenant, tenant_role):
        assert TenantRole.objects.code_taken(tenant, 'ASESOR_JUNIOR')
        assert not TenantRole.objects.code_taken(tenant, 'asesor_junior', exclude_id=tenant_role.id)
        assert not TenantRole.objects.code_taken(tenant, 'gerente')


@pytest.mark.django_db
class TestTenantRolePermission:

    def test_grant_round_trip(self, tenant_role, modules):
        grant = PermissionGrant(can_view=True, can_edit=True, scope_view='team', scope_edit='own')
        row = TenantRolePermission.from_grant(tenant_role, modules['contactos'], grant)
        row.save()

        stored = TenantRolePermission.objects.for_role(tenant_role).get()
        assert stored.as_grant() == grant


@pytest.mark.django_db
class TestAuditLog:

    def test_log_action(self, tenant, tenant_role):
        entry = AuditLog.log_action(
            action='role_created',
            tenant=tenant,
            target_type='TenantRole',
            target_id=tenant_role.id,
            diff={'code': 'asesor_junior'},
        )
        assert entry is not None
        assert AuditLog.objects.by_target('TenantRole', tenant_role.id).get() == entry
        assert entry.request_id == ''

    def test_failure_does_not_raise(self, tenant):
        # target_id must be a UUID
        assert AuditLog.log_action(action='broken', tenant=tenant, target_id='not-a-uuid') is None
        assert not AuditLog.objects.by_action('broken').exists()
