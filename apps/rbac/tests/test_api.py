"""
API tests for RBAC endpoints.
"""
import uuid

import pytest
from django.urls import reverse

from apps.rbac.matrix import PermissionGrant
from apps.rbac.models import TenantRole, TenantRoleAssignment, AuditLog
from apps.rbac.services import PermissionMatrixService


def grant_payload(module, **flags):
    return {'module': module, **PermissionGrant(**flags).as_dict()}


@pytest.mark.django_db
class TestCatalogEndpoints:

    def test_list_modules(self, api_client, modules):
        response = api_client.get(reverse('rbac:module-list'))

        assert response.status_code == 200
        assert response.data['count'] == 3
        assert [m['code'] for m in response.data['modules']] == ['contactos', 'propiedades', 'reportes']

    def test_list_global_roles(self, api_client, tenant, asesor, gerente):
        response = api_client.get(reverse('rbac:global-role-list', args=[tenant.id]))

        assert response.status_code == 200
        assert [r['code'] for r in response.data['global_roles']] == ['asesor', 'gerente']

    def test_unknown_tenant(self, api_client, db):
        response = api_client.get(reverse('rbac:global-role-list', args=[uuid.uuid4()]))

        assert response.status_code == 404
        assert response.data['code'] == 'NOT_FOUND'
        assert 'request_id' in response.data


@pytest.mark.django_db
class TestRoleEndpoints:

    def test_create_role(self, api_client, tenant):
        actor = uuid.uuid4()
        response = api_client.post(
            reverse('rbac:role-list', args=[tenant.id]),
            {'name': 'Asesor Junior', 'color': '#10b981'},
            format='json',
            HTTP_X_ACTOR_ID=str(actor),
        )

        assert response.status_code == 201
        assert response.data['code'] == 'asesor_junior'
        assert response.data['parent_global_role'] is None
        assert AuditLog.objects.by_action('role_created').get().actor_id == actor

    def test_create_duplicate_code(self, api_client, tenant, tenant_role):
        response = api_client.post(
            reverse('rbac:role-list', args=[tenant.id]),
            {'name': 'Copia', 'code': 'Asesor_Junior'},
            format='json',
        )

        assert response.status_code == 400
        assert response.data['code'] == 'VALIDATION_ERROR'
        assert response.data['items'][0]['field'] == 'code'

    def test_create_requires_name(self, api_client, tenant):
        response = api_client.post(reverse('rbac:role-list', args=[tenant.id]), {}, format='json')

        assert response.status_code == 400
        assert 'name' in response.data

    def test_list_roles(self, api_client, tenant, tenant_role):
        TenantRole.objects.create(tenant=tenant, name='Baja', code='baja', is_active=False)
        url = reverse('rbac:role-list', args=[tenant.id])

        assert api_client.get(url).data['count'] == 2
        assert api_client.get(url, {'active': 'true'}).data['count'] == 1

    def test_patch_role(self, api_client, tenant, tenant_role):
        response = api_client.patch(
            reverse('rbac:role-detail', args=[tenant.id, tenant_role.id]),
            {'name': 'Asesor Trainee'},
            format='json',
        )

        assert response.status_code == 200
        assert response.data['name'] == 'Asesor Trainee'
        assert response.data['code'] == 'asesor_junior'

    def test_patch_code_rejected(self, api_client, tenant, tenant_role):
        response = api_client.patch(
            reverse('rbac:role-detail', args=[tenant.id, tenant_role.id]),
            {'code': 'nuevo'},
            format='json',
        )

        assert response.status_code == 400

    @pytest.mark.parametrize('payload, field', [
        ({'name': 123}, 'name'),
        ({'color': 5}, 'color'),
        ({'is_active': 'banana'}, 'is_active'),
        ({'parent_global_role_id': str(uuid.uuid4())}, 'parent_global_role_id'),
        ({'priority': 3}, 'priority'),
    ])
    def test_patch_rejects_bad_values(self, api_client, tenant, tenant_role, payload, field):
        response = api_client.patch(
            reverse('rbac:role-detail', args=[tenant.id, tenant_role.id]), payload, format='json'
        )

        assert response.status_code == 400
        assert field in response.data
        tenant_role.refresh_from_db()
        assert tenant_role.name == 'Asesor Junior'

    def test_patch_bad_color_format(self, api_client, tenant, tenant_role):
        response = api_client.patch(
            reverse('rbac:role-detail', args=[tenant.id, tenant_role.id]), {'color': 'red'}, format='json'
        )

        assert response.status_code == 400
        assert response.data['items'][0]['field'] == 'color'

    def test_delete_role(self, api_client, tenant, tenant_role):
        response = api_client.delete(reverse('rbac:role-detail', args=[tenant.id, tenant_role.id]))

        assert response.status_code == 204
        assert not TenantRole.objects.filter(id=tenant_role.id).exists()

    def test_delete_assigned_role(self, api_client, tenant, tenant_role):
        TenantRoleAssignment.objects.create(tenant_role=tenant_role, user_id=uuid.uuid4())

        response = api_client.delete(reverse('rbac:role-detail', args=[tenant.id, tenant_role.id]))

        assert response.status_code == 409
        assert response.data['code'] == 'CONFLICT'

    def test_role_from_other_tenant(self, api_client, other_tenant, tenant_role):
        response = api_client.get(reverse('rbac:role-detail', args=[other_tenant.id, tenant_role.id]))
        assert response.status_code == 404

    def test_assignment_counts(self, api_client, tenant, tenant_role):
        TenantRoleAssignment.objects.create(tenant_role=tenant_role, user_id=uuid.uuid4())

        response = api_client.get(reverse('rbac:role-assignment-counts', args=[tenant.id]))

        assert response.data['counts'] == {str(tenant_role.id): 1}


@pytest.mark.django_db
class TestPermissionEndpoints:

    def put_permissions(self, api_client, role, parent, permissions):
        return api_client.put(
            reverse('rbac:role-permissions', args=[role.tenant_id, role.id]),
            {'parent_global_role_id': str(parent.id), 'permissions': permissions},
            format='json',
        )

    def test_save_and_read(self, api_client, tenant_role, asesor):
        response = self.put_permissions(api_client, tenant_role, asesor, [
            grant_payload('contactos', can_view=True, can_create=True, scope_view='team'),
        ])

        assert response.status_code == 200
        assert response.data['count'] == 1

        response = api_client.get(
            reverse('rbac:role-permissions', args=[tenant_role.tenant_id, tenant_role.id])
        )
        rows = {row['module']['code']: row for row in response.data['modules']}
        assert response.data['parent_global_role']['code'] == 'asesor'
        assert rows['contactos']['grant']['can_create'] is True
        assert rows['contactos']['envelope']['max_scope_view'] == 'team'
        assert rows['propiedades']['grant']['can_view'] is False

    def test_save_outside_envelope(self, api_client, tenant_role, asesor):
        response = self.put_permissions(api_client, tenant_role, asesor, [
            grant_payload('contactos', can_view=True, can_delete=True),
        ])

        assert response.status_code == 400
        assert response.data['items'][0]['module'] == 'contactos'
        assert response.data['items'][0]['field'] == 'can_delete'

    def test_save_unknown_module(self, api_client, tenant_role, asesor):
        response = self.put_permissions(api_client, tenant_role, asesor, [
            grant_payload('reportes', can_view=True),
        ])
        assert response.status_code == 404

    def test_save_duplicate_module(self, api_client, tenant_role, asesor):
        response = self.put_permissions(api_client, tenant_role, asesor, [
            grant_payload('contactos', can_view=True),
            grant_payload('contactos', can_view=True, can_edit=True),
        ])
        assert response.status_code == 400
        assert 'permissions' in response.data

    def test_save_bad_scope(self, api_client, tenant_role, asesor):
        payload = grant_payload('contactos', can_view=True)
        payload['scope_view'] = 'galaxy'
        response = self.put_permissions(api_client, tenant_role, asesor, [payload])
        assert response.status_code == 400

    def test_preview(self, api_client, tenant_role, asesor):
        response = api_client.post(
            reverse('rbac:role-permissions-preview', args=[tenant_role.tenant_id, tenant_role.id]),
            {
                'parent_global_role_id': str(asesor.id),
                'permissions': [grant_payload('contactos', can_edit=True)],
            },
            format='json',
        )

        assert response.status_code == 200
        assert response.data['valid'] is True
        assert response.data['permissions'][0]['can_view'] is True
        assert not tenant_role.permissions.exists()

    def test_summary(self, api_client, tenant_role, asesor):
        PermissionMatrixService.save_permissions(
            tenant_role.tenant_id, tenant_role.id, asesor.id,
            {'contactos': PermissionGrant(can_view=True, can_edit=True)},
        )

        response = api_client.get(
            reverse('rbac:role-permissions-summary', args=[tenant_role.tenant_id, tenant_role.id])
        )

        assert response.data['modules_with_view'] == 1
        assert response.data['modules_with_edit'] == 1
        assert response.data['total_modules'] == 2

    def test_rebind_conflict_then_confirm(self, api_client, tenant_role, asesor, gerente):
        PermissionMatrixService.save_permissions(
            tenant_role.tenant_id, tenant_role.id, gerente.id,
            {'reportes': PermissionGrant(can_view=True)},
        )
        url = reverse('rbac:role-parent', args=[tenant_role.tenant_id, tenant_role.id])

        response = api_client.post(url, {'parent_global_role_id': str(asesor.id)}, format='json')
        assert response.status_code == 409
        assert response.data['details']['modules'] == ['reportes']

        response = api_client.post(
            url, {'parent_global_role_id': str(asesor.id), 'confirm': True}, format='json'
        )
        assert response.status_code == 200
        assert response.data['narrowed_modules'] == ['reportes']
        assert response.data['permissions'] == []
        assert response.data['role']['parent_global_role']['code'] == 'asesor'

    def test_copy(self, api_client, tenant, tenant_role, asesor):
        PermissionMatrixService.save_permissions(
            tenant.id, tenant_role.id, asesor.id, {'contactos': PermissionGrant(can_view=True)}
        )
        target = TenantRole.objects.create(tenant=tenant, name='Otro', code='otro', parent_global_role=asesor)

        response = api_client.post(
            reverse('rbac:role-copy-permissions', args=[tenant.id, target.id]),
            {'source_role_id': str(tenant_role.id)},
            format='json',
        )

        assert response.status_code == 200
        assert response.data['permissions_copied'] == 1
        assert PermissionMatrixService.can(target.id, 'contactos', 'view')

    def test_response_carries_request_id(self, api_client, tenant_role, asesor):
        response = api_client.get(
            reverse('rbac:role-permissions', args=[tenant_role.tenant_id, tenant_role.id]),
            HTTP_X_REQUEST_ID='req-123',
        )
        assert response['X-Request-ID'] == 'req-123'
