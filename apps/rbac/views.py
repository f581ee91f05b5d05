"""
RBAC REST API views.

Implements endpoints for:
- Module registry and global role catalog
- Tenant role management (CRUD, assignment counts)
- Permission matrix (read, save, preview, parent rebind, copy, summary)

Domain errors raised by the services are turned into responses by
apps.core.exceptions.custom_exception_handler.
"""
from rest_framework import status
from rest_framework.views import APIView
from rest_framework.response import Response
from drf_spectacular.utils import extend_schema, extend_schema_view, OpenApiExample
from drf_spectacular.types import OpenApiTypes

from apps.core.middleware import get_actor_id
from apps.rbac.services import GlobalRoleCatalog, TenantRoleService, PermissionMatrixService
from apps.rbac.serializers import (
    ModuleSerializer, GlobalRoleSerializer, TenantRoleSerializer,
    TenantRoleCreateSerializer, TenantRoleUpdateSerializer, SavePermissionsSerializer,
    PreviewPermissionsSerializer, RebindParentSerializer,
    CopyPermissionsSerializer, MatrixRowSerializer,
    grants_from_payload, grants_to_payload
)


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Modules'],
        summary='List modules',
        description='List the active functional modules permissions are granted on.',
        responses={200: ModuleSerializer(many=True)},
    )
)
class ModuleListView(APIView):
    """
    GET /v1/modules
    """

    def get(self, request):
        modules = GlobalRoleCatalog.list_modules()
        serializer = ModuleSerializer(modules, many=True)
        return Response({
            'count': len(modules),
            'modules': serializer.data
        })


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Global Roles'],
        summary='List candidate parent roles',
        description='''
List the global roles the tenant may derive roles from (active and visible
to tenants), in display order.
        ''',
        responses={200: GlobalRoleSerializer(many=True), 404: OpenApiTypes.OBJECT},
    )
)
class GlobalRoleListView(APIView):
    """
    GET /v1/tenants/{tenant_id}/roles/global-roles
    """

    def get(self, request, tenant_id):
        roles = GlobalRoleCatalog.list_global_roles(tenant_id)
        serializer = GlobalRoleSerializer(roles, many=True)
        return Response({
            'count': len(roles),
            'global_roles': serializer.data
        })


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Roles'],
        summary='List tenant roles',
        description='List the tenant roles. Pass `?active=true` to hide inactive roles.',
        responses={200: TenantRoleSerializer(many=True), 404: OpenApiTypes.OBJECT},
    ),
    post=extend_schema(
        tags=['RBAC - Roles'],
        summary='Create tenant role',
        description='''
Create a role with no parent and no permissions. Bind it to a global role by
saving its permissions afterwards.

`code` is derived from `name` when omitted (lower case, accents stripped,
other characters replaced by `_`) and is unique per tenant, ignoring case.
It cannot be changed later.
        ''',
        request=TenantRoleCreateSerializer,
        responses={201: TenantRoleSerializer, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Create role',
                value={'name': 'Asesor Junior', 'description': 'Asesor en formación', 'color': '#10b981'},
                request_only=True
            )
        ]
    )
)
class TenantRoleListView(APIView):
    """
    GET  /v1/tenants/{tenant_id}/roles
    POST /v1/tenants/{tenant_id}/roles
    """

    def get(self, request, tenant_id):
        include_inactive = request.query_params.get('active') != 'true'
        roles = TenantRoleService.list_roles(tenant_id, include_inactive=include_inactive)
        serializer = TenantRoleSerializer(roles, many=True)
        return Response({
            'count': len(roles),
            'roles': serializer.data
        })

    def post(self, request, tenant_id):
        serializer = TenantRoleCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        role = TenantRoleService.create_role(
            tenant_id,
            name=data['name'],
            code=data.get('code'),
            description=data.get('description', ''),
            color=data.get('color'),
            actor_id=get_actor_id(request),
        )
        return Response(TenantRoleSerializer(role).data, status=status.HTTP_201_CREATED)


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Roles'],
        summary='Count users per role',
        description='Number of users holding each tenant role, keyed by role id.',
        responses={200: OpenApiTypes.OBJECT},
    )
)
class RoleAssignmentCountsView(APIView):
    """
    GET /v1/tenants/{tenant_id}/roles/assignment-counts
    """

    def get(self, request, tenant_id):
        return Response({'counts': TenantRoleService.assignment_counts(tenant_id)})


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Roles'],
        summary='Get tenant role',
        responses={200: TenantRoleSerializer, 404: OpenApiTypes.OBJECT},
    ),
    patch=extend_schema(
        tags=['RBAC - Roles'],
        summary='Update tenant role',
        description='''
Update `name`, `description`, `color` or `is_active`.

`code` and `parent_global_role_id` are rejected with 400: the code is
immutable and the parent changes through the permissions endpoints.
        ''',
        request=TenantRoleUpdateSerializer,
        responses={200: TenantRoleSerializer, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    ),
    delete=extend_schema(
        tags=['RBAC - Roles'],
        summary='Delete tenant role',
        description='Delete a role with its permissions and course access. Returns 409 while users hold it.',
        responses={204: None, 404: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
    ),
)
class TenantRoleDetailView(APIView):
    """
    GET    /v1/tenants/{tenant_id}/roles/{role_id}
    PATCH  /v1/tenants/{tenant_id}/roles/{role_id}
    DELETE /v1/tenants/{tenant_id}/roles/{role_id}
    """

    def get(self, request, tenant_id, role_id):
        role = TenantRoleService.get_role(tenant_id, role_id)
        return Response(TenantRoleSerializer(role).data)

    def patch(self, request, tenant_id, role_id):
        serializer = TenantRoleUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        role = TenantRoleService.update_role(
            tenant_id, role_id, serializer.validated_data, actor_id=get_actor_id(request)
        )
        return Response(TenantRoleSerializer(role).data)

    def delete(self, request, tenant_id, role_id):
        TenantRoleService.delete_role(tenant_id, role_id, actor_id=get_actor_id(request))
        return Response(status=status.HTTP_204_NO_CONTENT)


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Permissions'],
        summary='Get permission matrix',
        description='''
Every module of the parent global role's envelope, with the envelope and the
role's current grant (all false when nothing is stored). Empty for a role
without a parent.
        ''',
        responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    ),
    put=extend_schema(
        tags=['RBAC - Permissions'],
        summary='Save permissions',
        description='''
Replace the role's permissions and bind it to `parent_global_role_id`.

- Modules outside the parent envelope: 404.
- Any flag or scope beyond the envelope: 400, with one `items` entry per
  violation (all of them, not only the first).
- Accepted entries are normalized: any of create/edit/delete switched on
  turns view on. Saving the same request twice stores the same state.
- Modules left out of the request, or without view, end up denied.

Switching to a different parent replaces the stored grants with the request
and is audited.
        ''',
        request=SavePermissionsSerializer,
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
        examples=[
            OpenApiExample(
                'Save permissions',
                value={
                    'parent_global_role_id': '123e4567-e89b-12d3-a456-426614174000',
                    'permissions': [
                        {
                            'module': 'contactos',
                            'can_view': True,
                            'can_create': True,
                            'can_edit': True,
                            'can_delete': False,
                            'scope_view': 'team',
                            'scope_edit': 'own'
                        }
                    ]
                },
                request_only=True
            )
        ]
    ),
)
class RolePermissionsView(APIView):
    """
    GET /v1/tenants/{tenant_id}/roles/{role_id}/permissions
    PUT /v1/tenants/{tenant_id}/roles/{role_id}/permissions
    """

    def get(self, request, tenant_id, role_id):
        result = PermissionMatrixService.permission_matrix(tenant_id, role_id)
        role = result['role']
        parent = result['parent_global_role']
        return Response({
            'role_id': str(role.id),
            'role_name': role.name,
            'parent_global_role': GlobalRoleSerializer(parent).data if parent else None,
            'count': len(result['modules']),
            'modules': MatrixRowSerializer(result['modules'], many=True).data,
        })

    def put(self, request, tenant_id, role_id):
        serializer = SavePermissionsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        stored = PermissionMatrixService.save_permissions(
            tenant_id,
            role_id,
            data['parent_global_role_id'],
            grants_from_payload(data['permissions']),
            actor_id=get_actor_id(request),
        )
        return Response({
            'role_id': str(role_id),
            'parent_global_role_id': str(data['parent_global_role_id']),
            'count': len(stored),
            'permissions': grants_to_payload(stored),
        })


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Permissions'],
        summary='Preview permissions',
        description='''
Dry run of the save: returns the normalized grants and the list of envelope
violations without storing anything. `toggle_column` flips one action for
every module first (on unless all modules already have it).
        ''',
        request=PreviewPermissionsSerializer,
        responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
)
class RolePermissionsPreviewView(APIView):
    """
    POST /v1/tenants/{tenant_id}/roles/{role_id}/permissions/preview
    """

    def post(self, request, tenant_id, role_id):
        serializer = PreviewPermissionsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = PermissionMatrixService.preview_permissions(
            tenant_id,
            role_id,
            data['parent_global_role_id'],
            grants_from_payload(data['permissions']),
            toggle_column=data.get('toggle_column'),
        )
        return Response({
            'permissions': grants_to_payload(result['grants']),
            'violations': result['violations'],
            'valid': not result['violations'],
        })


@extend_schema_view(
    get=extend_schema(
        tags=['RBAC - Permissions'],
        summary='Permission summary',
        description='How many modules the role can view, create, edit and delete in.',
        responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
)
class RolePermissionSummaryView(APIView):
    """
    GET /v1/tenants/{tenant_id}/roles/{role_id}/permissions/summary
    """

    def get(self, request, tenant_id, role_id):
        summary = PermissionMatrixService.permission_summary(tenant_id, role_id)
        return Response({'role_id': str(role_id), **summary})


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Permissions'],
        summary='Change parent global role',
        description='''
Bind the role to another global role, clamping stored grants to its envelope.
Returns 409 listing the affected modules when grants would be narrowed,
unless `confirm` is true.
        ''',
        request=RebindParentSerializer,
        responses={200: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT, 409: OpenApiTypes.OBJECT},
    )
)
class RoleParentView(APIView):
    """
    POST /v1/tenants/{tenant_id}/roles/{role_id}/parent
    """

    def post(self, request, tenant_id, role_id):
        serializer = RebindParentSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        result = PermissionMatrixService.rebind_parent(
            tenant_id,
            role_id,
            data['parent_global_role_id'],
            confirm=data['confirm'],
            actor_id=get_actor_id(request),
        )
        return Response({
            'role': TenantRoleSerializer(result['role']).data,
            'narrowed_modules': result['narrowed_modules'],
            'permissions': grants_to_payload(result['grants']),
        })


@extend_schema_view(
    post=extend_schema(
        tags=['RBAC - Permissions'],
        summary='Copy permissions from another role',
        description='''
Give this role the grants of `source_role_id`. The target must already have a
parent; grants its envelope does not allow are rejected with 400.
        ''',
        request=CopyPermissionsSerializer,
        responses={200: OpenApiTypes.OBJECT, 400: OpenApiTypes.OBJECT, 404: OpenApiTypes.OBJECT},
    )
)
class RoleCopyPermissionsView(APIView):
    """
    POST /v1/tenants/{tenant_id}/roles/{role_id}/copy-permissions
    """

    def post(self, request, tenant_id, role_id):
        serializer = CopyPermissionsSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        stored = PermissionMatrixService.copy_permissions(
            tenant_id,
            role_id,
            serializer.validated_data['source_role_id'],
            actor_id=get_actor_id(request),
        )
        return Response({
            'role_id': str(role_id),
            'permissions_copied': len(stored),
            'permissions': grants_to_payload(stored),
        })
