"""
RBAC URL configuration.
"""
from django.urls import path
from apps.rbac import views

app_name = 'rbac'

urlpatterns = [
    # Module registry
    path('modules', views.ModuleListView.as_view(), name='module-list'),

    # Global role catalog
    path('tenants/<uuid:tenant_id>/roles/global-roles', views.GlobalRoleListView.as_view(), name='global-role-list'),

    # Tenant roles
    path('tenants/<uuid:tenant_id>/roles', views.TenantRoleListView.as_view(), name='role-list'),
    path('tenants/<uuid:tenant_id>/roles/assignment-counts', views.RoleAssignmentCountsView.as_view(), name='role-assignment-counts'),
    path('tenants/<uuid:tenant_id>/roles/<uuid:role_id>', views.TenantRoleDetailView.as_view(), name='role-detail'),

    # Permission matrix
    path('tenants/<uuid:tenant_id>/roles/<uuid:role_id>/permissions', views.RolePermissionsView.as_view(), name='role-permissions'),
    path('tenants/<uuid:tenant_id>/roles/<uuid:role_id>/permissions/preview', views.RolePermissionsPreviewView.as_view(), name='role-permissions-preview'),
    path('tenants/<uuid:tenant_id>/roles/<uuid:role_id>/permissions/summary', views.RolePermissionSummaryView.as_view(), name='role-permissions-summary'),
    path('tenants/<uuid:tenant_id>/roles/<uuid:role_id>/parent', views.RoleParentView.as_view(), name='role-parent'),
    path('tenants/<uuid:tenant_id>/roles/<uuid:role_id>/copy-permissions', views.RoleCopyPermissionsView.as_view(), name='role-copy-permissions'),
]
