"""
Django admin configuration for RBAC app.

Global roles and their envelopes are platform data and are managed here;
saving an envelope row re-clamps the tenant roles bound to it.
"""
from django.contrib import admin
from .models import (
    Module,
    GlobalRole,
    GlobalRolePermission,
    TenantRole,
    TenantRolePermission,
    AuditLog,
)


@admin.register(Module)
class ModuleAdmin(admin.ModelAdmin):
    list_display = ['code', 'name', 'category', 'position', 'is_active']
    list_filter = ['category', 'is_active']
    search_fields = ['code', 'name']
    ordering = ['category', 'position', 'name']


class GlobalRolePermissionInline(admin.TabularInline):
    model = GlobalRolePermission
    extra = 0
    fields = [
        'module', 'can_view', 'can_create', 'can_edit', 'can_delete',
        'max_scope_view', 'max_scope_edit'
    ]


@admin.register(GlobalRole)
class GlobalRoleAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'is_active', 'visible_to_tenants', 'position']
    list_filter = ['is_active', 'visible_to_tenants']
    search_fields = ['code', 'name']
    inlines = [GlobalRolePermissionInline]


class TenantRolePermissionInline(admin.TabularInline):
    """Read-only: tenant permissions change through the API so they stay inside the envelope."""
    model = TenantRolePermission
    extra = 0
    can_delete = False
    fields = [
        'module', 'can_view', 'can_create', 'can_edit', 'can_delete',
        'scope_view', 'scope_edit'
    ]
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(TenantRole)
class TenantRoleAdmin(admin.ModelAdmin):
    list_display = ['name', 'code', 'tenant', 'parent_global_role', 'is_active', 'created_at']
    list_filter = ['is_active', 'parent_global_role']
    search_fields = ['name', 'code', 'tenant__name']
    readonly_fields = ['code', 'parent_global_role', 'created_at', 'updated_at']
    inlines = [TenantRolePermissionInline]


@admin.register(AuditLog)
class AuditLogAdmin(admin.ModelAdmin):
    list_display = ['action', 'target_type', 'target_id', 'tenant', 'actor_id', 'created_at']
    list_filter = ['action', 'target_type']
    search_fields = ['action', 'target_id', 'request_id']
    readonly_fields = [
        'tenant', 'actor_id', 'action', 'target_type', 'target_id',
        'diff', 'metadata', 'request_id', 'created_at'
    ]
    ordering = ['-created_at']
