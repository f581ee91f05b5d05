"""
RBAC serializers for REST API endpoints.

Provides serialization for:
- Modules and global roles
- Tenant roles (read, create, update)
- Permission matrix requests and responses
"""
from collections.abc import Mapping

from rest_framework import serializers
from apps.rbac.matrix import PermissionGrant
from apps.rbac.models import Module, GlobalRole, TenantRole, Scope


class ModuleSerializer(serializers.ModelSerializer):
    """Serializer for Module model."""

    class Meta:
        model = Module
        fields = ['id', 'code', 'name', 'category', 'position']
        read_only_fields = fields


class GlobalRoleSerializer(serializers.ModelSerializer):
    """Serializer for GlobalRole model."""

    class Meta:
        model = GlobalRole
        fields = ['id', 'code', 'name', 'description', 'color', 'position']
        read_only_fields = fields


class TenantRoleSerializer(serializers.ModelSerializer):
    """Serializer for TenantRole model."""

    parent_global_role = GlobalRoleSerializer(read_only=True)
    parent_global_role_id = serializers.UUIDField(read_only=True)

    class Meta:
        model = TenantRole
        fields = [
            'id', 'name', 'code', 'description', 'color', 'is_active',
            'parent_global_role_id', 'parent_global_role',
            'created_at', 'updated_at'
        ]
        read_only_fields = fields


class TenantRoleCreateSerializer(serializers.Serializer):
    """Serializer for creating roles. Uniqueness is checked by the service."""

    name = serializers.CharField(max_length=100)
    code = serializers.CharField(max_length=100, required=False, allow_blank=True)
    description = serializers.CharField(required=False, allow_blank=True, default='')
    color = serializers.CharField(max_length=7, required=False, allow_blank=True)


class TenantRoleUpdateSerializer(serializers.Serializer):
    """
    Serializer for partial role updates.

    Text fields must arrive as strings; code and parent are immutable here.
    """

    IMMUTABLE_FIELDS = ('id', 'code', 'tenant', 'tenant_id', 'parent_global_role', 'parent_global_role_id')
    TEXT_FIELDS = ('name', 'description', 'color')

    name = serializers.CharField(max_length=100, required=False)
    description = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    color = serializers.CharField(max_length=7, required=False)
    is_active = serializers.BooleanField(required=False)

    def to_internal_value(self, data):
        if isinstance(data, Mapping):
            errors = {}
            for field in self.IMMUTABLE_FIELDS:
                if field in data:
                    errors[field] = ['This field is immutable.']
            for field in data:
                if field not in self.fields and field not in self.IMMUTABLE_FIELDS:
                    errors[field] = ['Unknown field.']
            for field in self.TEXT_FIELDS:
                value = data.get(field)
                if value is not None and not isinstance(value, str):
                    errors[field] = ['Not a valid string.']
            if errors:
                raise serializers.ValidationError(errors)
        return super().to_internal_value(data)


class GrantSerializer(serializers.Serializer):
    """One module of a permission request or response."""

    module = serializers.CharField(max_length=50)
    can_view = serializers.BooleanField(default=False)
    can_create = serializers.BooleanField(default=False)
    can_edit = serializers.BooleanField(default=False)
    can_delete = serializers.BooleanField(default=False)
    scope_view = serializers.ChoiceField(choices=Scope.choices, default=Scope.OWN)
    scope_edit = serializers.ChoiceField(choices=Scope.choices, default=Scope.OWN)


def grants_from_payload(items):
    """Turn validated GrantSerializer items into {module: PermissionGrant}."""
    grants = {}
    for item in items:
        item = dict(item)
        grants[item.pop('module')] = PermissionGrant.from_dict(item)
    return grants


def grants_to_payload(grants):
    return [{'module': module, **grant.as_dict()} for module, grant in grants.items()]


class SavePermissionsSerializer(serializers.Serializer):
    """Request body of PUT /roles/{id}/permissions."""

    parent_global_role_id = serializers.UUIDField()
    permissions = GrantSerializer(many=True)

    def validate_permissions(self, value):
        """Each module may appear only once."""
        seen = set()
        duplicates = set()
        for item in value:
            if item['module'] in seen:
                duplicates.add(item['module'])
            seen.add(item['module'])
        if duplicates:
            raise serializers.ValidationError(
                f"Module(s) listed more than once: {', '.join(sorted(duplicates))}"
            )
        return value


class PreviewPermissionsSerializer(SavePermissionsSerializer):
    """Request body of POST /roles/{id}/permissions/preview."""

    toggle_column = serializers.ChoiceField(
        choices=['view', 'create', 'edit', 'delete'],
        required=False,
        allow_null=True,
    )


class RebindParentSerializer(serializers.Serializer):
    parent_global_role_id = serializers.UUIDField()
    confirm = serializers.BooleanField(default=False)


class CopyPermissionsSerializer(serializers.Serializer):
    source_role_id = serializers.UUIDField()


class MatrixRowSerializer(serializers.Serializer):
    """One row of the permission matrix view: module, envelope and grant."""

    module = ModuleSerializer()
    envelope = serializers.SerializerMethodField()
    grant = serializers.SerializerMethodField()

    def get_envelope(self, obj):
        return obj['envelope'].as_dict()

    def get_grant(self, obj):
        return obj['grant'].as_dict()
