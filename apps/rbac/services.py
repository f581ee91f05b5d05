"""
RBAC services.

Implements:
- GlobalRoleCatalog: module registry and global role envelopes
- TenantRoleService: tenant role lifecycle (create, update, delete, counts)
- PermissionMatrixService: validation, normalization and storage of tenant
  role permissions, parent rebinding, copying, and permission queries
"""
import logging
import re
import unicodedata
import uuid
from typing import Dict, Iterable, List, Mapping, Optional, Tuple

from django.conf import settings
from django.db import IntegrityError, transaction

from apps.core.exceptions import ValidationError, NotFound, Conflict
from apps.rbac import matrix
from apps.rbac.assignments import get_assignment_backend
from apps.rbac.matrix import PermissionGrant, Envelope, DENY
from apps.rbac.models import (
    Module, GlobalRole, GlobalRolePermission, TenantRole,
    TenantRolePermission, AuditLog
)
from apps.rbac.signals import tenant_role_deleted
from apps.tenants.models import Tenant

logger = logging.getLogger(__name__)

HEX_COLOR = re.compile(r'^#[0-9a-fA-F]{6}$')

MODULE_ORDER = ('module__category', 'module__position', 'module__name')


def role_code_from_name(name: str) -> str:
    """
    Derive a role code from its name.

    'Asesor Júnior (Ventas)' -> 'asesor_junior_ventas'
    """
    ascii_name = unicodedata.normalize('NFKD', name).encode('ascii', 'ignore').decode('ascii')
    return re.sub(r'[^a-z0-9]+', '_', ascii_name.lower()).strip('_')


def _parse_uuid(value, label):
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (TypeError, ValueError):
        raise NotFound(f"{label} '{value}' not found", details={'id': str(value)})


def _get_tenant(tenant_id):
    tenant = Tenant.objects.filter(id=_parse_uuid(tenant_id, 'Tenant')).first()
    if tenant is None:
        raise NotFound(f"Tenant '{tenant_id}' not found", details={'tenant_id': str(tenant_id)})
    return tenant


def _get_role(tenant_id, role_id, for_update=False):
    qs = TenantRole.objects.filter(
        tenant_id=_parse_uuid(tenant_id, 'Tenant'),
        id=_parse_uuid(role_id, 'Role'),
    )
    if for_update:
        qs = qs.select_for_update()
    role = qs.first()
    if role is None:
        raise NotFound(f"Role '{role_id}' not found", details={'role_id': str(role_id)})
    return role


def _coerce_grants(requested: Mapping) -> Dict[str, PermissionGrant]:
    """Accept PermissionGrant values or plain dicts keyed by module code."""
    grants = {}
    errors = []
    for module, value in requested.items():
        if isinstance(value, PermissionGrant):
            grants[module] = value
            continue
        try:
            grants[module] = PermissionGrant.from_dict(value)
        except ValueError as e:
            errors.append({'module': module, 'field': 'scope', 'message': str(e)})
    if errors:
        raise ValidationError('Invalid permission values', items=errors)
    return grants


def _grant_diff(before: Mapping[str, PermissionGrant], after: Mapping[str, PermissionGrant]) -> dict:
    """Summarize how a role's stored grants changed, for the audit trail."""
    return {
        'added': sorted(m for m in after if m not in before),
        'removed': sorted(m for m in before if m not in after),
        'changed': {
            m: {'before': before[m].as_dict(), 'after': after[m].as_dict()}
            for m in sorted(after)
            if m in before and before[m] != after[m]
        },
    }


class GlobalRoleCatalog:
    """
    Read access to the platform-managed module registry and global roles.
    """

    @classmethod
    def list_modules(cls) -> List[Module]:
        return list(Module.objects.active())

    @classmethod
    def list_global_roles(cls, tenant_id) -> List[GlobalRole]:
        """Global roles the tenant may derive roles from, in display order."""
        _get_tenant(tenant_id)
        return list(GlobalRole.objects.visible_to_tenants())

    @classmethod
    def get_global_role(cls, global_role_id) -> GlobalRole:
        role = GlobalRole.objects.filter(id=_parse_uuid(global_role_id, 'Global role')).first()
        if role is None:
            raise NotFound(
                f"Global role '{global_role_id}' not found",
                details={'global_role_id': str(global_role_id)}
            )
        return role

    @classmethod
    def get_envelope(cls, global_role_id) -> Dict[str, Envelope]:
        """
        Envelope of a global role keyed by module code.

        Modules absent from the result may not be granted at all.
        """
        role = cls.get_global_role(global_role_id)
        entries = GlobalRolePermission.objects.for_global_role(role.id).order_by(*MODULE_ORDER)
        return {entry.module.code: entry.as_envelope() for entry in entries}


class TenantRoleService:
    """
    Lifecycle of tenant roles. Permissions are handled by PermissionMatrixService.
    """

    UPDATABLE_FIELDS = ('name', 'description', 'color', 'is_active')
    IMMUTABLE_FIELDS = ('id', 'code', 'tenant', 'tenant_id', 'parent_global_role', 'parent_global_role_id')

    @classmethod
    def list_roles(cls, tenant_id, include_inactive=True) -> List[TenantRole]:
        tenant = _get_tenant(tenant_id)
        roles = TenantRole.objects.for_tenant(tenant).select_related('parent_global_role')
        if not include_inactive:
            roles = roles.filter(is_active=True)
        return list(roles.order_by('name'))

    @classmethod
    def get_role(cls, tenant_id, role_id) -> TenantRole:
        return _get_role(tenant_id, role_id)

    @classmethod
    def create_role(cls, tenant_id, name, code=None, description='', color=None,
                    actor_id=None) -> TenantRole:
        """
        Create a tenant role with no parent and no permissions.

        ``code`` is derived from ``name`` when omitted and must be unique
        within the tenant, ignoring case.
        """
        tenant = _get_tenant(tenant_id)
        name = (name or '').strip()
        code = (code or '').strip() or role_code_from_name(name)
        color = color or settings.RBAC_DEFAULT_ROLE_COLOR

        errors = []
        if not name:
            errors.append({'field': 'name', 'message': 'Name is required'})
        if not code:
            errors.append({'field': 'code', 'message': 'Code is required'})
        if not HEX_COLOR.match(color):
            errors.append({'field': 'color', 'message': f"'{color}' is not a #rrggbb color"})
        if errors:
            raise ValidationError('Invalid role data', items=errors)

        duplicate = ValidationError(
            f"A role with code '{code}' already exists",
            details={'code': code},
            items=[{'field': 'code', 'message': f"Code '{code}' is already in use"}],
        )
        if TenantRole.objects.code_taken(tenant, code):
            raise duplicate

        try:
            with transaction.atomic():
                role = TenantRole.objects.create(
                    tenant=tenant,
                    name=name,
                    code=code,
                    description=description or '',
                    color=color,
                )
        except IntegrityError:
            # Lost a race against a concurrent create with the same code.
            raise duplicate

        AuditLog.log_action(
            action='role_created',
            tenant=tenant,
            actor_id=actor_id,
            target_type='TenantRole',
            target_id=role.id,
            diff={
                'name': role.name,
                'code': role.code,
                'description': role.description,
                'color': role.color,
            },
        )
        logger.info(
            f"Tenant role created: {role.code}",
            extra={'tenant_id': tenant.id, 'role_id': str(role.id)}
        )
        return role

    @classmethod
    def update_role(cls, tenant_id, role_id, changes: Mapping, actor_id=None) -> TenantRole:
        """
        Update descriptive fields of a role.

        Never touches the parent global role or the permissions.
        """
        forbidden = sorted(set(changes) & set(cls.IMMUTABLE_FIELDS))
        if forbidden:
            raise ValidationError(
                f"Field(s) cannot be changed: {', '.join(forbidden)}",
                items=[{'field': f, 'message': 'Field is immutable'} for f in forbidden],
            )
        unknown = sorted(set(changes) - set(cls.UPDATABLE_FIELDS))
        if unknown:
            raise ValidationError(
                f"Unknown field(s): {', '.join(unknown)}",
                items=[{'field': f, 'message': 'Unknown field'} for f in unknown],
            )

        changes = dict(changes)
        errors = []
        if 'name' in changes:
            changes['name'] = (changes['name'] or '').strip()
            if not changes['name']:
                errors.append({'field': 'name', 'message': 'Name is required'})
        if 'color' in changes and not HEX_COLOR.match(changes['color'] or ''):
            errors.append({'field': 'color', 'message': f"'{changes['color']}' is not a #rrggbb color"})
        if 'description' in changes:
            changes['description'] = changes['description'] or ''
        if errors:
            raise ValidationError('Invalid role data', items=errors)

        role = _get_role(tenant_id, role_id)
        if not changes:
            return role

        before = {field: getattr(role, field) for field in changes}
        for field, value in changes.items():
            setattr(role, field, value)
        role.save(update_fields=[*changes, 'updated_at'])

        AuditLog.log_action(
            action='role_updated',
            tenant=role.tenant,
            actor_id=actor_id,
            target_type='TenantRole',
            target_id=role.id,
            diff={'before': before, 'after': changes},
        )
        return role

    @classmethod
    def delete_role(cls, tenant_id, role_id, actor_id=None):
        """
        Delete a role together with its permission and content access rows.

        Refused while any user still holds the role.
        """
        with transaction.atomic():
            role = _get_role(tenant_id, role_id, for_update=True)
            if get_assignment_backend().exists_assignment(role.id):
                raise Conflict(
                    f"Role '{role.name}' is still assigned to users",
                    details={'role_id': str(role.id)}
                )

            removed = TenantRolePermission.objects.filter(role=role).delete()[0]
            tenant_role_deleted.send(sender=TenantRole, role=role)
            role.delete()

            AuditLog.log_action(
                action='role_deleted',
                tenant=role.tenant,
                actor_id=actor_id,
                target_type='TenantRole',
                target_id=role.id,
                diff={'name': role.name, 'code': role.code, 'permissions_removed': removed},
            )

        logger.info(
            f"Tenant role deleted: {role.code}",
            extra={'tenant_id': role.tenant_id, 'role_id': str(role.id)}
        )

    @classmethod
    def assignment_counts(cls, tenant_id) -> Dict[str, int]:
        """Users holding each of the tenant's roles, keyed by role id string."""
        tenant = _get_tenant(tenant_id)
        role_ids = TenantRole.objects.for_tenant(tenant).values_list('id', flat=True)
        return get_assignment_backend().assignment_counts(role_ids)


class PermissionMatrixService:
    """
    Validates, normalizes and stores the per-module grants of tenant roles.

    The stored grants of a role always fit the envelope of its parent global
    role and always satisfy the view prerequisite (see apps.rbac.matrix).
    """

    # Reads

    @classmethod
    def stored_grants(cls, role) -> Dict[str, PermissionGrant]:
        return {row.module.code: row.as_grant() for row in TenantRolePermission.objects.for_role(role)}

    @classmethod
    def _grants_for(cls, role_id) -> Dict[str, PermissionGrant]:
        rows = TenantRolePermission.objects.filter(
            role_id=_parse_uuid(role_id, 'Role'), role__deleted_at__isnull=True
        ).select_related('module')
        return {row.module.code: row.as_grant() for row in rows}

    @classmethod
    def effective_permission(cls, role_id, module) -> PermissionGrant:
        """Grant of a role on a module, DENY when nothing is stored."""
        row = TenantRolePermission.objects.filter(
            role_id=_parse_uuid(role_id, 'Role'),
            module__code=module,
            role__deleted_at__isnull=True,
        ).first()
        return row.as_grant() if row else DENY

    @classmethod
    def can(cls, role_id, module, action) -> bool:
        return cls.effective_permission(role_id, module).flag(action)

    @classmethod
    def has_any_permission(cls, role_id, checks: Iterable[Tuple[str, str]]) -> bool:
        """True if the role holds at least one of the (module, action) pairs."""
        grants = cls._grants_for(role_id)
        return any(grants.get(module, DENY).flag(action) for module, action in checks)

    @classmethod
    def has_all_permissions(cls, role_id, checks: Iterable[Tuple[str, str]]) -> bool:
        """True if the role holds every one of the (module, action) pairs."""
        grants = cls._grants_for(role_id)
        return all(grants.get(module, DENY).flag(action) for module, action in checks)

    @classmethod
    def get_scope(cls, role_id, module, kind='view') -> Optional[str]:
        """
        Scope of a role on a module, or None when the matching action is not granted.

        ``kind`` is 'view' or 'edit'.
        """
        grant = cls.effective_permission(role_id, module)
        if kind == 'view':
            return grant.scope_view if grant.can_view else None
        if kind == 'edit':
            return grant.scope_edit if grant.can_edit else None
        raise ValueError(f"Unknown scope kind '{kind}', expected 'view' or 'edit'")

    @classmethod
    def accessible_modules(cls, role_id) -> List[str]:
        """Codes of the modules the role can view, in registry order."""
        return list(
            TenantRolePermission.objects.filter(
                role_id=_parse_uuid(role_id, 'Role'), can_view=True, role__deleted_at__isnull=True
            ).order_by(*MODULE_ORDER).values_list('module__code', flat=True)
        )

    @classmethod
    def permission_summary(cls, tenant_id, role_id) -> dict:
        role = _get_role(tenant_id, role_id)
        if role.parent_global_role_id:
            total = GlobalRolePermission.objects.filter(global_role_id=role.parent_global_role_id).count()
        else:
            total = Module.objects.filter(is_active=True).count()
        return matrix.summarize(cls.stored_grants(role).values(), total_modules=total)

    @classmethod
    def permission_matrix(cls, tenant_id, role_id) -> dict:
        """
        Every module of the parent envelope with its envelope and current grant.

        A role without a parent yet has an empty matrix.
        """
        role = _get_role(tenant_id, role_id)
        modules = []
        if role.parent_global_role_id:
            stored = cls.stored_grants(role)
            entries = GlobalRolePermission.objects.for_global_role(
                role.parent_global_role_id
            ).order_by(*MODULE_ORDER)
            for entry in entries:
                modules.append({
                    'module': entry.module,
                    'envelope': entry.as_envelope(),
                    'grant': stored.get(entry.module.code, DENY),
                })
        return {
            'role': role,
            'parent_global_role': role.parent_global_role,
            'modules': modules,
        }

    # Writes

    @classmethod
    def _resolve_parent(cls, role, parent_global_role_id) -> GlobalRole:
        parent = GlobalRoleCatalog.get_global_role(parent_global_role_id)
        if parent.id != role.parent_global_role_id and not (parent.is_active and parent.visible_to_tenants):
            raise ValidationError(
                f"Global role '{parent.name}' is not available to tenants",
                items=[{'field': 'parent_global_role_id', 'message': 'Global role is not available'}],
            )
        return parent

    @classmethod
    def _evaluate(cls, parent, requested):
        envelope = GlobalRoleCatalog.get_envelope(parent.id)
        grants = _coerce_grants(requested)

        unknown = sorted(module for module in grants if module not in envelope)
        if unknown:
            raise NotFound(
                f"Module(s) not available under global role '{parent.code}': {', '.join(unknown)}",
                details={'modules': unknown, 'global_role_id': str(parent.id)}
            )

        found = [
            violation
            for module, grant in grants.items()
            for violation in matrix.violations(module, grant, envelope[module])
        ]

        normalized = {module: matrix.normalize(grant) for module, grant in grants.items()}
        return envelope, normalized, found

    @classmethod
    def _replace(cls, role, grants: Mapping[str, PermissionGrant]):
        """Swap the role's rows for ``grants``. Caller holds the transaction."""
        TenantRolePermission.objects.filter(role=role).delete()
        modules = {module.code: module for module in Module.objects.filter(code__in=list(grants))}
        TenantRolePermission.objects.bulk_create([
            TenantRolePermission.from_grant(role, modules[code], grant)
            for code, grant in grants.items()
        ])

    @classmethod
    def save_permissions(cls, tenant_id, role_id, parent_global_role_id, requested,
                         actor_id=None) -> Dict[str, PermissionGrant]:
        """
        Replace a role's permissions with ``requested``.

        ``requested`` maps module codes to grants (PermissionGrant or dict).
        Modules left out end up denied. Every envelope violation is collected
        and reported at once; nothing is written unless all entries fit.

        Returns the stored grants (modules with view only).
        """
        with transaction.atomic():
            role = _get_role(tenant_id, role_id, for_update=True)
            parent = cls._resolve_parent(role, parent_global_role_id)
            envelope, normalized, found = cls._evaluate(parent, requested)

            if found:
                modules = sorted({violation.module for violation in found})
                raise ValidationError(
                    f"Requested permissions exceed the '{parent.name}' envelope for: {', '.join(modules)}",
                    details={'modules': modules, 'global_role_id': str(parent.id)},
                    items=[violation.as_dict() for violation in found],
                )

            previous_parent_id = role.parent_global_role_id
            previous = cls.stored_grants(role)
            stored = {module: grant for module, grant in normalized.items() if grant.can_view}
            cls._replace(role, stored)

            if previous_parent_id != parent.id:
                role.parent_global_role = parent
                role.save(update_fields=['parent_global_role', 'updated_at'])
                if previous_parent_id is not None:
                    AuditLog.log_action(
                        action='role_parent_changed',
                        tenant=role.tenant,
                        actor_id=actor_id,
                        target_type='TenantRole',
                        target_id=role.id,
                        diff={
                            'parent_global_role_id': {
                                'before': str(previous_parent_id),
                                'after': str(parent.id),
                            },
                        },
                    )

            AuditLog.log_action(
                action='permissions_saved',
                tenant=role.tenant,
                actor_id=actor_id,
                target_type='TenantRole',
                target_id=role.id,
                diff=_grant_diff(previous, stored),
                metadata={'parent_global_role_id': str(parent.id)},
            )

        logger.info(
            f"Permissions saved for role {role.code}: {len(stored)} module(s)",
            extra={'tenant_id': role.tenant_id, 'role_id': str(role.id)}
        )
        return stored

    @classmethod
    def preview_permissions(cls, tenant_id, role_id, parent_global_role_id, requested,
                            toggle_column=None) -> dict:
        """
        Dry run of save_permissions.

        Returns the normalized grants and the violation items instead of
        raising on violations. ``toggle_column`` ('view', 'create', ...)
        flips that action across the request first, the way the role editor
        column headers do.
        """
        role = _get_role(tenant_id, role_id)
        parent = cls._resolve_parent(role, parent_global_role_id)
        grants = _coerce_grants(requested)
        if toggle_column:
            try:
                grants = matrix.toggle_column(
                    grants, toggle_column, GlobalRoleCatalog.get_envelope(parent.id)
                )
            except ValueError as e:
                raise ValidationError(str(e), items=[{'field': 'toggle_column', 'message': str(e)}])
        envelope, normalized, found = cls._evaluate(parent, grants)
        return {
            'grants': normalized,
            'violations': [violation.as_dict() for violation in found],
        }

    @classmethod
    def rebind_parent(cls, tenant_id, role_id, parent_global_role_id, confirm=False,
                      actor_id=None) -> dict:
        """
        Move a role under another global role, clamping its grants to the new envelope.

        Without ``confirm`` the move is refused (Conflict) when any grant
        would be narrowed; the conflict lists the affected modules.
        """
        with transaction.atomic():
            role = _get_role(tenant_id, role_id, for_update=True)
            parent = cls._resolve_parent(role, parent_global_role_id)
            envelope = GlobalRoleCatalog.get_envelope(parent.id)
            stored = cls.stored_grants(role)
            clamped = {module: matrix.clamp(grant, envelope.get(module)) for module, grant in stored.items()}
            narrowed = sorted(module for module in stored if clamped[module] != stored[module])

            if narrowed and not confirm:
                raise Conflict(
                    f"Switching to '{parent.name}' would narrow permissions on: {', '.join(narrowed)}",
                    details={
                        'modules': narrowed,
                        'changes': {
                            module: {'before': stored[module].as_dict(), 'after': clamped[module].as_dict()}
                            for module in narrowed
                        },
                    }
                )

            kept = {module: grant for module, grant in clamped.items() if grant.can_view}
            previous_parent_id = role.parent_global_role_id
            if narrowed:
                cls._replace(role, kept)
            role.parent_global_role = parent
            role.save(update_fields=['parent_global_role', 'updated_at'])

            AuditLog.log_action(
                action='role_parent_changed',
                tenant=role.tenant,
                actor_id=actor_id,
                target_type='TenantRole',
                target_id=role.id,
                diff={
                    'parent_global_role_id': {
                        'before': str(previous_parent_id) if previous_parent_id else None,
                        'after': str(parent.id),
                    },
                    'permissions': _grant_diff(stored, kept),
                },
            )

        return {'role': role, 'grants': kept, 'narrowed_modules': narrowed}

    @classmethod
    def copy_permissions(cls, tenant_id, target_role_id, source_role_id,
                         actor_id=None) -> Dict[str, PermissionGrant]:
        """
        Give the target role the same grants as the source role.

        Goes through save_permissions against the target's own parent, so a
        source grant the target's envelope does not allow is rejected, not clamped.
        """
        source = _get_role(tenant_id, source_role_id)
        target = _get_role(tenant_id, target_role_id)
        if source.id == target.id:
            raise ValidationError(
                'Source and target role are the same',
                items=[{'field': 'source_role_id', 'message': 'Pick a different role'}],
            )
        if target.parent_global_role_id is None:
            raise ValidationError(
                f"Role '{target.name}' has no parent global role yet",
                items=[{'field': 'parent_global_role_id', 'message': 'Save permissions once to bind a parent'}],
            )

        requested = cls.stored_grants(source)
        envelope = GlobalRoleCatalog.get_envelope(target.parent_global_role_id)
        missing = sorted(module for module in requested if module not in envelope)
        if missing:
            raise ValidationError(
                f"Role '{target.name}' cannot hold module(s): {', '.join(missing)}",
                details={'modules': missing},
                items=[
                    {'module': module, 'field': 'module', 'message': 'Module is outside the envelope'}
                    for module in missing
                ],
            )

        stored = cls.save_permissions(
            tenant_id, target.id, target.parent_global_role_id, requested, actor_id=actor_id
        )
        AuditLog.log_action(
            action='permissions_copied',
            tenant=target.tenant,
            actor_id=actor_id,
            target_type='TenantRole',
            target_id=target.id,
            metadata={'source_role_id': str(source.id), 'modules_copied': len(stored)},
        )
        return stored

    @classmethod
    def reclamp_for_global_role(cls, global_role_id) -> List[TenantRole]:
        """
        Clamp every tenant role bound to a global role back inside its envelope.

        Runs whenever an envelope row changes. Returns the roles that lost something.
        """
        roles = list(
            TenantRole.objects.filter(parent_global_role_id=global_role_id).select_related('tenant')
        )
        if not roles:
            return []

        envelope = GlobalRoleCatalog.get_envelope(global_role_id)
        narrowed_roles = []
        with transaction.atomic():
            for role in roles:
                stored = cls.stored_grants(role)
                clamped = {module: matrix.clamp(grant, envelope.get(module)) for module, grant in stored.items()}
                if clamped == stored:
                    continue
                kept = {module: grant for module, grant in clamped.items() if grant.can_view}
                cls._replace(role, kept)
                AuditLog.log_action(
                    action='permissions_reclamped',
                    tenant=role.tenant,
                    target_type='TenantRole',
                    target_id=role.id,
                    diff=_grant_diff(stored, kept),
                    metadata={'global_role_id': str(global_role_id)},
                )
                logger.info(
                    f"Permissions of role {role.code} narrowed to the updated envelope",
                    extra={'tenant_id': role.tenant_id, 'role_id': str(role.id)}
                )
                narrowed_roles.append(role)
        return narrowed_roles
