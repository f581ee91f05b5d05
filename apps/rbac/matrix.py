"""
Pure permission matrix functions.

Implements:
- PermissionGrant / Envelope value objects (immutable, one per module)
- toggle(): the single cascade/prerequisite rule for flipping one action
- normalize(): forces view on for any grant holding a dependent action
- violations(): every way a requested grant exceeds its envelope
- clamp(): narrows a grant so it fits an envelope
- toggle_column() / summarize(): bulk helpers used by the role editor

Nothing in here touches the database; services.py feeds it plain records.
"""
from dataclasses import dataclass, replace, asdict
from typing import Dict, Iterable, List, Mapping, Optional

VIEW = 'view'
CREATE = 'create'
EDIT = 'edit'
DELETE = 'delete'

# Display order of the role editor columns.
ACTIONS = (VIEW, CREATE, EDIT, DELETE)
DEPENDENT_ACTIONS = (CREATE, EDIT, DELETE)

OWN = 'own'
TEAM = 'team'
ALL = 'all'
SCOPE_ORDER = (OWN, TEAM, ALL)

FLAG_FIELDS = tuple(f'can_{action}' for action in ACTIONS)


def scope_rank(scope: str) -> int:
    """Ordinal of a scope: own < team < all."""
    try:
        return SCOPE_ORDER.index(scope)
    except ValueError:
        raise ValueError(f"Unknown scope '{scope}', expected one of {', '.join(SCOPE_ORDER)}")


def min_scope(a: str, b: str) -> str:
    return a if scope_rank(a) <= scope_rank(b) else b


def _check_action(action):
    if action not in ACTIONS:
        raise ValueError(f"Unknown action '{action}', expected one of {', '.join(ACTIONS)}")


@dataclass(frozen=True)
class PermissionGrant:
    """What a tenant role may do in one module."""

    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    scope_view: str = OWN
    scope_edit: str = OWN

    def __post_init__(self):
        scope_rank(self.scope_view)
        scope_rank(self.scope_edit)

    def flag(self, action: str) -> bool:
        _check_action(action)
        return getattr(self, f'can_{action}')

    @property
    def is_consistent(self) -> bool:
        """Dependent actions are only granted together with view."""
        return self.can_view or not any(self.flag(a) for a in DEPENDENT_ACTIONS)

    def as_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Mapping) -> 'PermissionGrant':
        return cls(
            can_view=bool(data.get('can_view', False)),
            can_create=bool(data.get('can_create', False)),
            can_edit=bool(data.get('can_edit', False)),
            can_delete=bool(data.get('can_delete', False)),
            scope_view=data.get('scope_view') or OWN,
            scope_edit=data.get('scope_edit') or OWN,
        )


DENY = PermissionGrant()


@dataclass(frozen=True)
class Envelope:
    """The most a global role allows for one module."""

    can_view: bool = False
    can_create: bool = False
    can_edit: bool = False
    can_delete: bool = False
    max_scope_view: str = OWN
    max_scope_edit: str = OWN

    def __post_init__(self):
        scope_rank(self.max_scope_view)
        scope_rank(self.max_scope_edit)

    def flag(self, action: str) -> bool:
        _check_action(action)
        return getattr(self, f'can_{action}')

    def as_grant(self) -> PermissionGrant:
        """The widest grant that still fits this envelope."""
        return PermissionGrant(
            can_view=self.can_view,
            can_create=self.can_create,
            can_edit=self.can_edit,
            can_delete=self.can_delete,
            scope_view=self.max_scope_view,
            scope_edit=self.max_scope_edit,
        )

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class Violation:
    """One field of one module that asks for more than the envelope allows."""

    module: str
    field: str
    requested: object
    allowed: object

    @property
    def message(self) -> str:
        if self.field.startswith('can_'):
            return f"'{self.field}' is not allowed for module '{self.module}'"
        return (
            f"'{self.field}' {self.requested!r} exceeds the maximum "
            f"{self.allowed!r} for module '{self.module}'"
        )

    def as_dict(self) -> dict:
        data = asdict(self)
        data['message'] = self.message
        return data


def toggle(grant: PermissionGrant, action: str, value: bool) -> PermissionGrant:
    """
    Set one action on a grant, applying the cascade rules.

    Turning view off turns create, edit and delete off with it. Turning any of
    create, edit or delete on turns view on.
    """
    _check_action(action)
    changes = {f'can_{action}': bool(value)}
    if action == VIEW and not value:
        changes.update(can_create=False, can_edit=False, can_delete=False)
    elif action != VIEW and value:
        changes['can_view'] = True
    return replace(grant, **changes)


def normalize(requested: PermissionGrant) -> PermissionGrant:
    """
    Bring a requested grant in line with the view prerequisite.

    Any of create, edit or delete switched on forces view on. Nothing else
    changes, so the result depends only on the request and normalizing twice
    gives the same grant. Callers that switch view off apply toggle() first,
    which clears the dependents before the grant reaches the save.
    """
    if requested.is_consistent:
        return requested
    return replace(requested, can_view=True)


def violations(module: str, requested: PermissionGrant, envelope: Envelope) -> List[Violation]:
    """All the ways ``requested`` exceeds ``envelope``; empty when it fits."""
    found = []
    for action in ACTIONS:
        if requested.flag(action) and not envelope.flag(action):
            found.append(Violation(module, f'can_{action}', True, False))
    if scope_rank(requested.scope_view) > scope_rank(envelope.max_scope_view):
        found.append(Violation(module, 'scope_view', requested.scope_view, envelope.max_scope_view))
    if scope_rank(requested.scope_edit) > scope_rank(envelope.max_scope_edit):
        found.append(Violation(module, 'scope_edit', requested.scope_edit, envelope.max_scope_edit))
    return found


def clamp(grant: PermissionGrant, envelope: Optional[Envelope]) -> PermissionGrant:
    """
    Narrow ``grant`` until it fits ``envelope``.

    Flags are ANDed with the envelope, scopes are lowered to the envelope
    maximum. A module missing from the envelope (``None``) clamps to DENY.
    """
    if envelope is None:
        return DENY
    clamped = PermissionGrant(
        can_view=grant.can_view and envelope.can_view,
        can_create=grant.can_create and envelope.can_create,
        can_edit=grant.can_edit and envelope.can_edit,
        can_delete=grant.can_delete and envelope.can_delete,
        scope_view=min_scope(grant.scope_view, envelope.max_scope_view),
        scope_edit=min_scope(grant.scope_edit, envelope.max_scope_edit),
    )
    if not clamped.can_view:
        # Losing view takes the dependents with it, never the other way round.
        clamped = toggle(clamped, VIEW, False)
    return clamped


def toggle_column(
    grants: Mapping[str, PermissionGrant],
    action: str,
    envelopes: Optional[Mapping[str, Envelope]] = None,
) -> Dict[str, PermissionGrant]:
    """
    Flip one action for every module at once.

    The column is switched on unless every module already has it, in which
    case it is switched off. With ``envelopes`` given, modules whose envelope
    forbids the action are left alone when switching on.
    """
    _check_action(action)
    turn_on = not all(grant.flag(action) for grant in grants.values())
    result = {}
    for module, grant in grants.items():
        if turn_on and envelopes is not None:
            envelope = envelopes.get(module)
            if envelope is None or not envelope.flag(action):
                result[module] = grant
                continue
        result[module] = toggle(grant, action, turn_on)
    return result


def summarize(grants: Iterable[PermissionGrant], total_modules: Optional[int] = None) -> dict:
    """Per-action module counts for a role's grants."""
    grants = list(grants)
    return {
        'total_modules': len(grants) if total_modules is None else total_modules,
        'modules_with_view': sum(1 for g in grants if g.can_view),
        'modules_with_create': sum(1 for g in grants if g.can_create),
        'modules_with_edit': sum(1 for g in grants if g.can_edit),
        'modules_with_delete': sum(1 for g in grants if g.can_delete),
    }
