"""
RBAC (Role-Based Access Control) application.

Provides the two-level role hierarchy with:
- Platform-defined global roles and their per-module envelopes
- Per-tenant roles bound to one global role
- Permission matrix validation and normalization
- Audit logging of every role and permission change
"""
