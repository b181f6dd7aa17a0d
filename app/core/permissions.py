"""
Role/permission resolution.

Permissions are opaque dotted ``resource.action`` strings. A role may hold
``*`` (everything) or ``resource.*`` (every action of one resource). The
resolver only does string and set membership; it knows nothing about what
the resources are.
"""
from typing import Dict, Iterable, List, Optional, Set

WILDCARD = "*"

# Catalog of every permission the back office understands
ALL_PERMISSIONS: Dict[str, str] = {
    "dashboard.view": "View dashboard",
    "dashboard.analytics": "View analytics",

    "clients.view": "View contacts",
    "clients.create": "Create contacts",
    "clients.edit": "Edit contacts",
    "clients.delete": "Delete contacts",
    "clients.export": "Export contacts",
    "clients.import": "Import contacts",

    "pipeline.view": "View sales pipeline",
    "pipeline.create": "Create pipeline cards",
    "pipeline.edit": "Edit pipeline cards",
    "pipeline.delete": "Delete pipeline cards",
    "pipeline.move": "Move cards between stages",
    "pipeline.settings": "Configure sales pipeline",

    "tasks.view": "View tasks",
    "tasks.create": "Create tasks",
    "tasks.edit": "Edit tasks",
    "tasks.delete": "Delete tasks",
    "tasks.assign": "Assign tasks",

    "whatsapp.view": "View WhatsApp",
    "whatsapp.send": "Send messages",
    "whatsapp.sessions": "Manage sessions",
    "whatsapp.templates": "Manage templates",

    "products.view": "View products",
    "products.create": "Create products",
    "products.edit": "Edit products",
    "products.delete": "Delete products",

    "ai_agent.view": "Use AI chat",
    "ai_agent.configure": "Configure AI chat",
    "ai_agent.knowledge": "Manage knowledge base",

    "ai_learning.view": "View AI learning",
    "ai_learning.feedback": "Give feedback to the AI",

    "email.view": "View emails",
    "email.send": "Send emails",

    "users.view": "View users",
    "users.create": "Create users",
    "users.edit": "Edit users",
    "users.delete": "Delete users",
    "users.invite": "Invite users",
    "users.roles": "Manage roles",

    "settings.view": "View settings",
    "settings.edit": "Edit settings",
    "settings.integrations": "Manage integrations",

    "reports.view": "View reports",
    "reports.export": "Export reports",
}

SYSTEM_ROLES: Dict[str, dict] = {
    "admin": {
        "name": "Administrator",
        "description": "Full access to the tenant",
        "permissions": [WILDCARD],
    },
    "manager": {
        "name": "Manager",
        "description": "Manages the team and day-to-day operations",
        "permissions": [
            "dashboard.view", "dashboard.analytics",
            "clients.view", "clients.create", "clients.edit", "clients.delete", "clients.export",
            "pipeline.view", "pipeline.create", "pipeline.edit", "pipeline.delete", "pipeline.move",
            "tasks.view", "tasks.create", "tasks.edit", "tasks.delete", "tasks.assign",
            "whatsapp.view", "whatsapp.send", "whatsapp.templates",
            "products.view", "products.create", "products.edit",
            "ai_agent.view",
            "users.view",
            "reports.view", "reports.export",
        ],
    },
    "sales": {
        "name": "Sales",
        "description": "Sales features",
        "permissions": [
            "dashboard.view",
            "clients.view", "clients.create", "clients.edit",
            "pipeline.view", "pipeline.create", "pipeline.edit", "pipeline.move",
            "tasks.view", "tasks.create", "tasks.edit",
            "whatsapp.view", "whatsapp.send",
            "products.view",
            "ai_agent.view",
            "users.view",
            "reports.view",
        ],
    },
    "support": {
        "name": "Support",
        "description": "Customer support",
        "permissions": [
            "dashboard.view",
            "clients.view", "clients.edit",
            "pipeline.view",
            "tasks.view", "tasks.create", "tasks.edit",
            "whatsapp.view", "whatsapp.send",
            "ai_agent.view",
        ],
    },
    "viewer": {
        "name": "Viewer",
        "description": "Read-only access",
        "permissions": [
            "dashboard.view",
            "clients.view",
            "pipeline.view",
            "tasks.view",
            "whatsapp.view",
            "products.view",
            "reports.view",
        ],
    },
}

# Highest first
ROLE_HIERARCHY: List[str] = ["admin", "manager", "sales", "support", "viewer"]


def _resource_wildcard(permission: str) -> Optional[str]:
    parts = permission.split(".")
    if len(parts) == 2:
        return f"{parts[0]}.{WILDCARD}"
    return None


def is_known_permission(permission: str) -> bool:
    """True for catalog entries, ``*`` and ``resource.*`` of a known resource."""
    if permission == WILDCARD or permission in ALL_PERMISSIONS:
        return True
    if permission.endswith(".*"):
        prefix = permission[:-1]
        return any(key.startswith(prefix) for key in ALL_PERMISSIONS)
    return False


def role_grants(granted: Iterable[str], permission: str) -> bool:
    """Does a raw permission list satisfy ``permission``?"""
    granted = set(granted or [])
    if WILDCARD in granted or permission in granted:
        return True
    wildcard = _resource_wildcard(permission)
    return wildcard is not None and wildcard in granted


def effective_permissions(role) -> Set[str]:
    """
    Expand a role's permission list into concrete permission strings.

    ``*`` expands to the whole catalog and ``resource.*`` to every catalog
    entry of that resource. Anything else is kept verbatim.
    """
    if role is None:
        return set()
    granted = list(role.permissions or [])
    if WILDCARD in granted:
        return set(ALL_PERMISSIONS)

    expanded: Set[str] = set()
    for permission in granted:
        if permission.endswith(".*"):
            prefix = permission[:-1]
            expanded.update(key for key in ALL_PERMISSIONS if key.startswith(prefix))
        else:
            expanded.add(permission)
    return expanded


def has_permission(actor, permission: str) -> bool:
    """
    Check a single permission for an actor (a User row).

    Super-admins are answered before the role is even looked at, so they
    don't need one.
    """
    if actor.is_super_admin:
        return True
    role = actor.role
    if role is None:
        return False
    return role_grants(role.permissions, permission)


def has_any(actor, permissions: Iterable[str]) -> bool:
    if actor.is_super_admin:
        return True
    return any(has_permission(actor, p) for p in permissions)


def has_all(actor, permissions: Iterable[str]) -> bool:
    if actor.is_super_admin:
        return True
    return all(has_permission(actor, p) for p in permissions)


def user_permissions(actor) -> List[str]:
    """Sorted effective permissions of an actor, for API responses."""
    if actor.is_super_admin:
        return sorted(ALL_PERMISSIONS)
    return sorted(effective_permissions(actor.role))


def role_rank(slug: Optional[str]) -> Optional[int]:
    if slug in ROLE_HIERARCHY:
        return ROLE_HIERARCHY.index(slug)
    return None


def outranks_or_equal(role, other) -> bool:
    """
    Is ``role`` at least as high as ``other`` in the system hierarchy?

    Custom roles sit outside the hierarchy; only a role holding ``*`` (or
    ``users.roles``) can hand them out.
    """
    if role is None or other is None:
        return False
    mine = role_rank(role.slug) if role.is_system else None
    theirs = role_rank(other.slug) if other.is_system else None
    if mine is not None and theirs is not None:
        return mine <= theirs
    return role_grants(role.permissions, "users.roles")


def can_manage_user(actor, target) -> bool:
    """An actor may manage users whose role does not outrank their own."""
    if actor.id == target.id:
        return False
    if actor.is_super_admin:
        return True
    if target.is_super_admin:
        return False
    if actor.role is None:
        return False
    if target.role is None:
        return True
    return outranks_or_equal(actor.role, target.role)
