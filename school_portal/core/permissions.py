# school_portal/core/permissions.py

from typing import Dict, Iterable, List, Set

# permission name -> category
PERMISSIONS: Dict[str, str] = {
    "users.create": "User Management",
    "users.read": "User Management",
    "users.update": "User Management",
    "users.delete": "User Management",
    "roles.create": "Role Management",
    "roles.read": "Role Management",
    "roles.update": "Role Management",
    "roles.delete": "Role Management",
    "permissions.read": "Permission Management",
    "permissions.manage": "Permission Management",
    "departments.read": "School Records",
    "departments.manage": "School Records",
    "personnel.read": "School Records",
    "personnel.manage": "School Records",
    "subjects.read": "School Records",
    "subjects.manage": "School Records",
    "evaluations.read": "Evaluations",
    "evaluations.manage": "Evaluations",
    "evaluations.submit": "Evaluations",
    "evaluations.report": "Evaluations",
    "audit_logs.read": "Audit",
    "analytics.view": "Analytics",
    "analytics.export": "Analytics",
    "ml.predict": "Analytics",
    "settings.view": "Settings",
    "settings.manage": "Settings",
}

DEFAULT_ROLES: List[dict] = [
    {
        "name": "admin",
        "displayName": "Administrator",
        "description": "Full system access with all permissions",
        "hierarchy": 1,
        "permissions": list(PERMISSIONS),
    },
    {
        "name": "manager",
        "displayName": "Manager",
        "description": "Manage school records and evaluations",
        "hierarchy": 2,
        "permissions": [
            "users.read",
            "departments.read",
            "departments.manage",
            "personnel.read",
            "personnel.manage",
            "subjects.read",
            "subjects.manage",
            "evaluations.read",
            "evaluations.manage",
            "evaluations.submit",
            "evaluations.report",
            "analytics.view",
            "analytics.export",
            "ml.predict",
            "settings.view",
        ],
    },
    {
        "name": "user",
        "displayName": "User",
        "description": "Fill evaluations and view own activity",
        "hierarchy": 3,
        "permissions": [
            "evaluations.read",
            "evaluations.submit",
            "settings.view",
        ],
    },
]

DEFAULT_ROLE_NAME = "user"


def resolve_permissions(user_roles: Iterable[str], role_docs: Iterable[dict]) -> Set[str]:
    """Union of the permissions granted by every role the user holds."""
    wanted = set(user_roles or [])
    granted: Set[str] = set()
    for role in role_docs:
        if role.get("name") in wanted:
            granted.update(role.get("permissions", []))
    return granted


def seed_rbac(database) -> None:
    """Insert the default permission catalogue and roles if they are missing."""
    for name, category in PERMISSIONS.items():
        database["permissions"].update_one(
            {"name": name},
            {"$setOnInsert": {
                "name": name,
                "displayName": name.replace(".", " ").replace("_", " ").title(),
                "category": category,
                "description": "",
            }},
            upsert=True,
        )
    for role in DEFAULT_ROLES:
        database["roles"].update_one(
            {"name": role["name"]},
            {"$setOnInsert": dict(role, isSystem=True)},
            upsert=True,
        )
