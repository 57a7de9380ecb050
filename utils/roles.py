DONOR = "donor"
MONASTERY_ADMIN = "monastery_admin"
SUPER_ADMIN = "super_admin"

# Highest priority first
ROLE_PRIORITY = (SUPER_ADMIN, MONASTERY_ADMIN, DONOR)
ALLOWED_ROLES = set(ROLE_PRIORITY)

ROLE_DISPLAY_NAMES = {
    DONOR: "Donor",
    MONASTERY_ADMIN: "Monastery Admin",
    SUPER_ADMIN: "Super Admin",
}


def _role_name(role):
    return role if isinstance(role, str) else getattr(role, "name", None)


def filter_role_names(roles):
    names = []
    for role in roles or []:
        name = _role_name(role)
        if name in ALLOWED_ROLES and name not in names:
            names.append(name)
    return sorted(names, key=ROLE_PRIORITY.index)


def primary_role(roles):
    """Highest-priority role held, or None when the user holds no known role."""
    held = set(filter_role_names(roles))
    for name in ROLE_PRIORITY:
        if name in held:
            return name
    return None


def display_name(role: str) -> str:
    return ROLE_DISPLAY_NAMES.get(role, "Unknown")
