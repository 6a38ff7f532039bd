from enum import Enum


class Role(str, Enum):
    owner = "owner"
    admin = "admin"
    receptionist = "receptionist"


ADMIN_ROLES = {Role.owner, Role.admin}
