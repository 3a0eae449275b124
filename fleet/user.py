"""User class for dashboard accounts."""

from enum import Enum


class Role(Enum):
    """Account roles, most privileged first."""

    GM = "GM"
    SUPERVISOR = "SUPERVISOR"
    LEAD = "LEAD"
    OPERATOR = "operator"


class User:
    """A dashboard account. The password is only ever held hashed."""

    def __init__(self, username: str, password_hash: str, role: Role = Role.OPERATOR):
        self.username = username
        self.password_hash = password_hash
        self.role = role

    def to_public_dict(self) -> dict:
        return {"username": self.username, "role": self.role.value}

    def __repr__(self) -> str:
        return f"<User {self.username}>"
