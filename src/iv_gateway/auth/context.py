"""Caller identity resolved from the bearer token."""

from dataclasses import dataclass

from src.iv_common.enums import Role


@dataclass(frozen=True)
class AuthContext:
    account_id: str
    role: Role

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN
