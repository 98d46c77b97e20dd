from dataclasses import dataclass
from enum import Enum

from fastapi import Depends, HTTPException, Request, status


class Role(str, Enum):
    ADMIN = "ADMIN"
    MANAGER = "MANAGER"
    CASHIER = "CASHIER"


@dataclass
class Principal:
    id: int
    username: str
    role: Role
    store_id: int | None
    active: bool = True

    @property
    def is_store_bound(self) -> bool:
        return self.role == Role.CASHIER


def get_current_principal(request: Request) -> Principal:
    # The host application authenticates the request and leaves the principal here.
    principal = getattr(request.state, "principal", None)
    if principal is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    if not principal.active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Account is disabled")
    return principal


def is_admin_role(role: Role) -> bool:
    """Only administrators may reopen a closed day."""
    return role == Role.ADMIN


def require_role(*allowed: Role):
    def _dep(principal: Principal = Depends(get_current_principal)) -> Principal:
        if principal.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN)
        return principal

    return _dep


def assert_store_scope(principal: Principal, target_store_id: int) -> None:
    if principal.is_store_bound and principal.store_id != target_store_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Not allowed for this store")


def scoped_store_id(principal: Principal, requested_store_id: int | None) -> int | None:
    """Store filter for list queries; cashiers only ever see their own till."""
    if principal.is_store_bound:
        return principal.store_id
    return requested_store_id
