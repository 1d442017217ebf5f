from typing import Optional

from pydantic import BaseModel, EmailStr, Field


class AuthUser(BaseModel):
    """
    Authenticated caller decoded from the storefront JWT.

    ``sub`` carries the numeric customer id for shoppers; staff tokens carry
    ``role="admin"``.
    """

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = "customer"

    @property
    def customer_id(self) -> int:
        return int(self.user_id)

    @property
    def is_admin(self) -> bool:
        return self.role in ("admin", "service_role")
