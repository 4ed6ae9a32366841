from typing import Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field

CUSTOMER_ROLE = "customer"
SELLER_ROLE = "seller"
SERVICE_ROLE = "service_role"


class AuthUser(BaseModel):
    """
    The authenticated principal decoded from the bearer token.

    ``user_id`` is the identity used as a foreign key on carts and orders;
    ``role`` is one of customer, seller or service_role.
    """

    model_config = ConfigDict(populate_by_name=True)

    user_id: str = Field(..., alias="sub")
    email: Optional[EmailStr] = None
    role: str = CUSTOMER_ROLE

    @property
    def is_customer(self) -> bool:
        return self.role == CUSTOMER_ROLE

    @property
    def is_seller(self) -> bool:
        return self.role == SELLER_ROLE
