"""Invitation domain schemas"""

from pydantic import BaseModel, field_validator

from ...models import ROLE_CUSTOMER_SERVICE
from ...shared.validators import validate_email, validate_role


class InvitationCreate(BaseModel):
    email: str
    role: str = ROLE_CUSTOMER_SERVICE

    @field_validator("email")
    @classmethod
    def validate_email_field(cls, v):
        return validate_email(v)

    @field_validator("role")
    @classmethod
    def validate_role_field(cls, v):
        return validate_role(v)


class InvitationAccept(BaseModel):
    token: str
