"""Technician domain schemas"""

from typing import Optional

from pydantic import BaseModel, field_validator

from ...shared.validators import validate_hex_color
from ...utils.sanitization import validate_and_sanitize_input


class TechnicianCreate(BaseModel):
    userId: int
    color: str = "#3B82F6"

    @field_validator("color")
    @classmethod
    def validate_color(cls, v):
        return validate_hex_color(v)


class TechnicianUpdate(BaseModel):
    technicianId: int
    name: Optional[str] = None
    color: Optional[str] = None
    active: Optional[bool] = None

    @field_validator("color")
    @classmethod
    def validate_color(cls, v):
        return validate_hex_color(v)

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is None:
            return v
        return validate_and_sanitize_input(v, max_length=255) or None
