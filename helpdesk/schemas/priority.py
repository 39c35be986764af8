"""
Pydantic schemas for ticket priorities.
"""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class PriorityBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100, description="Priority name")

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        """Names are trimmed and must not be blank."""
        v = v.strip()
        if not v:
            raise ValueError("Name cannot be blank")
        return v


class PriorityCreate(PriorityBase):
    model_config = ConfigDict(json_schema_extra={"example": {"name": "High"}})


class PriorityUpdate(PriorityBase):
    pass


class PriorityResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Priority ID")
    name: str = Field(..., description="Priority name")
