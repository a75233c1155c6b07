from typing import Optional

from pydantic import BaseModel, Field


class RegionBase(BaseModel):
    name: str = Field(..., min_length=2, max_length=100)
    code: Optional[str] = Field(None, max_length=10)
    coefficient: float = Field(default=1.0, ge=0.8, le=1.2)


class RegionCreate(RegionBase):
    pass


class RegionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=100)
    code: Optional[str] = Field(None, max_length=10)
    coefficient: Optional[float] = Field(None, ge=0.8, le=1.2)


class RegionResponse(RegionBase):
    id: str
    teams_count: int = 0

    model_config = {"from_attributes": True}
