from typing import Optional

from pydantic import BaseModel, EmailStr, Field, model_validator

# Fields a filial copies from its parent team
INHERITED_FIELDS = ("region_id", "location", "email", "logo")


class TeamBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    region_id: Optional[str] = None
    location: Optional[str] = None
    email: Optional[EmailStr] = None
    logo: Optional[str] = None
    is_filial: bool = False
    parent_team_id: Optional[str] = None


class TeamCreate(TeamBase):
    @model_validator(mode="after")
    def check_parent(self):
        if self.is_filial and not self.parent_team_id:
            raise ValueError("A filial team requires a parent team")
        if not self.is_filial:
            self.parent_team_id = None
        if not self.is_filial and not self.region_id:
            raise ValueError("region_id is required for a main team")
        return self


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    region_id: Optional[str] = None
    location: Optional[str] = None
    email: Optional[EmailStr] = None
    logo: Optional[str] = None
    is_filial: Optional[bool] = None
    parent_team_id: Optional[str] = None


class TeamResponse(TeamBase):
    id: str
    region_name: Optional[str] = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_record(
        cls, row: dict, region_name: Optional[str] = None
    ) -> "TeamResponse":
        return cls(
            id=str(row["id"]),
            name=row["name"],
            region_id=row.get("regionId"),
            location=row.get("location"),
            email=row.get("email") or None,
            logo=row.get("logo"),
            is_filial=bool(row.get("isFilial")),
            parent_team_id=row.get("parentTeamId"),
            region_name=region_name,
        )


def team_to_record(data: dict) -> dict:
    """Map snake_case team fields onto the teams table columns."""
    columns = {
        "name": "name",
        "region_id": "regionId",
        "location": "location",
        "email": "email",
        "logo": "logo",
        "is_filial": "isFilial",
        "parent_team_id": "parentTeamId",
    }
    return {columns[key]: value for key, value in data.items() if key in columns}
