from typing import Optional

from pydantic import BaseModel, Field, model_validator


class PositionEntry(BaseModel):
    team_id: str
    position: int = Field(..., ge=1)


class PositionCreate(PositionEntry):
    tournament_id: str


class PositionBulkCreate(BaseModel):
    """All final positions of one tournament, entered together."""

    tournament_id: str
    positions: list[PositionEntry] = Field(..., min_length=1)

    @model_validator(mode="after")
    def check_unique(self):
        numbers = [p.position for p in self.positions]
        if len(set(numbers)) != len(numbers):
            raise ValueError("Each position can only be assigned once")
        teams = [p.team_id for p in self.positions]
        if len(set(teams)) != len(teams):
            raise ValueError("A team can only appear once per tournament")
        return self


class PositionUpdate(BaseModel):
    position: Optional[int] = Field(None, ge=1)
    team_id: Optional[str] = None


class PositionResponse(BaseModel):
    id: str
    tournament_id: str
    team_id: str
    position: int
    points: float
    team_name: Optional[str] = None

    model_config = {"from_attributes": True}

    @classmethod
    def from_record(
        cls, row: dict, team_name: Optional[str] = None
    ) -> "PositionResponse":
        return cls(
            id=str(row["id"]),
            tournament_id=str(row["tournamentId"]),
            team_id=str(row["teamId"]),
            position=row["position"],
            points=float(row.get("points") or 0),
            team_name=team_name,
        )
