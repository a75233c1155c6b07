from datetime import date
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator
from ultimate_ranking.schemas.ranking import Modality, Surface, is_valid_season


class TournamentType(str, Enum):
    CE1 = "CE1"
    CE2 = "CE2"
    REGIONAL = "REGIONAL"


class TournamentBase(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    type: TournamentType
    surface: Surface
    modality: Modality
    season: str = Field(..., description="Season label, e.g. 2024-25")
    region_id: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    location: Optional[str] = None

    @field_validator("season")
    @classmethod
    def check_season(cls, value: str) -> str:
        if not is_valid_season(value):
            raise ValueError("Season must look like YYYY-YY (e.g. 2024-25)")
        return value

    @model_validator(mode="after")
    def check_region_and_dates(self):
        if self.type == TournamentType.REGIONAL and not self.region_id:
            raise ValueError("Regional tournaments require a region")
        if self.start_date and self.end_date and self.start_date > self.end_date:
            raise ValueError("start_date cannot be after end_date")
        return self


class TournamentCreate(TournamentBase):
    pass


class TournamentUpdate(BaseModel):
    name: Optional[str] = Field(None, max_length=200)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    location: Optional[str] = None
    is_finished: Optional[bool] = None


class TournamentResponse(TournamentBase):
    id: str
    name: str
    region_name: Optional[str] = None
    is_finished: bool = False
    teams_count: int = 0

    model_config = {"from_attributes": True}

    @classmethod
    def from_record(cls, row: dict, **extra) -> "TournamentResponse":
        return cls(
            id=str(row["id"]),
            name=row.get("name") or "",
            type=row["type"],
            surface=row["surface"],
            modality=row["modality"],
            season=row["season"],
            region_id=row.get("regionId"),
            start_date=row.get("startDate"),
            end_date=row.get("endDate"),
            location=row.get("location"),
            is_finished=bool(row.get("is_finished")),
            **extra,
        )


def tournament_to_record(data: dict) -> dict:
    """Map snake_case tournament fields onto the tournaments table columns."""
    columns = {
        "name": "name",
        "type": "type",
        "surface": "surface",
        "modality": "modality",
        "season": "season",
        "region_id": "regionId",
        "start_date": "startDate",
        "end_date": "endDate",
        "location": "location",
        "is_finished": "is_finished",
    }
    record = {}
    for key, value in data.items():
        if key not in columns:
            continue
        if isinstance(value, Enum):
            value = value.value
        elif isinstance(value, date):
            value = value.isoformat()
        record[columns[key]] = value
    if "season" in record:
        record["year"] = int(record["season"][:4])
    return record
