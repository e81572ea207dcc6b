from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

GameFormat = Literal["2vs2", "3vs3", "4+1vs4+1"]
SortKey = Literal["points", "games_played", "name", "number", "skill_rating"]
Direction = Literal["asc", "desc"]


class PlayerCreate(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
    number: int
    skill_rating: int = 3


class PlayerRename(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)


class SkillRatingUpdate(BaseModel):
    skill_rating: int


class FormatConfigUpdate(BaseModel):
    format: GameFormat
    games_count: int


class ScoreUpdate(BaseModel):
    score_a: int = Field(..., ge=0)
    score_b: int = Field(..., ge=0)


class FairRollUpdate(BaseModel):
    fair_roll: bool


class TournamentRename(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1)
