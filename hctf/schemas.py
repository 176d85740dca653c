# hctf/schemas.py
# ------------------------------------------------------------
# Pydantic v2 schemas, organized by domain.
# Request fields are camelCase on the wire, responses use the column names.
# ------------------------------------------------------------
from datetime import datetime
import re
from typing import Annotated, Any, List, Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    EmailStr,
    Field,
    Json,
    PlainSerializer,
    field_validator,
)
from pydantic.alias_generators import to_camel

from hctf.utils import format_timestamp


_CONTROL_CHAR_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_SCRIPT_TAG_RE = re.compile(r"<\s*/?\s*script", re.IGNORECASE)


def _sanitize_single_line_text(value: Any) -> Any:
    # Non-strings are left for the field type to reject
    if not isinstance(value, str):
        return value
    cleaned = _CONTROL_CHAR_RE.sub("", value).strip()
    if not cleaned:
        raise ValueError("Value cannot be empty")
    if any(ch in {"\n", "\r"} for ch in cleaned):
        raise ValueError("Value must be a single line of text")
    if "<" in cleaned or ">" in cleaned:
        raise ValueError("HTML tags are not allowed in this field")
    if _SCRIPT_TAG_RE.search(cleaned):
        raise ValueError("Script tags are not allowed")
    return cleaned


Timestamp = Annotated[datetime, PlainSerializer(format_timestamp, return_type=str, when_used="json")]

# Row identifiers are signed 64-bit integers in every supported database
MAX_ROW_ID = 2**63 - 1
RowId = Annotated[int, Field(ge=1, le=MAX_ROW_ID)]


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ============================================================
# Levels
# ============================================================

class LevelCreate(RequestModel):
    category_id: RowId
    level_name: str = Field(max_length=100)
    release_time: datetime

    @field_validator("level_name", mode="before")
    @classmethod
    def _clean_level_name(cls, value: Any) -> Any:
        return _sanitize_single_line_text(value)


class LevelRename(RequestModel):
    level_id: RowId
    level_name: str = Field(max_length=100)

    @field_validator("level_name", mode="before")
    @classmethod
    def _clean_level_name(cls, value: Any) -> Any:
        return _sanitize_single_line_text(value)


class LevelReleaseTimeUpdate(RequestModel):
    level_id: RowId
    release_time: datetime


class LevelRulesUpdate(RequestModel):
    level_id: RowId
    # JSON text; decoded on validation
    rules: Json[Any]


class LevelDelete(RequestModel):
    level_id: Any

    @field_validator("level_id", mode="before")
    @classmethod
    def _require_value(cls, value: Any) -> Any:
        if value is None or value == "":
            raise ValueError("Field required")
        return value


class ChallengeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    challenge_id: int
    level_id: int
    title: str
    description: Optional[str] = None
    score: float
    created_at: Timestamp
    updated_at: Timestamp


class LevelRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    level_id: int
    category_id: int
    level_name: str
    release_time: Timestamp
    rules: Any
    created_at: Timestamp
    updated_at: Timestamp


class LevelDetail(LevelRead):
    challenges: List[ChallengeRead] = []


# ============================================================
# Teams
# ============================================================

class TeamRegister(RequestModel):
    team_name: str = Field(max_length=100)
    email: EmailStr
    password: str = Field(min_length=1, max_length=128)

    @field_validator("team_name", mode="before")
    @classmethod
    def _clean_team_name(cls, value: Any) -> Any:
        return _sanitize_single_line_text(value)


class TeamLogin(RequestModel):
    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class TeamIdList(RequestModel):
    team_id: List[RowId] = Field(min_length=1)


class TeamPasswordReset(RequestModel):
    team_id: RowId


class LoginToken(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LogRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    log_id: int
    team_id: int
    category_id: Optional[int] = None
    level_id: Optional[int] = None
    challenge_id: Optional[int] = None
    status: str
    flag: str
    score: float
    created_at: Timestamp
    updated_at: Timestamp


class LogPublic(BaseModel):
    """A submission as shown to everyone: no flag text, no timestamps."""

    model_config = ConfigDict(from_attributes=True)

    log_id: int
    team_id: int
    category_id: Optional[int] = None
    level_id: Optional[int] = None
    challenge_id: Optional[int] = None
    status: str
    score: float


class TeamSelf(BaseModel):
    """Everything about a team except its password hash."""

    model_config = ConfigDict(from_attributes=True)

    team_id: int
    team_name: str
    email: str
    admin: bool
    banned: bool
    sign_up_time: Optional[Timestamp] = None
    last_login_time: Optional[Timestamp] = None
    created_at: Timestamp
    updated_at: Timestamp


class TeamAdmin(TeamSelf):
    logs: List[LogRead] = []


class TeamPage(BaseModel):
    total: int
    teams: List[TeamAdmin]


class TeamPublic(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    team_id: int
    team_name: str
    logs: List[LogPublic] = []


class RankingEntry(BaseModel):
    rank: int
    team_id: int
    team_name: str
    score: float
