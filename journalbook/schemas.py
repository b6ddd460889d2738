import datetime as dt
from typing import Annotated, List, Optional

from pydantic import AfterValidator, BaseModel, ConfigDict, EmailStr
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    # JSON uses camelCase; Python attributes stay snake_case
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, from_attributes=True)


# path segments under /entries that a user id would collide with
RESERVED_IDS = frozenset({"week"})


def _required_id(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValueError("must not be empty")
    if value in RESERVED_IDS:
        raise ValueError(f"{value!r} is reserved")
    return value


RequiredId = Annotated[str, AfterValidator(_required_id)]


# =========================
# ENTRY SCHEMAS
# =========================
class EntryUpsert(CamelModel):
    user_id: RequiredId
    date: dt.date
    content: str = ""


class EntryContent(CamelModel):
    content: str


class EntryDates(CamelModel):
    dates: List[dt.date]


class EntryRead(CamelModel):
    date: dt.date
    content: str


class WeekEntries(CamelModel):
    week_start: dt.date
    week_end: dt.date
    entries: List[EntryRead] = []


class EnhancedChapter(CamelModel):
    enhanced_chapter: str
    source: str
    week_start: dt.date
    week_end: dt.date


class ErrorMessage(BaseModel):
    error: str


# =========================
# PROFILE SCHEMAS
# =========================
class ProfileFields(CamelModel):
    name: Optional[str] = None
    pronoun: Optional[str] = None
    place: Optional[str] = None
    life_phase: Optional[str] = None
    daily_life: Optional[str] = None
    aspirations: Optional[str] = None


class ProfileUpsert(ProfileFields):
    user_id: RequiredId


class ProfileRead(ProfileFields):
    user_id: str
    generated_intro: Optional[str] = None


class ProfileEnvelope(CamelModel):
    profile: Optional[ProfileRead] = None


class IntroRead(CamelModel):
    intro: str
    source: str


# =========================
# BOOK SCHEMAS
# =========================
class BookRead(CamelModel):
    book: str
    chapter_count: int


# =========================
# AUTOMATION SCHEMAS
# =========================
class UserOutcomeRead(CamelModel):
    user_id: str
    outcome: str
    error: Optional[str] = None


class BatchReportRead(CamelModel):
    ran: bool
    reason: Optional[str] = None
    week_start: Optional[dt.date] = None
    week_end: Optional[dt.date] = None
    processed: int = 0
    skipped: int = 0
    failed: int = 0
    results: List[UserOutcomeRead] = []


# =========================
# AUTH SCHEMAS
# =========================
class DeviceLogin(CamelModel):
    device_id: RequiredId


class CodeRequest(CamelModel):
    email: EmailStr


class CodeVerify(CamelModel):
    email: EmailStr
    code: str


class TokenRead(CamelModel):
    token: str
    user_id: str
    token_type: str = "bearer"
