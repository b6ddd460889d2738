from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Text, UniqueConstraint, func
)
from .database import Base


# ---------------------------
# ENTRIES
# ---------------------------
class Entry(Base):
    __tablename__ = "entry"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(255), nullable=False, index=True)
    entry_date = Column(Date, nullable=False)
    content = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "entry_date", name="uq_entry_user_date"),
    )

    def __repr__(self):
        return f"<Entry {self.user_id} {self.entry_date}>"


# ---------------------------
# CHAPTERS (one per user per week, never updated)
# ---------------------------
class Chapter(Base):
    __tablename__ = "chapter"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(255), nullable=False)
    week_start = Column(Date, nullable=False)   # Monday
    week_end = Column(Date, nullable=False)     # Sunday
    content = Column(Text, nullable=False)
    model_name = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("user_id", "week_start", name="uq_chapter_user_week"),
    )


# ---------------------------
# PROFILE
# ---------------------------
class Profile(Base):
    __tablename__ = "profile"

    id = Column(Integer, primary_key=True)
    user_id = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(128), nullable=True)
    pronoun = Column(String(32), nullable=True)
    place = Column(String(128), nullable=True)
    life_phase = Column(String(128), nullable=True)
    daily_life = Column(Text, nullable=True)
    aspirations = Column(Text, nullable=True)
    generated_intro = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now(), server_default=func.now())


# ---------------------------
# LOGIN CODES (email passcode nonce)
# ---------------------------
class LoginCode(Base):
    __tablename__ = "login_code"

    id = Column(Integer, primary_key=True)
    email = Column(String(320), unique=True, nullable=False)
    code_hash = Column(String(255), nullable=False)
    expires_at = Column(DateTime, nullable=False)   # naive UTC
    created_at = Column(DateTime(timezone=True), server_default=func.now())
