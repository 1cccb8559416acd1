from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from sqlmodel import Field, SQLModel, create_engine, Session

from . import config
from .pipeline.records import SymbolType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ExportStatus(str, Enum):
    READY = "READY"
    FAILED = "FAILED"


class Sop(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    title: str
    author: str = ""
    department: str = ""
    approver: str = ""
    created_date: str = ""
    approval_date: str = ""
    version: str = config.DEFAULT_VERSION
    created_at: datetime = Field(default_factory=_utcnow)


class SopStep(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    sop_id: int = Field(foreign_key="sop.id", index=True)
    position: int
    title: str
    description: str = ""
    symbol_type: Optional[SymbolType] = None
    reason_why: str = ""
    image_url: str = ""
    image_name: str = ""


class SopExport(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    sop_id: int = Field(foreign_key="sop.id", index=True)
    format: str
    path: Optional[str] = None
    status: ExportStatus = Field(default=ExportStatus.READY)
    page_count: int = 0
    fail_code: Optional[str] = None
    fail_detail: Optional[str] = None
    created_at: datetime = Field(default_factory=_utcnow)


engine = create_engine(f"sqlite:///{config.DB_PATH}")


def reset_engine() -> None:
    global engine
    engine = create_engine(f"sqlite:///{config.DB_PATH}")


def init_db() -> None:
    config.OUT_DIR.mkdir(parents=True, exist_ok=True)
    SQLModel.metadata.create_all(engine)


def get_session() -> Session:
    return Session(engine, expire_on_commit=False)
