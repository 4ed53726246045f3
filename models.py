"""
資料庫模型

rooms 表：每個房間代碼一列，data 欄位存放完整的房間 JSON，
version 欄位供條件寫入（樂觀鎖）使用，不屬於房間紀錄本身。
"""
import enum
from datetime import datetime, timezone

from sqlalchemy import Column, DateTime, Integer, JSON, String

from database import Base


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RoomStatus(str, enum.Enum):
    WAITING = "waiting"
    STARTED = "started"
    FINISHED = "finished"


class RoomRecord(Base):
    __tablename__ = "rooms"

    code = Column(String(4), primary_key=True)
    data = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)
