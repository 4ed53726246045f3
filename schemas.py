"""
Pydantic schemas：持久化的房間紀錄、API request/response
"""
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from models import RoomStatus


class Room(BaseModel):
    """持久化的房間紀錄（JSON 欄位名稱與儲存格式一致）"""
    model_config = ConfigDict(populate_by_name=True)

    code: str
    host: str
    name: str
    status: RoomStatus = RoomStatus.WAITING
    players: List[str] = Field(default_factory=list)
    scores: Dict[str, Union[int, float]] = Field(default_factory=dict)
    played: Dict[str, bool] = Field(default_factory=dict)
    started_at: Optional[datetime] = Field(default=None, alias="startedAt")
    finished_at: Optional[datetime] = Field(default=None, alias="finishedAt")

    def to_record(self) -> Dict[str, Any]:
        # 尚未發生的時間戳不寫入（absent，而不是 null）
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    @classmethod
    def from_record(cls, data: Dict[str, Any]) -> "Room":
        return cls.model_validate(data)


class RoomSummary(BaseModel):
    code: str
    name: str
    status: RoomStatus
    players: List[str]


class LeaderboardEntry(BaseModel):
    rank: int
    name: str
    score: Union[int, float]


class TournamentRequest(BaseModel):
    """
    單一 endpoint 的邏輯請求：{code, action, ...action 專屬欄位}

    score 刻意不指定型別，交由狀態機驗證並回傳 InvalidScore
    """
    model_config = ConfigDict(populate_by_name=True)

    code: Optional[str] = None
    action: Optional[str] = None
    player_name: Optional[str] = Field(default=None, alias="playerName")
    requester_name: Optional[str] = Field(default=None, alias="requesterName")
    host: Optional[str] = None
    name: Optional[str] = None
    score: Any = None


class RoomCreate(BaseModel):
    host: str
    name: Optional[str] = None
    code: Optional[str] = None
