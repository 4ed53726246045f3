"""
Room API Endpoints

職責：
1. 建立房間（可不指定代碼，由伺服器生成）
2. 查詢房間狀態與排行榜（短輪詢用）
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from database import get_db
from schemas import RoomCreate
from core.room_manager import RoomManager
from core.exceptions import TournamentException
from api.tournament import leaderboard_payload, room_payload

router = APIRouter(prefix="/api/rooms", tags=["rooms"])
logger = logging.getLogger(__name__)


@router.post("", status_code=201)
def create_room(room_data: RoomCreate, db: Session = Depends(get_db)):
    """
    建立房間（Host endpoint）

    未提供 code 時自動生成 4 位代碼
    """
    try:
        room = RoomManager.create_room(db, room_data.host, code=room_data.code, name=room_data.name)
        return room_payload(room)

    except TournamentException:
        raise
    except Exception as e:
        logger.error(f"Failed to create room: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.get("/{code}")
def get_room_state(code: str, db: Session = Depends(get_db)):
    """
    取得房間狀態

    返回：
        - room: code / name / status / players
        - leaderboard: 依分數排序的排行榜
    """
    try:
        room, leaderboard = RoomManager.get_state(db, code)
        return leaderboard_payload(room, leaderboard)

    except TournamentException:
        raise
    except Exception as e:
        logger.error(f"Failed to get room state: {e}", exc_info=True)
        raise HTTPException(status_code=500, detail="Internal error")
