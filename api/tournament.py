"""
Tournament API Endpoints - 單一 action endpoint

請求格式：{ code, action, ...action 專屬欄位 }
    action: create | join | start | submit_score | get_state

重點：
1. 所有業務邏輯集中在 RoomManager
2. 業務異常（TournamentException）由 main.py 的 exception handler 轉成 {error, kind}
3. 前端靠 get_state 短輪詢更新畫面，沒有推播
"""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import Any, Dict, List, Optional
import logging

from database import get_db
from schemas import LeaderboardEntry, Room, RoomSummary, TournamentRequest
from core.room_manager import RoomManager
from core.exceptions import BadRequest, TournamentException
from services.naming_service import normalize_room_code

router = APIRouter(prefix="/api/tournament", tags=["tournament"])
logger = logging.getLogger(__name__)


def room_payload(room: Room) -> Dict[str, Any]:
    return {"room": room.to_record()}


def leaderboard_payload(room: Room, leaderboard: List[LeaderboardEntry]) -> Dict[str, Any]:
    summary = RoomSummary(code=room.code, name=room.name, status=room.status, players=room.players)
    return {
        "room": summary.model_dump(mode="json"),
        "leaderboard": [entry.model_dump(mode="json") for entry in leaderboard]
    }


def _create(db: Session, code: str, body: TournamentRequest) -> Dict[str, Any]:
    return room_payload(RoomManager.create_room(db, body.host, code=code, name=body.name))


def _join(db: Session, code: str, body: TournamentRequest) -> Dict[str, Any]:
    return room_payload(RoomManager.join_room(db, code, body.player_name))


def _start(db: Session, code: str, body: TournamentRequest) -> Dict[str, Any]:
    requester = body.requester_name if body.requester_name is not None else body.player_name
    return room_payload(RoomManager.start_game(db, code, requester))


def _submit_score(db: Session, code: str, body: TournamentRequest) -> Dict[str, Any]:
    room, leaderboard = RoomManager.submit_score(db, code, body.player_name, body.score)
    return leaderboard_payload(room, leaderboard)


def _get_state(db: Session, code: str, body: TournamentRequest) -> Dict[str, Any]:
    room, leaderboard = RoomManager.get_state(db, code)
    return leaderboard_payload(room, leaderboard)


ACTIONS = {
    "create": _create,
    "join": _join,
    "start": _start,
    "submit_score": _submit_score,
    "get_state": _get_state,
}


def dispatch(db: Session, body: TournamentRequest, code: Optional[str]) -> Dict[str, Any]:
    """
    依 action 分派到 RoomManager

    異常：
        BadRequest: 缺少 code/action 或 action 不存在
    """
    if not code or not body.action:
        raise BadRequest("Missing code or action")

    handler = ACTIONS.get(body.action)
    if handler is None:
        raise BadRequest(f"Unknown action {body.action!r}")

    try:
        return handler(db, code, body)
    except TournamentException as e:
        logger.info(f"{body.action} on room {code} rejected: {e.kind}: {e}")
        raise
    except Exception as e:
        logger.error(f"Failed to {body.action} room {code}: {e}", exc_info=True)
        db.rollback()
        raise HTTPException(status_code=500, detail="Internal error")


@router.post("")
def tournament_action(body: TournamentRequest, db: Session = Depends(get_db)):
    """
    單一 endpoint：code 與 action 都在 body 內
    """
    return dispatch(db, body, body.code)


@router.post("/{code}")
def tournament_action_for_code(code: str, body: TournamentRequest, db: Session = Depends(get_db)):
    """
    code 在路徑上的版本；body 若也帶 code，必須與路徑一致
    """
    if body.code is not None and normalize_room_code(body.code) != normalize_room_code(code):
        raise BadRequest(f"Body code {body.code!r} does not match path code {code!r}")
    return dispatch(db, body, code)
