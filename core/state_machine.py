"""
Room 狀態機：集中管理所有狀態轉換

狀態：
    WAITING  -> 接受加入與開始
    STARTED  -> 接受分數提交（玩家名單已凍結）
    FINISHED -> 終態，唯讀

原則：
- 純計算：輸入讀到的房間紀錄，輸出新的房間紀錄，不碰儲存層
- 不修改傳入的紀錄（重試時同一份讀取結果可能被丟棄）
- 所有狀態變更都經過 TRANSITIONS 表，狀態只能往前走
- FINISHED 只能由「所有人都已提交」觸發，沒有直接設定的入口
"""
import math
from datetime import datetime
from typing import Optional

from models import RoomStatus
from schemas import Room
from core.exceptions import (
    InvalidStateTransition,
    DuplicatePlayerName,
    NotRoomHost,
    InsufficientPlayers,
    InvalidScore,
    PlayerNotFound,
    ScoreAlreadySubmitted
)


class RoomStateMachine:
    """Room 狀態機"""

    TRANSITIONS = {
        RoomStatus.WAITING: {RoomStatus.STARTED},
        RoomStatus.STARTED: {RoomStatus.FINISHED},
        RoomStatus.FINISHED: set(),
    }

    @classmethod
    def can_transition(cls, current: RoomStatus, target: RoomStatus) -> bool:
        return target in cls.TRANSITIONS[current]

    @classmethod
    def transition(cls, room: Room, target: RoomStatus) -> None:
        """
        轉換狀態（就地修改，只用在已複製的紀錄上）

        異常：
            InvalidStateTransition: 轉換不合法（例如 FINISHED -> WAITING）
        """
        if not cls.can_transition(room.status, target):
            raise InvalidStateTransition(
                f"Cannot move room {room.code} from {room.status.value} to {target.value}"
            )
        room.status = target

    @staticmethod
    def _require_status(room: Room, expected: RoomStatus, operation: str) -> None:
        if room.status != expected:
            raise InvalidStateTransition(
                f"Cannot {operation} room {room.code}: status is {room.status.value}"
            )

    @staticmethod
    def create(code: str, host: str, name: str) -> Room:
        """建立新房間，Host 是第一位玩家"""
        return Room(
            code=code,
            host=host,
            name=name,
            status=RoomStatus.WAITING,
            players=[host],
            scores={host: 0},
            played={host: False}
        )

    @classmethod
    def join(cls, room: Room, player_name: str) -> Optional[Room]:
        """
        玩家加入

        返回：
            新的房間紀錄；同名玩家重複加入時返回 None（no-op，不需要寫入）

        異常：
            InvalidStateTransition: 房間已開始或已結束（不論名稱是否已存在）
            DuplicatePlayerName: 名稱只有大小寫與既有玩家不同
        """
        cls._require_status(room, RoomStatus.WAITING, "join")

        if player_name in room.players:
            return None

        folded = player_name.casefold()
        for existing in room.players:
            if existing.casefold() == folded:
                raise DuplicatePlayerName(
                    f"Name {player_name!r} is already taken by {existing!r}"
                )

        updated = room.model_copy(deep=True)
        updated.players.append(player_name)
        updated.scores[player_name] = 0
        updated.played[player_name] = False
        return updated

    @classmethod
    def start(cls, room: Room, requester_name: str, min_players: int, now: datetime) -> Room:
        """
        Host 開始比賽（WAITING -> STARTED）

        檢查順序：Host 身分 -> 狀態 -> 玩家數量
        """
        if requester_name != room.host:
            raise NotRoomHost(requester_name)

        cls._require_status(room, RoomStatus.WAITING, "start")

        if len(room.players) < min_players:
            raise InsufficientPlayers(
                f"Need at least {min_players} players to start, got {len(room.players)}"
            )

        updated = room.model_copy(deep=True)
        cls.transition(updated, RoomStatus.STARTED)
        updated.started_at = now
        return updated

    @classmethod
    def submit_score(cls, room: Room, player_name: str, score, now: datetime) -> Room:
        """
        提交分數（每位玩家只能提交一次）

        最後一位玩家提交後，房間自動進入 FINISHED

        異常：
            InvalidScore / InvalidStateTransition / PlayerNotFound / ScoreAlreadySubmitted
        """
        validate_score(score)
        cls._require_status(room, RoomStatus.STARTED, "submit a score in")

        if player_name not in room.players:
            raise PlayerNotFound(player_name)
        if room.played.get(player_name):
            raise ScoreAlreadySubmitted(player_name)

        updated = room.model_copy(deep=True)
        updated.scores[player_name] = score
        updated.played[player_name] = True

        if all(updated.played.get(name) for name in updated.players):
            cls.transition(updated, RoomStatus.FINISHED)
            updated.finished_at = now

        return updated


def validate_score(score) -> None:
    # bool 是 int 的子類別，要先排除
    if isinstance(score, bool) or not isinstance(score, (int, float)):
        raise InvalidScore(score)
    if (isinstance(score, float) and not math.isfinite(score)) or score < 0:
        raise InvalidScore(score)
