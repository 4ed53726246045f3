"""
Room Manager：管理 Room 的完整生命週期

職責：
1. 建立 Room（Host 即第一位玩家）
2. 玩家加入
3. 開始比賽（Host 限定）
4. 提交分數（最後一人提交時結束比賽）
5. 查詢 Room 狀態與排行榜

原則：
- 不信任呼叫者帶來的任何房間狀態：每個操作都在剛讀到的紀錄上驗證
- 所有狀態變更經過 RoomStateMachine
- 所有修改經過 mutate_room（樂觀鎖 + 有限重試）
"""
from sqlalchemy.orm import Session
from typing import List, Optional, Tuple
import logging

from config import get_settings
from models import RoomStatus, utcnow
from schemas import LeaderboardEntry, Room
from core import room_store
from core.concurrency import mutate_room
from core.state_machine import RoomStateMachine
from core.exceptions import RoomAlreadyExists, RoomNotFound
from services.leaderboard_service import build_leaderboard
from services.naming_service import (
    generate_room_code,
    normalize_room_code,
    resolve_room_name,
    validate_player_name
)

logger = logging.getLogger(__name__)

# 自動生成代碼時最多嘗試幾次
MAX_CODE_ATTEMPTS = 20


class RoomManager:
    """Room 生命週期管理器"""

    @staticmethod
    def create_room(db: Session, host: str, code: Optional[str] = None,
                    name: Optional[str] = None) -> Room:
        """
        建立新房間

        流程：
        1. 驗證 Host 名稱與房間名稱
        2. 使用指定代碼，或生成一個未被使用的代碼
        3. 寫入新紀錄（代碼已存在則失敗，create 不是冪等的）

        參數：
            host: Host 玩家名稱
            code: 房間代碼；None 時自動生成
            name: 房間顯示名稱；None 時使用預設名稱

        返回：
            新建立的 Room

        異常：
            BadRequest: 名稱或代碼格式錯誤
            RoomAlreadyExists: 代碼已被使用
        """
        host = validate_player_name(host, "host")
        room_name = resolve_room_name(name, host)

        if code is None:
            return RoomManager._create_with_generated_code(db, host, room_name)

        code = normalize_room_code(code)
        room = RoomStateMachine.create(code, host, room_name)
        room_store.insert_room(db, room)

        logger.info(f"Created room {code} hosted by {host}")
        return room

    @staticmethod
    def _create_with_generated_code(db: Session, host: str, room_name: str) -> Room:
        # 事先查詢只是降低碰撞機率；insert 時仍可能被並發的 create 搶先，
        # 此時換一個代碼重來
        code = generate_room_code()
        for _ in range(MAX_CODE_ATTEMPTS):
            if room_store.load_room(db, code) is None:
                room = RoomStateMachine.create(code, host, room_name)
                try:
                    room_store.insert_room(db, room)
                except RoomAlreadyExists:
                    logger.warning(f"Room code {code} taken during insert, regenerating")
                else:
                    logger.info(f"Created room {code} hosted by {host}")
                    return room
            else:
                logger.warning(f"Room code collision detected, regenerating: {code}")
            code = generate_room_code()
        raise RoomAlreadyExists(code)

    @staticmethod
    def join_room(db: Session, code: str, player_name: str) -> Room:
        """
        玩家加入房間

        冪等：同名玩家在 WAITING 期間重複加入，直接返回目前的房間（不寫入），
        讓客戶端在網路不穩時可以安全重試

        異常：
            RoomNotFound / InvalidStateTransition / DuplicatePlayerName
        """
        code = normalize_room_code(code)
        player_name = validate_player_name(player_name)
        settings = get_settings()

        room = mutate_room(
            db,
            code,
            lambda current: RoomStateMachine.join(current, player_name),
            max_retries=settings.max_write_retries,
            conditional=settings.conditional_writes
        )

        logger.info(f"Player {player_name} in room {code} ({len(room.players)} players)")
        return room

    @staticmethod
    def start_game(db: Session, code: str, requester_name: str) -> Room:
        """
        開始比賽（WAITING -> STARTED），之後玩家名單凍結

        異常：
            RoomNotFound / NotRoomHost / InvalidStateTransition / InsufficientPlayers
        """
        code = normalize_room_code(code)
        requester_name = validate_player_name(requester_name, "requesterName")
        settings = get_settings()

        room = mutate_room(
            db,
            code,
            lambda current: RoomStateMachine.start(
                current, requester_name, settings.min_players, utcnow()
            ),
            max_retries=settings.max_write_retries,
            conditional=settings.conditional_writes
        )

        logger.info(f"Room {code} started with {len(room.players)} players")
        return room

    @staticmethod
    def submit_score(db: Session, code: str, player_name: str,
                     score) -> Tuple[Room, List[LeaderboardEntry]]:
        """
        提交分數（每位玩家一次）

        返回：
            (更新後的 Room, 排行榜)

        異常：
            RoomNotFound / InvalidScore / InvalidStateTransition /
            PlayerNotFound / ScoreAlreadySubmitted
        """
        code = normalize_room_code(code)
        player_name = validate_player_name(player_name)
        settings = get_settings()

        room = mutate_room(
            db,
            code,
            lambda current: RoomStateMachine.submit_score(current, player_name, score, utcnow()),
            max_retries=settings.max_write_retries,
            conditional=settings.conditional_writes
        )

        logger.info(f"Player {player_name} scored {score} in room {code}")
        if room.status == RoomStatus.FINISHED:
            logger.info(f"Room {code} finished")

        return room, build_leaderboard(room)

    @staticmethod
    def get_state(db: Session, code: str) -> Tuple[Room, List[LeaderboardEntry]]:
        """
        查詢房間狀態（唯讀）

        返回：
            (Room, 排行榜)

        異常：
            RoomNotFound: Room 不存在
        """
        code = normalize_room_code(code)
        stored = room_store.load_room(db, code)
        if stored is None:
            raise RoomNotFound(code)
        return stored.room, build_leaderboard(stored.room)
