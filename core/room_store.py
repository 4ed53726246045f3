"""
Room Store：房間紀錄的讀寫（儲存層的唯一入口）

對上層只提供三個操作：
- load_room：讀取紀錄與版本號
- insert_room：建立新紀錄（主鍵衝突 = 房間已存在）
- store_room：覆寫紀錄，可選擇帶上預期版本號做條件寫入

條件寫入使用 UPDATE ... WHERE version = :expected，
影響 0 列代表讀取後已被其他請求寫入（VersionMismatch）。
"""
from typing import NamedTuple, Optional
import logging

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from database import transactional
from models import RoomRecord, utcnow
from schemas import Room
from core.exceptions import (
    RoomAlreadyExists,
    RoomNotFound,
    StoreUnavailable,
    VersionMismatch
)

logger = logging.getLogger(__name__)


class StoredRoom(NamedTuple):
    room: Room
    version: int


def load_room(db: Session, code: str) -> Optional[StoredRoom]:
    """
    讀取房間紀錄

    只選取欄位（不載入 ORM entity），每次都拿到資料庫中的最新值，
    不會被 session 的 identity map 快取影響

    返回：
        StoredRoom，房間不存在時返回 None

    異常：
        StoreUnavailable: 資料庫連線失敗、逾時或連線池耗盡
    """
    try:
        row = db.execute(
            select(RoomRecord.data, RoomRecord.version).where(RoomRecord.code == code)
        ).first()
    except SQLAlchemyError as e:
        logger.error(f"Failed to load room {code}: {e}", exc_info=True)
        db.rollback()
        raise StoreUnavailable(f"Room store unavailable: {e}") from e

    if row is None:
        return None
    return StoredRoom(room=Room.from_record(row.data), version=row.version)


@transactional
def insert_room(db: Session, room: Room) -> StoredRoom:
    """
    建立新的房間紀錄（version = 1）

    異常：
        RoomAlreadyExists: 代碼已存在（包含兩個 create 同時競爭的情況）
    """
    db.add(RoomRecord(code=room.code, data=room.to_record(), version=1))
    try:
        db.flush()
    except IntegrityError as e:
        raise RoomAlreadyExists(room.code) from e
    return StoredRoom(room=room, version=1)


@transactional
def store_room(db: Session, room: Room, expected_version: Optional[int] = None) -> None:
    """
    覆寫房間紀錄

    參數：
        expected_version: 讀取時的版本號；None 表示 last-writer-wins

    異常：
        VersionMismatch: 條件寫入失敗（呼叫者應重新讀取並重算）
        RoomNotFound: 紀錄不存在
    """
    stmt = update(RoomRecord).where(RoomRecord.code == room.code)
    if expected_version is not None:
        stmt = stmt.where(RoomRecord.version == expected_version)

    result = db.execute(
        stmt.values(
            data=room.to_record(),
            version=RoomRecord.version + 1,
            updated_at=utcnow()
        ).execution_options(synchronize_session=False)
    )

    if result.rowcount == 0:
        if expected_version is None:
            raise RoomNotFound(room.code)
        raise VersionMismatch(
            f"Room {room.code} changed after version {expected_version} was read"
        )
