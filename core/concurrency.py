"""
並發控制工具

儲存後端只提供 load / store，沒有跨請求的鎖。每個修改操作都是一次
read-modify-write，兩個請求讀到同一版本時，後寫入的會覆蓋先寫入的
（lost update）。

這裡用樂觀鎖（Optimistic Locking）處理：
1. 讀取紀錄與版本號
2. 在讀到的紀錄上重新驗證並計算新紀錄
3. 條件寫入（版本號必須沒變）
4. 版本衝突時整個週期重來，最多 max_retries 次，用盡則拋出 WriteConflict

conditional=False 時退化為 last-writer-wins：讀取與寫入之間沒有其他 I/O，
視窗盡量縮小，但同一房間的並發 join / submit_score 仍可能遺失其中一筆。
這是已知限制，每個操作依然會在讀到的版本上完整驗證。
"""
from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from schemas import Room
from core import room_store
from core.exceptions import RoomNotFound, VersionMismatch, WriteConflict

logger = logging.getLogger(__name__)


def mutate_room(
    db: Session,
    code: str,
    compute: Callable[[Room], Optional[Room]],
    max_retries: int,
    conditional: bool = True
) -> Room:
    """
    對一個房間執行 load -> compute -> store

    參數：
        code: 房間代碼
        compute: 接收讀到的紀錄，返回新紀錄；返回 None 表示不需要寫入
        max_retries: 版本衝突時的最多重試次數
        conditional: 是否使用條件寫入

    返回：
        寫入後的紀錄（no-op 時為讀到的紀錄）

    異常：
        RoomNotFound: 房間不存在
        WriteConflict: 重試次數用盡
        compute 拋出的任何驗證異常（不重試）
    """
    attempts = 0
    while True:
        attempts += 1

        stored = room_store.load_room(db, code)
        if stored is None:
            raise RoomNotFound(code)

        updated = compute(stored.room)
        if updated is None:
            return stored.room

        expected_version = stored.version if conditional else None
        try:
            room_store.store_room(db, updated, expected_version=expected_version)
            return updated
        except VersionMismatch:
            if attempts > max_retries:
                logger.error(f"Room {code}: giving up after {attempts} conflicting writes")
                raise WriteConflict(code, attempts)
            logger.warning(
                f"Room {code}: version {stored.version} is stale, retrying "
                f"(attempt {attempts}/{max_retries})"
            )
