"""
命名服務：生成/驗證 Room Code，驗證玩家名稱與房間名稱

純計算邏輯，不涉及狀態轉換
"""
import random
import re
import string

from core.exceptions import BadRequest

ROOM_CODE_LENGTH = 4
ROOM_CODE_ALPHABET = string.ascii_uppercase + string.digits
MAX_PLAYER_NAME_LENGTH = 40
MAX_ROOM_NAME_LENGTH = 80

_ROOM_CODE_PATTERN = re.compile(rf"^[A-Z0-9]{{{ROOM_CODE_LENGTH}}}$")


def generate_room_code() -> str:
    """
    生成隨機的 4 位大寫英數字房間代碼

    範例：AB12, X9Z0

    注意：
    - 不檢查唯一性（由呼叫者負責）
    - 36^4 = 1,679,616 種可能
    """
    return ''.join(random.choices(ROOM_CODE_ALPHABET, k=ROOM_CODE_LENGTH))


def normalize_room_code(code) -> str:
    """
    驗證房間代碼並轉成大寫

    參數：
        code: 客戶端傳入的代碼

    返回：
        正規化後的代碼（例如 "ab12" -> "AB12"）

    異常：
        BadRequest: 缺少代碼或格式不是 4 位英數字
    """
    if not isinstance(code, str) or not code.strip():
        raise BadRequest("Missing room code")

    normalized = code.strip().upper()
    if not _ROOM_CODE_PATTERN.match(normalized):
        raise BadRequest(
            f"Room code must be {ROOM_CODE_LENGTH} letters or digits, got {code!r}"
        )
    return normalized


def validate_player_name(name, field: str = "playerName") -> str:
    """
    驗證玩家名稱（不修剪、不改大小寫，原樣保存）

    異常：
        BadRequest: 缺少名稱、空白名稱或超過長度上限
    """
    if not isinstance(name, str) or not name.strip():
        raise BadRequest(f"Missing {field}")
    if len(name) > MAX_PLAYER_NAME_LENGTH:
        raise BadRequest(f"{field} must be at most {MAX_PLAYER_NAME_LENGTH} characters")
    return name


def resolve_room_name(name, host: str) -> str:
    """房間名稱；未提供時使用「<host>'s Cat Battle」"""
    if name is None:
        return f"{host}'s Cat Battle"
    if not isinstance(name, str) or not name.strip():
        raise BadRequest("Room name must not be blank")
    if len(name) > MAX_ROOM_NAME_LENGTH:
        raise BadRequest(f"Room name must be at most {MAX_ROOM_NAME_LENGTH} characters")
    return name
