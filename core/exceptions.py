"""
自定義異常類別

集中管理所有業務邏輯異常，方便 API 層統一處理

每個異常帶有：
- kind：回傳給客戶端的錯誤種類名稱
- status_code：對應的 HTTP 狀態碼
"""


class TournamentException(Exception):
    """所有比賽房間異常的基類"""
    kind = "Internal"
    status_code = 500


# ============ 請求格式異常 ============

class BadRequest(TournamentException):
    """缺少欄位或格式錯誤（例如房間代碼不是 4 位英數字）"""
    kind = "BadRequest"
    status_code = 400


class InvalidScore(TournamentException):
    """分數不是有限的非負數"""
    kind = "InvalidScore"
    status_code = 400

    def __init__(self, score):
        self.score = score
        super().__init__(f"Score must be a finite non-negative number, got {score!r}")


# ============ Room 相關異常 ============

class RoomNotFound(TournamentException):
    """房間不存在"""
    kind = "NotFound"
    status_code = 404

    def __init__(self, code):
        self.code = code
        super().__init__(f"Room {code} not found")


class RoomAlreadyExists(TournamentException):
    """房間代碼已被使用（代碼永遠不會被重建）"""
    kind = "AlreadyExists"
    status_code = 409

    def __init__(self, code):
        self.code = code
        super().__init__(f"Room {code} already exists")


class NotRoomHost(TournamentException):
    """只有 Host 可以開始比賽"""
    kind = "Forbidden"
    status_code = 403

    def __init__(self, requester):
        self.requester = requester
        super().__init__(f"Only the host can start the tournament, not {requester}")


class InsufficientPlayers(TournamentException):
    """玩家數量不足以開始比賽"""
    kind = "InsufficientPlayers"
    status_code = 409


# ============ 狀態轉換異常 ============

class InvalidStateTransition(TournamentException):
    """目前的房間狀態不允許此操作"""
    kind = "InvalidState"
    status_code = 409


# ============ Player 相關異常 ============

class DuplicatePlayerName(TournamentException):
    """名稱與房間內另一位玩家衝突（僅大小寫不同）"""
    kind = "DuplicateName"
    status_code = 409


class PlayerNotFound(TournamentException):
    """玩家不在房間內"""
    kind = "NotAPlayer"
    status_code = 403

    def __init__(self, player_name):
        self.player_name = player_name
        super().__init__(f"{player_name} is not a player in this room")


class ScoreAlreadySubmitted(TournamentException):
    """玩家已經提交過分數了"""
    kind = "AlreadyPlayed"
    status_code = 409

    def __init__(self, player_name):
        self.player_name = player_name
        super().__init__(f"{player_name} has already submitted a score")


# ============ 儲存層異常 ============

class VersionMismatch(TournamentException):
    """條件寫入失敗：讀取後有其他請求先寫入（內部使用，會觸發重試）"""
    kind = "Conflict"
    status_code = 409


class WriteConflict(TournamentException):
    """並發寫入衝突，重試次數用盡"""
    kind = "Conflict"
    status_code = 409

    def __init__(self, code, attempts):
        self.code = code
        self.attempts = attempts
        super().__init__(
            f"Room {code} was modified concurrently, gave up after {attempts} attempts"
        )


class StoreUnavailable(TournamentException):
    """儲存後端 I/O 失敗或逾時（唯一適合由呼叫者重試的錯誤）"""
    kind = "StoreUnavailable"
    status_code = 503
