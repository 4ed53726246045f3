from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite:///./tournament.db"

    # 開始比賽所需的最少玩家數（含 Host）
    min_players: int = 2

    # 樂觀鎖衝突時，整個 load-compute-store 週期的最多重試次數
    max_write_retries: int = 5

    # False 時退化為 last-writer-wins（並發 join/submit_score 可能遺失更新）
    conditional_writes: bool = True

    log_level: str = "INFO"
    cors_origins: List[str] = ["*"]

    class Config:
        env_file = ".env"


@lru_cache()
def get_settings():
    return Settings()
