from sqlalchemy import create_engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import declarative_base, sessionmaker, Session
from functools import wraps
import logging

from config import get_settings
from core.exceptions import TournamentException, StoreUnavailable

logger = logging.getLogger(__name__)

settings = get_settings()

# SQLite 需要特殊設定：connect_args={"check_same_thread": False}
# 這允許多執行緒存取同一個 SQLite 連線（FastAPI 的多執行緒環境需要）
engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if settings.database_url.startswith("sqlite") else {},
    pool_pre_ping=True
)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()


def get_db():
    """
    FastAPI dependency：提供 Database Session

    使用 yield 確保 session 在請求結束後會被關閉
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def transactional(func):
    """
    Transaction decorator：確保一次寫入的原子性

    使用方式：
        @transactional
        def store_room(db: Session, ...):
            db.execute(update(...))
            # 不需要手動 commit，decorator 會處理

    如果函式內發生異常：
        - 自動 rollback
        - 業務異常（TournamentException）直接重新拋出
        - IntegrityError 記錄後重新拋出（呼叫者應在函式內自行轉換）
        - 其他 SQLAlchemyError（連線、逾時、連線池耗盡）轉為 StoreUnavailable
          （交給呼叫者決定是否重試）
        - 其他異常記錄後重新拋出

    注意：
        - 第一個參數必須是 db: Session
        - 不要在函式內手動 commit（decorator 會處理）
    """
    @wraps(func)
    def wrapper(*args, **kwargs):
        # 找出 db session（可能在 args 或 kwargs）
        db = None
        if args and isinstance(args[0], Session):
            db = args[0]
        elif 'db' in kwargs:
            db = kwargs['db']

        if db is None:
            raise ValueError(
                f"@transactional requires 'db: Session' as first argument, "
                f"but got args={args}, kwargs={kwargs}"
            )

        try:
            result = func(*args, **kwargs)
            db.commit()
            return result
        except TournamentException:
            db.rollback()
            raise
        except IntegrityError as e:
            logger.error(f"Integrity error in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise
        except SQLAlchemyError as e:
            logger.error(f"Store unavailable in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise StoreUnavailable(f"Room store unavailable: {e}") from e
        except Exception as e:
            logger.error(f"Transaction failed in {func.__name__}: {e}", exc_info=True)
            db.rollback()
            raise

    return wrapper
