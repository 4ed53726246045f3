from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
import logging

from config import get_settings
from database import Base, engine
from core.exceptions import TournamentException, BadRequest
from api import rooms, tournament

settings = get_settings()
logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s"
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup: 在應用啟動時建立資料庫表
    Base.metadata.create_all(bind=engine)
    yield


app = FastAPI(
    title="Tournament Rooms API",
    description="Backend API for ephemeral multiplayer tournament rooms",
    version="1.0.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TournamentException)
async def tournament_exception_handler(request: Request, exc: TournamentException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": str(exc), "kind": exc.kind}
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    # 格式錯誤一律視為 BadRequest，不猜測預設值
    messages = [
        f"{'.'.join(str(part) for part in error['loc'] if part != 'body')}: {error['msg']}"
        for error in exc.errors()
    ]
    return JSONResponse(
        status_code=BadRequest.status_code,
        content={"error": "; ".join(messages) or "Malformed request", "kind": BadRequest.kind}
    )


# 框架層級的 HTTP 錯誤（405、未知路徑、endpoint 的 500）對應到同一組 kind
HTTP_ERROR_KINDS = {
    403: "Forbidden",
    404: "NotFound",
    409: "Conflict",
}


def http_error_kind(status_code: int) -> str:
    if status_code in HTTP_ERROR_KINDS:
        return HTTP_ERROR_KINDS[status_code]
    if status_code >= 500:
        return "Internal"
    return BadRequest.kind


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail, "kind": http_error_kind(exc.status_code)}
    )


# Include routers
app.include_router(rooms.router)
app.include_router(tournament.router)


@app.get("/")
def root():
    return {"message": "Tournament Rooms API", "status": "ok"}


@app.get("/health")
def health():
    return {"status": "healthy"}


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
