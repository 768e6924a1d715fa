import logging
import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

# Environment must be loaded before any app module reads config.
load_dotenv()

logger = logging.getLogger("journal")

try:
    from app.core.sentry_init import init_sentry

    init_sentry()
except Exception as e:
    # 中文注释: 零崩溃原则，Sentry 初始化失败不影响服务启动。
    logger.warning("[sentry] init failed (ignored): %s", e)

from app.api.v1 import admin, auth, cms, issues, reviews, submissions, system, users
from app.core.middleware import ExceptionHandlerMiddleware, register_exception_handlers

API_PREFIX = "/api/v1"

app = FastAPI(
    title="Journal Portal API",
    description="Manuscript submission, peer review and issue publishing backend",
    version="1.0.0",
)


def _parse_frontend_origins() -> list[str]:
    """
    CORS allow-list from FRONTEND_ORIGIN and/or FRONTEND_ORIGINS (comma
    separated). Falls back to the local dev server.
    """
    raw = ",".join(os.environ.get(k) or "" for k in ("FRONTEND_ORIGIN", "FRONTEND_ORIGINS"))
    origins = [o.strip().rstrip("/") for o in raw.split(",") if o.strip()]
    return list(dict.fromkeys(origins)) or ["http://localhost:3000"]


app.add_middleware(
    CORSMiddleware,
    allow_origins=_parse_frontend_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(ExceptionHandlerMiddleware)
register_exception_handlers(app)

for module in (submissions, admin, reviews, issues, users, auth, cms, system):
    app.include_router(module.router, prefix=API_PREFIX)


@app.get("/")
async def root():
    return {"message": "Journal Portal API is running", "docs": "/docs"}
