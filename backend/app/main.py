from __future__ import annotations

import logging

from fastapi import FastAPI
from dotenv import load_dotenv
from fastapi.middleware.cors import CORSMiddleware
from pathlib import Path

# Always load backend/.env regardless of current working directory.
# main.py is at backend/app/main.py -> backend/.env is parents[1]/.env
ENV_PATH = Path(__file__).resolve().parents[1] / ".env"
# Read .env as UTF-8 with BOM support to avoid a malformed first key.
load_dotenv(ENV_PATH, override=False, encoding="utf-8-sig")

from app.dependencies import get_settings  # noqa: E402

logging.basicConfig(
    level=get_settings().log_level,
    format="%(asctime)s %(levelname)s %(name)s %(message)s",
)

from app.routes import (  # noqa: E402
    advice,
    chat,
    quick_actions,
)

app = FastAPI(title="FinanceFlow Advisor API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(advice.router)  # Financial context + one-shot advice
app.include_router(chat.router)  # Conversation history and chat turns
app.include_router(quick_actions.router)  # Quick actions attached to advice


@app.get("/health")
def health():
    return {"status": "ok"}
