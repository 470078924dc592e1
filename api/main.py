from __future__ import annotations

from pathlib import Path

from dotenv import load_dotenv

from newswire.utils.logging import get_logger

# 프로젝트 루트의 .env 파일 명시적 로딩
project_root = Path(__file__).parent.parent
env_path = project_root / ".env"

logger = get_logger(__name__)
if env_path.exists():
    load_dotenv(env_path)
    logger.info("api.env_loaded", extra={"path": str(env_path)})

from fastapi import FastAPI  # noqa: E402

from .routes import router  # noqa: E402

app = FastAPI(title="Newswire API", version="0.1.0")

app.include_router(router)


@app.get("/healthz", tags=["system"])
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}
