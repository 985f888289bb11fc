import os

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

load_dotenv()

from routes import router  # noqa: E402  (routes reads env at import time)


def allowed_origins() -> list[str]:
    """ALLOWED_ORIGINS (comma separated) or every origin when unset."""
    origins = [origin.strip() for origin in os.getenv("ALLOWED_ORIGINS", "").split(",")]
    return [origin for origin in origins if origin] or ["*"]


app = FastAPI(title="Destination Gacha API", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(),
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.include_router(router)


@app.get("/")
def read_root() -> dict[str, str]:
    return {"status": "ok"}
