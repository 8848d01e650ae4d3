"""Application settings and validation."""

import os
from pathlib import Path

BASE = Path(__file__).resolve().parent.parent


def _flag(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    ENV: str
    DATABASE_PATH: Path
    ENFORCE_FOREIGN_KEYS: bool
    DERIVE_CURRENT_STATUS: bool
    MAX_BODY_BYTES: int
    ALLOW_DEV_CORS: bool
    HOST: str
    PORT: int

    def __init__(self):
        self.ENV = os.getenv("ENV", "dev").lower()
        self.DATABASE_PATH = Path(os.getenv("DATABASE_PATH", str(BASE / "academy.db"))).expanduser()
        self.ENFORCE_FOREIGN_KEYS = _flag("ENFORCE_FOREIGN_KEYS", "true")
        self.DERIVE_CURRENT_STATUS = _flag("DERIVE_CURRENT_STATUS", "true")
        self.MAX_BODY_BYTES = int(os.getenv("MAX_BODY_BYTES", str(1024 * 1024)))  # 1 MB default
        self.ALLOW_DEV_CORS = _flag("ALLOW_DEV_CORS", "true")
        self.HOST = os.getenv("HOST", "127.0.0.1")
        self.PORT = int(os.getenv("PORT", "3001"))
        self._validate()

    @property
    def DATABASE_URL(self) -> str:
        return f"sqlite:///{self.DATABASE_PATH}"

    def _validate(self):
        if self.MAX_BODY_BYTES <= 0:
            raise RuntimeError("MAX_BODY_BYTES must be a positive number of bytes")
        if not 0 < self.PORT < 65536:
            raise RuntimeError("PORT must be between 1 and 65535")
        if self.ENV != "dev" and not self.ENFORCE_FOREIGN_KEYS:
            raise RuntimeError("ENFORCE_FOREIGN_KEYS may only be disabled in the dev environment")


settings = Settings()
