import os
from dataclasses import dataclass
from functools import lru_cache
from typing import List

from dotenv import load_dotenv

load_dotenv()


def _parse_csv(value: str, *, lower: bool = False) -> List[str]:
    if not value:
        return []
    items = [x.strip() for x in value.split(",")]
    items = [x for x in items if x]
    if lower:
        items = [x.lower() for x in items]
    return items


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    return int(raw) if raw else default


@dataclass
class Settings:
    # MongoDB
    MONGO_URI: str
    MONGO_DB: str

    # signing / chain
    RPC_URL_DEFAULT: str
    PRIVATE_KEY: str

    # chamber program and the programs it talks to
    CHAMBER_PROGRAM_ID: str
    TOKEN_PROGRAM_ID: str
    FARM_GAS_STRATEGY: str

    # price oracle
    ORACLE_RPC_URL: str
    ORACLE_MAX_CONFIDENCE_BPS: int
    ORACLE_MAX_SLOT_AGE: int

    # ---- Admin / Privy Auth ----
    PRIVY_APP_ID: str
    PRIVY_APP_SECRET: str
    ADMIN_WALLETS: str

    # generic
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"

    @property
    def admin_wallets(self) -> List[str]:
        return _parse_csv(self.ADMIN_WALLETS, lower=True)


@lru_cache()
def get_settings() -> Settings:
    return Settings(
        # Mongo
        MONGO_URI=os.getenv("MONGO_URI", "mongodb://mongo-chamber:27017/chambers?replicaSet=rs0"),
        MONGO_DB=os.getenv("MONGO_DB", "chambers"),

        # Core chain
        PRIVATE_KEY=os.getenv("PRIVATE_KEY", ""),
        RPC_URL_DEFAULT=os.getenv("RPC_URL_DEFAULT", ""),

        # Programs
        CHAMBER_PROGRAM_ID=os.getenv("CHAMBER_PROGRAM_ID", ""),
        TOKEN_PROGRAM_ID=os.getenv("TOKEN_PROGRAM_ID", ""),
        FARM_GAS_STRATEGY=os.getenv("FARM_GAS_STRATEGY", "buffered"),

        # Oracle (0 disables the check)
        ORACLE_RPC_URL=os.getenv("ORACLE_RPC_URL", ""),
        ORACLE_MAX_CONFIDENCE_BPS=_env_int("ORACLE_MAX_CONFIDENCE_BPS", 200),
        ORACLE_MAX_SLOT_AGE=_env_int("ORACLE_MAX_SLOT_AGE", 0),

        # Admin / Privy Auth
        PRIVY_APP_ID=os.getenv("PRIVY_APP_ID", ""),
        PRIVY_APP_SECRET=os.getenv("PRIVY_APP_SECRET", ""),
        ADMIN_WALLETS=os.getenv("ADMIN_WALLETS", ""),

        ENV=os.getenv("ENV", "dev"),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
    )
