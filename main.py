# main.py
from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from adapters.entry.http.views.admin.admin_chamber_view import router as admin_chamber_router
from adapters.entry.http.views.chamber_view import router as chamber_router
from adapters.external.database.chamber_repository_mongodb import ChamberRepositoryMongoDB
from adapters.external.database.user_account_repository_mongodb import UserAccountRepositoryMongoDB
from config import get_settings


def init_mongo_indexes() -> None:
    """
    Make sure the chamber collections have their lookup and unique indexes
    before serving any request.
    """
    ChamberRepositoryMongoDB().ensure_indexes()
    UserAccountRepositoryMongoDB().ensure_indexes()


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_mongo_indexes()
    yield


def create_app() -> FastAPI:
    """
    Application factory for the Chamber API.
    """
    s = get_settings()
    logging.basicConfig(
        level=getattr(logging, (s.LOG_LEVEL or "INFO").upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="Chamber API",
        version="0.1.0",
        lifespan=lifespan,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(chamber_router, prefix="/api")
    app.include_router(admin_chamber_router, prefix="/api")

    return app


app = create_app()
