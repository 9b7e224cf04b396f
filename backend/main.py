import logging
import os

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from minitable import DatabaseEngine, TableLocator

from tables import TABLE_CLASSES, create_schema
from endpoints.authors_endpoints import router as authors_router
from endpoints.articles_endpoints import router as articles_router

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(name)s %(levelname)s %(message)s")


class Message(BaseModel):
    text: str


def create_app(db_path=None):
    app = FastAPI()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    engine = DatabaseEngine(db_path or os.environ.get("MINITABLE_DB", "minitable.sqlite"))
    locator = TableLocator(engine, TABLE_CLASSES)
    create_schema(locator)
    app.state.locator = locator

    @app.get("/api/health", response_model=Message)
    def health():
        return Message(text="ok")

    app.include_router(authors_router)
    app.include_router(articles_router)
    return app


app = create_app()
