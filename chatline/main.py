from contextlib import asynccontextmanager
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from chatline import api
from chatline.api import include_routers
from chatline.core.config import settings
from chatline.core.logging import setup_logging
from chatline.database import init_databases, close_databases, uses_mongo
from chatline.realtime.hub import ChatHub
from chatline.services.account_directory import SqlAccountDirectory
from chatline.services.message_store import InMemoryMessageStore, MongoMessageStore, MessageStore

logger = logging.getLogger(__name__)


def create_message_store() -> MessageStore:
    if uses_mongo():
        return MongoMessageStore()
    return InMemoryMessageStore()


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    setup_logging()
    await init_databases()
    app.state.hub = ChatHub(directory=SqlAccountDirectory(), store=create_message_store())
    logger.info(f"{settings.app_name} started with {settings.message_store} message store")
    yield
    # Shutdown
    await app.state.hub.shutdown()
    await close_databases()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
include_routers(app, "api", api.__path__)
