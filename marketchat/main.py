from contextlib import asynccontextmanager

from fastapi import FastAPI

from marketchat.config.logging_config import setup_logging
from marketchat.config.settings import Config
from marketchat.database.connection import close_mongo_connection, connect_to_mongo, get_database
from marketchat.repositories.conversation_repository import ConversationRepository
from marketchat.repositories.message_repository import MessageRepository
from marketchat.routers.conversations import router as conversations_router
from marketchat.routers.realtime import router as realtime_router
from marketchat.utils.error_handlers import register_error_handlers


setup_logging(Config.LOG_LEVEL, Config.LOG_FILE)


@asynccontextmanager
async def lifespan(app: FastAPI):

    await connect_to_mongo()
    db = get_database()
    await ConversationRepository(db).ensure_indexes()
    await MessageRepository(db).ensure_indexes()
    try:
        yield
    finally:
        await close_mongo_connection()


app = FastAPI(title="Marketplace conversations", lifespan=lifespan)

register_error_handlers(app)

app.include_router(conversations_router)
app.include_router(realtime_router)


@app.get("/health")
async def health():
    return {"status": "healthy", "service": "marketchat"}
