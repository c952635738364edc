from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from triage_assistant.config.database import Database
from triage_assistant.config.settings import settings
from triage_assistant.api.chatbot import router as chatbot_router
from triage_assistant.middleware import JWTAuthMiddleware
import logging

# Configure logging
logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


def _uses_mongodb() -> bool:
    return settings.conversation_store_backend == "mongodb"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown events."""
    logger.info("Starting Triage Assistant Service...")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Conversation store: {settings.conversation_store_backend}")

    if _uses_mongodb():
        try:
            await Database.connect_db()
            logger.info("MongoDB connected successfully")
        except Exception as e:
            logger.error(f"Failed to connect to MongoDB: {e}")
            raise

    yield

    logger.info("Shutting down Triage Assistant Service...")
    if _uses_mongodb():
        await Database.close_db()
        logger.info("MongoDB connection closed")


app = FastAPI(
    title="Triage Assistant",
    description="Clinical interview and urgency triage behind the telemedicine chatbot.",
    version="1.0.0",
    lifespan=lifespan,
)

# add_middleware stacks LIFO: CORS is added last so it runs first and
# every response, including 401s from the JWT middleware, carries CORS headers.
app.add_middleware(JWTAuthMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(chatbot_router)


@app.get("/health")
async def health_check():
    """Health check endpoint."""
    if _uses_mongodb():
        try:
            db = Database.get_database()
            await db.command("ping")
            store_status = "connected"
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            store_status = f"error: {str(e)}"
    else:
        store_status = "in-memory"

    return {
        "status": "ok",
        "service": settings.service_name,
        "version": "1.0.0",
        "dependencies": {
            "conversation_store": store_status,
            "reasoning_model": (
                "configured" if settings.llm_api_key else "not configured"
            ),
        },
    }


@app.get("/")
async def root():
    return {
        "message": "Triage Assistant Service",
        "description": "Clinical triage state machine for the telemedicine chatbot",
        "version": "1.0.0",
        "docs": "/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host="0.0.0.0",
        port=settings.triage_assistant_port,
        reload=settings.environment == "development",
    )
