"""Main entry point for the Gemini chat backend API."""
import logging
from contextlib import asynccontextmanager
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from config import PORT, LOG_LEVEL, LOG_FORMAT, CORS_ORIGINS
from logger import setup_logging
from models.api import ChatRequest, ChatResponse, LogoutRequest, LogoutResponse, ErrorResponse
from services.chat_service import ChatService, ValidationError
from services.conversation_store import ConversationStore
from services.llm_client import LLMClient

# Initialize logging
setup_logging(LOG_LEVEL, LOG_FORMAT)
logger = logging.getLogger(__name__)

LOGOUT_MESSAGE = "Chat history deleted, user logged out."

# Error body returned for unparseable requests, per route
VALIDATION_MESSAGES = {
    "/chat": "Missing userId or message",
    "/logout": "User ID required",
}


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build services once at startup and close the database client on shutdown."""
    logger.info("Initializing chat backend services...")

    store = None
    try:
        try:
            store = ConversationStore()
            logger.info("Initialized ConversationStore")

            llm_client = LLMClient()
            logger.info("Initialized LLMClient")

            app.state.chat_service = ChatService(store, llm_client)
            logger.info("All services initialized successfully")
        except Exception as e:
            logger.error(f"Failed to initialize services: {e}", exc_info=True)
            raise

        yield

        logger.info("Shutting down chat backend services...")
    finally:
        # Also runs when startup fails after the store was built
        if store is not None:
            store.close()


# Initialize FastAPI app
app = FastAPI(
    title="Gemini Chat Backend",
    description="Chat proxy to Google Gemini with per-user history",
    version="1.0.0",
    lifespan=lifespan
)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat_service


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Report malformed bodies with the same 400 error as a missing field."""
    logger.info(f"Rejected malformed request to {request.url.path}: {exc.errors()}")
    message = VALIDATION_MESSAGES.get(request.url.path, "Invalid request")
    return JSONResponse(status_code=400, content={"error": message})


@app.get("/")
async def root():
    """Health check endpoint."""
    return {"status": "ok", "message": "Gemini Chat Backend API"}


@app.get("/health")
async def health():
    """Detailed health check."""
    return {
        "status": "healthy",
        "service": "gemini-chat-backend",
        "version": "1.0.0"
    }


@app.post(
    "/chat",
    response_model=ChatResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
def chat_endpoint(request: ChatRequest, chat_service: ChatService = Depends(get_chat_service)):
    """
    Send a message on behalf of a user and return the assistant's reply.

    The reply is either generated by Gemini or, when generation fails, a
    fallback notice echoing the message. Both are stored in the user's history.

    Args:
        request: ChatRequest with userId and message

    Returns:
        ChatResponse with the reply, or an error body with status 400/500
    """
    try:
        result = chat_service.send_message(request.userId, request.message)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        logger.error(f"Chat API error: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": str(e)})

    return ChatResponse(reply=result.reply)


@app.post(
    "/logout",
    response_model=LogoutResponse,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}
)
def logout_endpoint(request: LogoutRequest, chat_service: ChatService = Depends(get_chat_service)):
    """Delete the user's chat history."""
    try:
        chat_service.logout(request.userId)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"error": str(e)})
    except Exception as e:
        logger.error(f"Logout error: {e}", exc_info=True)
        return JSONResponse(status_code=500, content={"error": "Internal Server Error"})

    return LogoutResponse(message=LOGOUT_MESSAGE)


if __name__ == "__main__":
    import uvicorn
    logger.info(f"Starting Gemini chat backend on port {PORT}")
    uvicorn.run(app, host="0.0.0.0", port=PORT)
