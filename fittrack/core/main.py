# fittrack/core/main.py
"""
The main entry point for the FastAPI application.

This file defines the FastAPI app, configures middleware, sets up startup/shutdown events,
and creates the API endpoints for the chatbot, the dashboard summary, and health checks.
"""
import time
import uuid
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, ConfigDict, Field
from starlette.responses import JSONResponse

from fittrack.core import error_handler_global
from fittrack.core.config_loader import get_config, setup_logging, validate_required_env_vars
from fittrack.core.error_handler_global import (
    AuthenticationError,
    RateLimitError,
    ValidationError,
    global_exception_handler,
)
from fittrack.core.orchestrator import Orchestrator

config = get_config()

# --- Logging Configuration ---
setup_logging(config)
logger = logging.getLogger(__name__)
validate_required_env_vars()

app_cfg = config.get("app", {})
error_handler_global.is_debug_mode = bool(app_cfg.get("debug", False))

# --- FastAPI App Initialization ---
app = FastAPI(
    title=app_cfg.get("name", "FitTrack API"),
    version=str(app_cfg.get("version", "0.1.0")),
    description="Chatbot and daily-summary API for the FitTrack fitness tracker.",
)

# --- Middleware Configuration ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.get("cors", {}).get("allowed_origins", []),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Logs incoming requests and their processing time."""
    request_id = str(uuid.uuid4())
    logger.info(f"rid={request_id} start request path={request.url.path}")
    start_time = time.time()

    response = await call_next(request)

    process_time = (time.time() - start_time) * 1000
    logger.info(f"rid={request_id} completed_in={process_time:.2f}ms status_code={response.status_code}")
    return response


# --- Startup and Shutdown Events ---
@app.on_event("startup")
async def startup_event():
    """
    Actions to perform on application startup.
    - Initialize Orchestrator, its database pool and its nutrition client
    """
    app.state.orchestrator = None
    try:
        orchestrator = Orchestrator(config=config)
        await orchestrator.connect_services()
        app.state.orchestrator = orchestrator
    except Exception as e:
        logger.critical(f"Orchestrator initialization failed: {e}", exc_info=True)


@app.on_event("shutdown")
async def shutdown_event():
    """
    Actions to perform on application shutdown.
    - Gracefully close database connections and the HTTP client
    """
    if getattr(app.state, "orchestrator", None):
        await app.state.orchestrator.close_services()
    logger.info("Application shutdown complete.")


# --- Exception Handlers ---
app.add_exception_handler(AuthenticationError, global_exception_handler)
app.add_exception_handler(ValidationError, global_exception_handler)
app.add_exception_handler(RateLimitError, global_exception_handler)
app.add_exception_handler(Exception, global_exception_handler)


# --- Request Models ---
class ChatMessageRequest(BaseModel):
    """
    Only the shape is checked here. Unknown states, unmatched options and
    unusable text are the dialogue engine's to answer, with a normal reply.
    """
    model_config = ConfigDict(populate_by_name=True)

    current_state: Optional[str] = Field(default=None, alias="currentState")
    selected_option: Optional[str] = Field(default=None, alias="selectedOption")
    user_input: Optional[str] = Field(default=None, alias="userInput")
    context: Dict[str, Any] = Field(default_factory=dict)


def _unavailable() -> JSONResponse:
    return JSONResponse(status_code=503, content={"error": "Orchestrator is not available. Check server configuration."})


# --- API Endpoints ---
@app.get("/health", tags=["System"])
async def health_check():
    """
    Provides a simple health check endpoint to verify the API is running.
    """
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "orchestrator_ready": bool(getattr(app.state, "orchestrator", None)),
    }


@app.get("/", tags=["System"])
async def root():
    """
    Root endpoint with a link to the API documentation.
    """
    return {"message": "Welcome to the FitTrack API. See /docs for documentation."}


@app.post("/chat/message", tags=["Chatbot"])
async def chat_message(body: ChatMessageRequest, request: Request):
    """
    Handles one chatbot turn. Signed-in users get the full dialogue, anyone
    else gets the guest dialogue. Dialogue problems come back as a normal
    200 response describing the error state.
    """
    orchestrator: Orchestrator = getattr(app.state, "orchestrator", None)
    if not orchestrator:
        return _unavailable()

    identity = orchestrator.resolve_identity(request.cookies, request.headers)
    response = await orchestrator.handle_chat_message(
        {
            "currentState": body.current_state,
            "selectedOption": body.selected_option,
            "userInput": body.user_input,
            "context": body.context,
        },
        identity,
    )
    return JSONResponse(content=response)


@app.get("/api/dashboard/today-summary", tags=["Dashboard"])
async def today_summary(request: Request):
    """
    Returns today's calorie budget, meals and water for the signed-in user.
    """
    orchestrator: Orchestrator = getattr(app.state, "orchestrator", None)
    if not orchestrator:
        return _unavailable()

    identity = orchestrator.resolve_identity(request.cookies, request.headers)
    return await orchestrator.get_today_summary(identity)
