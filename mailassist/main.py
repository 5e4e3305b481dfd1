"""
FastAPI application entry point.
"""
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from mailassist.config import APP_VERSION, get_settings
from mailassist.routes import assistant, auth, chat, emails, health, user
from mailassist.utils.logger import setup_logging

# Setup logging
setup_logging()

# Create FastAPI app
app = FastAPI(
    title="Mail Assistant",
    description="AI email assistant: read, summarize, reply to and delete Gmail messages by chat",
    version=APP_VERSION,
)

settings = get_settings()

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.frontend_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(health.router, prefix="/api", tags=["Health"])
app.include_router(auth.router, prefix="/api/auth", tags=["Authentication"])
app.include_router(user.router, prefix="/api", tags=["User"])
app.include_router(assistant.router, prefix="/api", tags=["Assistant"])
app.include_router(emails.router, prefix="/api", tags=["Emails"])
app.include_router(chat.router, prefix="/api", tags=["Chat"])


@app.get("/")
async def root():
    """Root endpoint - points to docs."""
    return {
        "message": "Mail Assistant API",
        "docs": "/docs",
        "health": "/api/health",
    }
