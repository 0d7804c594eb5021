from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from lms_quiz.routes import quiz
from lms_quiz.core.config import settings
from lms_quiz.core.logging import configure_logging

configure_logging(settings.LOG_LEVEL)

app = FastAPI(title="LMS Quiz Attempt API")

# CORS middleware configuration
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers
app.include_router(quiz.router, prefix="/api", tags=["quiz"])
