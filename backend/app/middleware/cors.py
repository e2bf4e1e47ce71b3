"""
CORS Middleware Configuration
Lets the admin front-end call the API from another origin with cookies.
"""

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from app.core.config import settings


def setup_cors(app: FastAPI) -> None:
    """
    Configure CORS middleware for the FastAPI application.

    Origins come from settings.CORS_ORIGINS. Credentials are allowed because
    the session lives in the access_token / refresh_token cookies, which also
    rules out a "*" origin.
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
