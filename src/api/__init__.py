"""
FastAPI call-coach service.

Provides REST API for call analysis with:
- POST /jobs - Upload a recording for transcription and scoring
- GET /jobs/{id}/events - Server-sent status stream
- POST /scoring/analyze - Score a transcript directly
- GET /health - Service health check
"""

from src.api.app import create_app

__all__ = ["create_app"]
