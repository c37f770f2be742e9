"""
Firebase Admin initialisation.
"""

from __future__ import annotations

import logging

import firebase_admin
from firebase_admin import credentials

from innonexus.config import Settings

logger = logging.getLogger(__name__)


def _credential(settings: Settings):
    if settings.firebase_client_email and settings.firebase_private_key:
        return credentials.Certificate(
            {
                "type": "service_account",
                "project_id": settings.firebase_project_id,
                "client_email": settings.firebase_client_email,
                # Keys pasted into env files carry escaped newlines.
                "private_key": settings.firebase_private_key.replace("\\n", "\n"),
                "token_uri": "https://oauth2.googleapis.com/token",
            }
        )
    return credentials.ApplicationDefault()


def get_firebase_app(settings: Settings) -> firebase_admin.App:
    """Return the default Firebase app, initialising it on first use."""
    try:
        return firebase_admin.get_app()
    except ValueError:
        logger.info("Initialising Firebase app for project %s", settings.firebase_project_id)
        return firebase_admin.initialize_app(
            _credential(settings), {"projectId": settings.firebase_project_id}
        )
