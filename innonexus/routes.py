"""
HTTP routes for the incubator API.
"""

from __future__ import annotations

import hmac
import logging
from typing import Optional

from fastapi import APIRouter, Body, Depends, Header, Query
from fastapi.responses import JSONResponse

from innonexus import events as event_service
from innonexus import mentors as mentor_service
from innonexus import notifications as notification_service
from innonexus import startups as startup_service
from innonexus import submissions as submission_service
from innonexus import users as user_service
from innonexus.config import get_settings
from innonexus.dependencies import (
    get_current_user,
    get_identity_provider,
    get_mailer,
    get_store,
    get_token_service,
    get_workflow,
    require_admin,
    require_mentor,
)
from innonexus.errors import ValidationError
from innonexus.identity import AuthUser, IdentityProvider
from innonexus.mailer import Mailer
from innonexus.mentor_requests import MentorRequestWorkflow
from innonexus.migration import backfill_submission_fields, migrate_mentors
from innonexus.schemas import (
    ActionResponse,
    AdminActionPayload,
    AdminCredentialsPayload,
    ApplicationActionPayload,
    DeleteAuthUserPayload,
    EmailActionPayload,
    EventPayload,
    EventUpdatePayload,
    MentorCreatePayload,
    MentorDecisionPayload,
    MentorProfileUpdate,
    MentorRequestCreate,
    NotificationPreferencesPayload,
    StartupPayload,
    UserProfileUpdate,
)
from innonexus.sheets import import_off_campus_sheet
from innonexus.store import DocumentStore
from innonexus.tokens import EmailTokenService

logger = logging.getLogger(__name__)

router = APIRouter()


# Public intake


@router.post("/contact-submissions", status_code=201)
def create_contact_submission(
    payload: dict = Body(...),
    store: DocumentStore = Depends(get_store),
):
    """
    Applicant intake form. Responds with the fixed ``{message}`` envelope the
    public form expects rather than the API-wide error shape.
    """
    try:
        submission = submission_service.create_submission(store, payload)
    except ValidationError as e:
        return JSONResponse(status_code=400, content={"message": e.message})
    except Exception as e:
        logger.exception("Error creating submission")
        return JSONResponse(
            status_code=500,
            content={"message": "Internal server error", "details": str(e)},
        )
    return {"message": "Application submitted successfully", "id": submission.id}


# Operational


def _cleanup_authorized(authorization: Optional[str]) -> bool:
    settings = get_settings()
    accepted = [s for s in (settings.cleanup_api_key, settings.cron_secret) if s]
    if not authorization or not accepted:
        return False
    given = authorization.encode("utf-8")
    return any(hmac.compare_digest(given, f"Bearer {s}".encode("utf-8")) for s in accepted)


@router.api_route("/cleanup-tokens", methods=["GET", "POST"])
def cleanup_tokens(
    authorization: Optional[str] = Header(default=None),
    tokens: EmailTokenService = Depends(get_token_service),
):
    if not _cleanup_authorized(authorization):
        return JSONResponse(status_code=401, content={"error": "Unauthorized"})
    try:
        count = tokens.cleanup_expired()
    except Exception as e:
        logger.exception("Token cleanup failed")
        return JSONResponse(
            status_code=500, content={"error": "Cleanup failed", "details": str(e)}
        )
    if count == 0:
        return {"message": "No expired tokens to clean up", "count": 0}
    return {"message": f"Successfully cleaned up {count} expired tokens", "count": count}


# Email actions (token-gated, no sign-in)


@router.get("/email-actions/{token}")
def preview_email_action(
    token: str, workflow: MentorRequestWorkflow = Depends(get_workflow)
):
    email_token, request = workflow.preview_token(token)
    return {
        "success": True,
        "action": email_token.action.value if email_token.action else None,
        "expiresAt": email_token.expires_at,
        "request": {
            "id": request.id,
            "userName": request.user_name,
            "mentorName": request.mentor_name,
            "requestMessage": request.request_message,
            "status": request.status.value,
        },
    }


@router.post("/email-actions/{token}")
def perform_email_action(
    token: str,
    payload: Optional[EmailActionPayload] = Body(default=None),
    workflow: MentorRequestWorkflow = Depends(get_workflow),
):
    payload = payload or EmailActionPayload()
    result = workflow.process_token_decision(token, payload.action, payload.notes)
    return {
        "success": True,
        "message": result.message,
        "status": result.request.status.value,
    }


# Public listings


@router.get("/events")
def list_public_events(store: DocumentStore = Depends(get_store)):
    return [e.as_dict() for e in event_service.list_events(store, public_only=True)]


@router.get("/mentors")
def list_mentors(store: DocumentStore = Depends(get_store)):
    return [m.as_dict() for m in mentor_service.list_mentors(store)]


@router.get("/mentors/{mentor_id}")
def get_mentor(mentor_id: str, store: DocumentStore = Depends(get_store)):
    return mentor_service.get_mentor(store, mentor_id).as_dict()


@router.get("/startups")
def list_startups(store: DocumentStore = Depends(get_store)):
    return [s.as_dict() for s in startup_service.list_startups(store)]


# Signed-in user


@router.get("/users/me")
def get_my_profile(
    user: AuthUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    return user_service.get_user(store, user.uid).as_dict()


@router.put("/users/me/profile")
def update_my_profile(
    payload: UserProfileUpdate,
    user: AuthUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    profile = user_service.update_user_profile(store, user.uid, payload)
    return {"success": True, "message": "Profile updated successfully!", "data": profile.as_dict()}


@router.put("/users/me/notification-preferences")
def update_my_notification_preferences(
    payload: NotificationPreferencesPayload,
    user: AuthUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    user_service.update_notification_preferences(store, user.uid, payload)
    return ActionResponse(
        success=True, message="Notification preferences updated successfully!"
    )


@router.get("/notifications")
def list_my_notifications(
    user: AuthUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    return [n.as_dict() for n in notification_service.list_notifications(store, user.uid)]


@router.get("/notifications/unread-count")
def my_unread_count(
    user: AuthUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    return {"count": notification_service.unread_count(store, user.uid)}


@router.post("/notifications/{notification_id}/read", response_model=ActionResponse)
def mark_notification_read(
    notification_id: str,
    user: AuthUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    notification_service.mark_read(store, notification_id, user.uid)
    return ActionResponse(success=True, message="Notification marked as read.")


@router.post("/notifications/read-all")
def mark_all_notifications_read(
    user: AuthUser = Depends(get_current_user),
    store: DocumentStore = Depends(get_store),
):
    count = notification_service.mark_all_read(store, user.uid)
    return {"success": True, "count": count}


@router.post("/mentor-requests", status_code=201)
def submit_mentor_request(
    payload: MentorRequestCreate,
    user: AuthUser = Depends(get_current_user),
    workflow: MentorRequestWorkflow = Depends(get_workflow),
):
    request = workflow.submit_request(
        user, payload.mentor_id, payload.request_message, user_name=payload.user_name
    )
    return {
        "success": True,
        "message": "Mentor request submitted successfully! Admin will review your request.",
        "requestId": request.id,
    }


@router.get("/mentor-requests")
def list_my_mentor_requests(
    user: AuthUser = Depends(get_current_user),
    workflow: MentorRequestWorkflow = Depends(get_workflow),
):
    return [r.as_dict() for r in workflow.list_user_requests(user.uid)]


# Mentor portal


@router.get("/mentor/requests/{request_id}")
def get_mentor_request(
    request_id: str,
    mentor: AuthUser = Depends(require_mentor),
    workflow: MentorRequestWorkflow = Depends(get_workflow),
):
    request, details = workflow.get_request_for_mentor(request_id, mentor.email)
    return {"success": True, "request": request.as_dict(), "userDetails": details}


@router.post("/mentor/requests/{request_id}/decision", response_model=ActionResponse)
def decide_mentor_request(
    request_id: str,
    payload: MentorDecisionPayload,
    mentor: AuthUser = Depends(require_mentor),
    workflow: MentorRequestWorkflow = Depends(get_workflow),
):
    result = workflow.process_mentor_decision(
        request_id, payload.action, payload.notes, mentor.email
    )
    return ActionResponse(success=True, message=result.message)


@router.get("/mentor/mentees")
def list_mentees(
    mentor: AuthUser = Depends(require_mentor),
    workflow: MentorRequestWorkflow = Depends(get_workflow),
):
    return {
        "success": True,
        "mentees": [r.as_dict() for r in workflow.list_approved_mentees(mentor.email)],
    }


@router.get("/mentor/mentees/{user_id}")
def get_mentee(
    user_id: str,
    mentor: AuthUser = Depends(require_mentor),
    workflow: MentorRequestWorkflow = Depends(get_workflow),
):
    profile = workflow.get_mentee_profile(user_id, mentor.email)
    return {"success": True, "data": profile.as_dict()}


@router.put("/mentor/profile")
def update_own_mentor_profile(
    payload: MentorProfileUpdate,
    mentor: AuthUser = Depends(require_mentor),
    store: DocumentStore = Depends(get_store),
):
    return mentor_service.update_mentor_profile(store, mentor.uid, payload).as_dict()


# Admin console


@router.get("/admin/submissions")
def list_submissions(
    campus_status: Optional[str] = Query(default=None, alias="campusStatus"),
    _admin: AuthUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return [s.as_dict() for s in submission_service.list_submissions(store, campus_status)]


@router.post("/admin/submissions/{submission_id}/process")
def process_submission(
    submission_id: str,
    payload: ApplicationActionPayload,
    _admin: AuthUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
    mailer: Mailer = Depends(get_mailer),
):
    result = submission_service.process_application(
        store, mailer, submission_id, payload.action
    )
    return result.as_dict()


@router.post("/admin/submissions/import-sheet")
def import_submissions_sheet(
    _admin: AuthUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    settings = get_settings()
    summary = import_off_campus_sheet(
        store,
        sheet_id=settings.off_campus_sheet_id,
        sheet_range=settings.off_campus_sheet_range,
        service_account_json=settings.google_service_account_key_json,
    )
    return {"success": True, **summary.as_dict()}


@router.post("/admin/submissions/backfill-fields")
def backfill_submissions(
    _admin: AuthUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return {"success": True, "updatedCount": backfill_submission_fields(store)}


@router.get("/admin/events")
def list_all_events(
    _admin: AuthUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return [e.as_dict() for e in event_service.list_events(store)]


@router.post("/admin/events", status_code=201)
def create_event(
    payload: EventPayload,
    _admin: AuthUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    event = event_service.create_event(store, payload)
    return {"success": True, "eventId": event.id, "message": "Event created successfully."}


@router.put("/admin/events/{event_id}")
def update_event(
    event_id: str,
    payload: EventUpdatePayload,
    _admin: AuthUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return event_service.update_event(store, event_id, payload).as_dict()


@router.delete("/admin/events/{event_id}", response_model=ActionResponse)
def delete_event(
    event_id: str,
    _admin: AuthUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    event_service.delete_event(store, event_id)
    return ActionResponse(success=True, message="Event deleted successfully.")


@router.post("/admin/mentors", status_code=201)
def create_mentor(
    payload: MentorCreatePayload,
    _admin: AuthUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    mentor = mentor_service.create_mentor(store, identity, payload)
    return {
        "success": True,
        "mentorId": mentor.id,
        "message": "Mentor added and account created successfully.",
    }


@router.post("/admin/startups", status_code=201)
def create_startup(
    payload: StartupPayload,
    _admin: AuthUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    startup = startup_service.create_startup(store, payload)
    return {"success": True, "startupId": startup.id, "message": "Startup added successfully."}


@router.put("/admin/startups/{startup_id}")
def update_startup(
    startup_id: str,
    payload: StartupPayload,
    _admin: AuthUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    return startup_service.update_startup(store, startup_id, payload).as_dict()


@router.delete("/admin/startups/{startup_id}", response_model=ActionResponse)
def delete_startup(
    startup_id: str,
    _admin: AuthUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    startup_service.delete_startup(store, startup_id)
    return ActionResponse(success=True, message="Startup deleted successfully.")


@router.get("/admin/mentor-requests")
def list_mentor_requests(
    _admin: AuthUser = Depends(require_admin),
    workflow: MentorRequestWorkflow = Depends(get_workflow),
):
    return [r.as_dict() for r in workflow.list_admin_requests()]


@router.post("/admin/mentor-requests/{request_id}/action", response_model=ActionResponse)
def act_on_mentor_request(
    request_id: str,
    payload: AdminActionPayload,
    admin: AuthUser = Depends(require_admin),
    workflow: MentorRequestWorkflow = Depends(get_workflow),
):
    result = workflow.process_admin_action(
        admin.uid, request_id, payload.action, payload.notes
    )
    return ActionResponse(success=True, message=result.message)


@router.delete("/admin/delete-auth-user", response_model=ActionResponse)
def delete_auth_user(
    payload: Optional[DeleteAuthUserPayload] = Body(default=None),
    _admin: AuthUser = Depends(require_admin),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    uid = payload.uid if payload else None
    user_service.delete_auth_user(identity, uid)
    return ActionResponse(
        success=True, message=f"Firebase Auth user {uid} deleted successfully."
    )


@router.get("/admin/migrate-mentors")
def describe_mentor_migration():
    return {
        "message": "Mentor Migration API",
        "description": (
            "Use POST method to run the migration from old mentor structure "
            "to new subcollection structure"
        ),
        "endpoints": {"POST /api/admin/migrate-mentors": "Run the migration"},
    }


@router.post("/admin/migrate-mentors")
def run_mentor_migration(
    _admin: AuthUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
):
    try:
        summary = migrate_mentors(store)
    except Exception as e:
        logger.exception("Mentor migration failed")
        return JSONResponse(
            status_code=500,
            content={
                "success": False,
                "message": f"Migration failed: {e}",
                "error": repr(e),
            },
        )
    return {
        "success": True,
        "message": "Migration completed successfully!",
        **summary.as_dict(),
    }


@router.put("/admin/settings/credentials", response_model=ActionResponse)
def update_admin_credentials(
    payload: AdminCredentialsPayload,
    admin: AuthUser = Depends(require_admin),
    store: DocumentStore = Depends(get_store),
    identity: IdentityProvider = Depends(get_identity_provider),
):
    user_service.update_admin_credentials(store, identity, admin.uid, payload)
    return ActionResponse(
        success=True,
        message=(
            "Admin credentials updated successfully. "
            "Please use the new credentials to log in next time."
        ),
    )
