"""
Mentor-request approval pipeline.

A request moves ``pending -> admin_approved | admin_rejected`` on the admin's
decision, then ``admin_approved -> mentor_approved | mentor_rejected`` on the
mentor's. Every move is a conditional update on ``status``, so a request is
never processed twice even when two reviewers act at once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from innonexus.constants import (
    MENTOR_REQUESTS_COLLECTION,
    MENTOR_REQUEST_SLOTS_COLLECTION,
    MENTORS_COLLECTION,
    MIN_REQUEST_MESSAGE_LENGTH,
    SUBMISSIONS_COLLECTION,
    USERS_COLLECTION,
)
from innonexus.emails import (
    EmailContent,
    admin_rejection_email,
    mentor_approved_email,
    mentor_declined_email,
    mentor_review_email,
)
from innonexus.errors import (
    InvalidTransitionError,
    NotFoundError,
    PermissionDeniedError,
    ValidationError,
)
from innonexus.identity import AuthUser
from innonexus.mailer import EmailResult, Mailer
from innonexus.notifications import create_notification
from innonexus.records import (
    Decision,
    EmailToken,
    MentorRequest,
    MentorRequestStatus,
    NotificationType,
    UserProfile,
)
from innonexus.store import DocumentStore, Filter
from innonexus.tokens import EmailTokenService

logger = logging.getLogger(__name__)

TRANSITIONS: dict[MentorRequestStatus, dict[Decision, MentorRequestStatus]] = {
    MentorRequestStatus.PENDING: {
        Decision.APPROVE: MentorRequestStatus.ADMIN_APPROVED,
        Decision.REJECT: MentorRequestStatus.ADMIN_REJECTED,
    },
    MentorRequestStatus.ADMIN_APPROVED: {
        Decision.APPROVE: MentorRequestStatus.MENTOR_APPROVED,
        Decision.REJECT: MentorRequestStatus.MENTOR_REJECTED,
    },
}

OPEN_STATUSES = (MentorRequestStatus.PENDING, MentorRequestStatus.ADMIN_APPROVED)

DUPLICATE_REQUEST_MESSAGE = "You already have a pending request for this mentor"


def next_status(current: MentorRequestStatus, action: Decision) -> MentorRequestStatus:
    """Return the state ``action`` leads to from ``current``."""
    try:
        return TRANSITIONS[current][action]
    except KeyError:
        raise InvalidTransitionError(
            f"Cannot {action.value} a request in status {current.value}",
            current_status=current.value,
        )


@dataclass
class TransitionResult:
    request: MentorRequest
    message: str
    email: Optional[EmailResult] = None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _user_profile_details(store: DocumentStore, user_id: str) -> Optional[dict]:
    """
    Applicant details shown to the mentor. ``users`` holds signed-up users;
    onboarding submissions are the fallback for older accounts.
    """
    data = store.get(USERS_COLLECTION, user_id)
    if data is not None:
        return {
            "name": data.get("name") or "N/A",
            "email": data.get("email") or "N/A",
            "phone": data.get("phone"),
            "college": data.get("college"),
            "course": data.get("course"),
            "yearOfStudy": data.get("yearOfStudy"),
            "skills": data.get("skills"),
            "bio": data.get("bio"),
            "linkedinUrl": data.get("linkedinUrl") or data.get("linkedin"),
            "portfolioUrl": data.get("portfolioUrl"),
        }

    submissions = store.query(
        SUBMISSIONS_COLLECTION, [Filter("uid", "==", user_id)], limit=1
    )
    if not submissions:
        return None
    _, submission = submissions[0]
    personal = submission.get("personalInfo") or {}
    technical = submission.get("technicalInfo") or {}
    return {
        "name": personal.get("fullName") or submission.get("name") or "N/A",
        "email": personal.get("email") or submission.get("email") or "N/A",
        "phone": personal.get("phoneNumber"),
        "college": personal.get("collegeName"),
        "course": personal.get("course"),
        "yearOfStudy": personal.get("yearOfStudy"),
        "skills": technical.get("technicalSkills"),
        "bio": personal.get("aboutYourself"),
        "linkedinUrl": personal.get("linkedinProfile"),
        "portfolioUrl": personal.get("portfolioWebsite"),
    }


class MentorRequestWorkflow:
    """Runs the approval pipeline against one store, mailer and token service."""

    def __init__(
        self,
        store: DocumentStore,
        mailer: Mailer,
        tokens: EmailTokenService,
        app_url: str = "http://localhost:9002",
        api_prefix: str = "/api",
    ):
        self.store = store
        self.mailer = mailer
        self.tokens = tokens
        self.app_url = app_url.rstrip("/")
        self.api_prefix = api_prefix

    def _send(self, to: str, content: EmailContent) -> EmailResult:
        result = self.mailer.send(to, content.subject, content.text, content.html)
        if not result.success:
            logger.warning("Email to %s not delivered: %s", to, result.message)
        return result

    def _load(self, request_id: str) -> MentorRequest:
        if not request_id:
            raise ValidationError("Request ID is required", field="requestId")
        data = self.store.get(MENTOR_REQUESTS_COLLECTION, request_id)
        if data is None:
            raise NotFoundError("Request not found")
        return MentorRequest.from_document(request_id, data)

    def _transition(
        self,
        request: MentorRequest,
        expected: MentorRequestStatus,
        action: Decision,
        updates: dict,
        conflict_message: str,
    ) -> MentorRequest:
        if request.status != expected:
            raise InvalidTransitionError(
                conflict_message, current_status=request.status.value
            )
        target = next_status(expected, action)
        updates = {"status": target.value, **updates}
        result = self.store.compare_and_set(
            MENTOR_REQUESTS_COLLECTION, request.id, "status", expected.value, updates
        )
        if not result.applied:
            if not result.exists:
                raise NotFoundError("Request not found")
            raise InvalidTransitionError(conflict_message, current_status=result.previous)
        logger.info(
            "Mentor request %s moved %s -> %s", request.id, expected.value, target.value
        )
        return self._load(request.id)

    def _is_open(self, request_id: str) -> bool:
        data = self.store.get(MENTOR_REQUESTS_COLLECTION, request_id)
        if data is None:
            return False
        return data.get("status") in [s.value for s in OPEN_STATUSES]

    def _claim_slot(
        self, user_id: str, mentor_id: str, request_id: str, now: datetime
    ) -> bool:
        """
        Point the (user, mentor) slot at ``request_id``. Fails while the slot
        holds another open request; a slot left by a closed request is taken
        over with compare-and-set so only one concurrent submit wins it.
        """
        slot_id = f"{user_id}_{mentor_id}"
        slot = {
            "requestId": request_id,
            "userId": user_id,
            "mentorId": mentor_id,
            "createdAt": now,
        }
        if self.store.create(MENTOR_REQUEST_SLOTS_COLLECTION, slot_id, slot):
            return True
        current = self.store.get(MENTOR_REQUEST_SLOTS_COLLECTION, slot_id)
        if current is None:
            return self.store.create(MENTOR_REQUEST_SLOTS_COLLECTION, slot_id, slot)
        held_by = current.get("requestId")
        if held_by and self._is_open(held_by):
            return False
        result = self.store.compare_and_set(
            MENTOR_REQUEST_SLOTS_COLLECTION,
            slot_id,
            "requestId",
            held_by,
            {"requestId": request_id, "createdAt": now},
        )
        return result.applied

    def email_action_url(self, token_id: str) -> str:
        return f"{self.app_url}{self.api_prefix}/email-actions/{token_id}"

    # Submission

    def submit_request(
        self,
        user: AuthUser,
        mentor_id: str,
        request_message: str,
        user_name: Optional[str] = None,
    ) -> MentorRequest:
        if not mentor_id:
            raise ValidationError("Mentor ID is required", field="mentorId")
        if len((request_message or "").strip()) < MIN_REQUEST_MESSAGE_LENGTH:
            raise ValidationError(
                f"Request message must be at least {MIN_REQUEST_MESSAGE_LENGTH} characters",
                field="requestMessage",
            )

        mentor = self.store.get(MENTORS_COLLECTION, mentor_id)
        if mentor is None:
            raise NotFoundError("Mentor not found")

        existing = self.store.query(
            MENTOR_REQUESTS_COLLECTION,
            [
                Filter("userId", "==", user.uid),
                Filter("mentorId", "==", mentor_id),
                Filter("status", "in", [s.value for s in OPEN_STATUSES]),
            ],
            limit=1,
        )
        if existing:
            raise ValidationError(DUPLICATE_REQUEST_MESSAGE, field="mentorId")

        now = _now()
        request = MentorRequest(
            id="",
            user_id=user.uid,
            user_email=user.email,
            user_name=user_name or user.display_name or user.email,
            mentor_id=mentor_id,
            mentor_email=mentor.get("email", ""),
            mentor_name=mentor.get("name") or "Unknown Mentor",
            status=MentorRequestStatus.PENDING,
            request_message=request_message.strip(),
            created_at=now,
            updated_at=now,
        )
        request.id = self.store.add(MENTOR_REQUESTS_COLLECTION, request.as_document())
        if not self._claim_slot(user.uid, mentor_id, request.id, now):
            self.store.delete(MENTOR_REQUESTS_COLLECTION, request.id)
            raise ValidationError(DUPLICATE_REQUEST_MESSAGE, field="mentorId")
        logger.info(
            "User %s requested mentor %s (request %s)", user.uid, mentor_id, request.id
        )
        return request

    # Admin review

    def process_admin_action(
        self,
        admin_id: str,
        request_id: str,
        action: Decision,
        notes: Optional[str] = None,
    ) -> TransitionResult:
        request = self._load(request_id)
        now = _now()
        request = self._transition(
            request,
            MentorRequestStatus.PENDING,
            action,
            {
                "adminNotes": notes or "",
                "adminProcessedAt": now,
                "adminProcessedBy": admin_id,
                "updatedAt": now,
            },
            "Request has already been processed",
        )

        if action == Decision.REJECT:
            email = self._send(
                request.user_email,
                admin_rejection_email(request.user_name, request.mentor_name, notes),
            )
            create_notification(
                self.store,
                user_id=request.user_id,
                type=NotificationType.MENTOR_REQUEST_REJECTED,
                title="Mentor Request Update",
                message=(
                    f"Your request to connect with {request.mentor_name} "
                    "was not approved by admin"
                ),
                request_id=request.id,
                mentor_id=request.mentor_id,
                mentor_name=request.mentor_name,
            )
            return TransitionResult(
                request=request, message="Request rejected and user notified.", email=email
            )

        details = _user_profile_details(self.store, request.user_id)
        applicant_name = (details or {}).get("name") or request.user_name
        approve_token = self.tokens.issue(request.id, request.mentor_email, Decision.APPROVE)
        reject_token = self.tokens.issue(request.id, request.mentor_email, Decision.REJECT)
        email = self._send(
            request.mentor_email,
            mentor_review_email(
                mentor_name=request.mentor_name,
                applicant_name=applicant_name,
                requests_url=f"{self.app_url}/mentor/requests",
                login_url=f"{self.app_url}/login",
                approve_url=self.email_action_url(approve_token),
                reject_url=self.email_action_url(reject_token),
            ),
        )
        create_notification(
            self.store,
            user_id=request.user_id,
            type=NotificationType.MENTOR_REQUEST_FORWARDED,
            title="Mentor Request Approved by Admin",
            message=(
                f"Your request to connect with {request.mentor_name} was approved "
                "by admin and is awaiting the mentor's response"
            ),
            request_id=request.id,
            mentor_id=request.mentor_id,
            mentor_name=request.mentor_name,
        )
        return TransitionResult(
            request=request,
            message="Request approved and mentor has been notified.",
            email=email,
        )

    # Mentor decision

    def process_mentor_decision(
        self,
        request_id: str,
        action: Decision,
        notes: Optional[str],
        mentor_email: str,
    ) -> TransitionResult:
        request = self._load(request_id)
        if request.mentor_email != mentor_email:
            raise PermissionDeniedError(
                "Unauthorized: You are not the assigned mentor for this request."
            )

        request = self._transition(
            request,
            MentorRequestStatus.ADMIN_APPROVED,
            action,
            {
                "mentorNotes": notes or "",
                "mentorProcessedAt": _now(),
                "updatedAt": _now(),
            },
            "Request is not in a state to be processed by mentor",
        )

        if action == Decision.APPROVE:
            content = mentor_approved_email(
                request.user_name, request.mentor_name, request.mentor_email, notes
            )
            notification_type = NotificationType.MENTOR_REQUEST_APPROVED
            title = "Mentorship Approved!"
            message = f"{request.mentor_name} has accepted your mentorship request"
            outcome = "Mentorship request approved! User has been notified."
        else:
            content = mentor_declined_email(request.user_name, request.mentor_name, notes)
            notification_type = NotificationType.MENTOR_REQUEST_REJECTED
            title = "Mentorship Request Update"
            message = f"{request.mentor_name} was unable to accept your mentorship request"
            outcome = "Mentorship request declined. User has been notified."

        email = self._send(request.user_email, content)
        create_notification(
            self.store,
            user_id=request.user_id,
            type=notification_type,
            title=title,
            message=message,
            request_id=request.id,
            mentor_id=request.mentor_id,
            mentor_name=request.mentor_name,
        )
        return TransitionResult(request=request, message=outcome, email=email)

    def preview_token(self, token_id: str) -> tuple[EmailToken, MentorRequest]:
        """Validate an emailed link without using it up."""
        verification = self.tokens.verify(token_id)
        verification.raise_for_failure()
        token = verification.token
        return token, self._load(token.request_id)

    def process_token_decision(
        self,
        token_id: str,
        action: Optional[Decision] = None,
        notes: Optional[str] = None,
    ) -> TransitionResult:
        """
        Apply a mentor decision from an emailed link. A token bound to one
        action cannot be used for the other.
        """
        verification = self.tokens.verify(token_id)
        verification.raise_for_failure()
        token = verification.token

        if token.action is not None and action is not None and action != token.action:
            raise ValidationError(
                f"This link can only be used to {token.action.value} the request",
                field="action",
            )
        effective = action or token.action
        if effective is None:
            raise ValidationError("An action is required", field="action")

        # Leave the link unused when the request was already decided elsewhere.
        request = self._load(token.request_id)
        if request.status != MentorRequestStatus.ADMIN_APPROVED:
            raise InvalidTransitionError(
                "Request is not in a state to be processed by mentor",
                current_status=request.status.value,
            )

        token = self.tokens.claim(token_id)
        logger.info("Email token used to %s request %s", effective.value, token.request_id)
        return self.process_mentor_decision(
            token.request_id, effective, notes, token.mentor_email
        )

    # Reads

    def list_admin_requests(self) -> list[MentorRequest]:
        docs = self.store.query(
            MENTOR_REQUESTS_COLLECTION, order_by="createdAt", descending=True
        )
        return [MentorRequest.from_document(doc_id, data) for doc_id, data in docs]

    def list_user_requests(self, user_id: str) -> list[MentorRequest]:
        docs = self.store.query(
            MENTOR_REQUESTS_COLLECTION,
            [Filter("userId", "==", user_id)],
            order_by="createdAt",
            descending=True,
        )
        return [MentorRequest.from_document(doc_id, data) for doc_id, data in docs]

    def get_request_for_mentor(
        self, request_id: str, mentor_email: str
    ) -> tuple[MentorRequest, dict]:
        request = self._load(request_id)
        if request.mentor_email != mentor_email:
            raise PermissionDeniedError("You are not authorized to view this request.")
        details = _user_profile_details(self.store, request.user_id) or {
            "name": request.user_name,
            "email": request.user_email,
        }
        return request, details

    def list_approved_mentees(self, mentor_email: str) -> list[MentorRequest]:
        docs = self.store.query(
            MENTOR_REQUESTS_COLLECTION,
            [
                Filter("mentorEmail", "==", mentor_email),
                Filter("status", "==", MentorRequestStatus.MENTOR_APPROVED.value),
            ],
            order_by="mentorProcessedAt",
            descending=True,
        )
        return [MentorRequest.from_document(doc_id, data) for doc_id, data in docs]

    def get_mentee_profile(self, user_id: str, mentor_email: str) -> UserProfile:
        relationship = self.store.query(
            MENTOR_REQUESTS_COLLECTION,
            [
                Filter("userId", "==", user_id),
                Filter("mentorEmail", "==", mentor_email),
                Filter("status", "==", MentorRequestStatus.MENTOR_APPROVED.value),
            ],
            limit=1,
        )
        if not relationship:
            raise PermissionDeniedError(
                "Unauthorized: You are not the mentor for this user."
            )
        data = self.store.get(USERS_COLLECTION, user_id)
        if data is None:
            raise NotFoundError("Could not retrieve mentee profile.")
        return UserProfile.from_document(user_id, data)
