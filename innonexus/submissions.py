"""
Applicant intake and admin processing of applications.
"""

from __future__ import annotations

import logging
import secrets
import string
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from innonexus.constants import (
    CONTACT_SUBMISSIONS_COLLECTION,
    DOMAIN_OPTIONS,
    LEGAL_STATUS_OPTIONS,
    OFF_CAMPUS_APPLICATIONS_COLLECTION,
    SECTOR_OPTIONS,
)
from innonexus.emails import application_accepted_email, application_rejected_email
from innonexus.errors import InvalidTransitionError, NotFoundError, ValidationError
from innonexus.mailer import EmailResult, Mailer
from innonexus.records import CampusStatus, Submission, SubmissionStatus
from innonexus.store import DocumentStore

logger = logging.getLogger(__name__)

REQUIRED_FIELDS = (
    "fullName",
    "natureOfInquiry",
    "companyName",
    "companyEmail",
    "founderNames",
    "founderBio",
    "startupIdea",
    "uniqueness",
    "domain",
    "sector",
)

_CREDENTIAL_ALPHABET = string.ascii_lowercase + string.digits


class ApplicationAction(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"


@dataclass
class ProcessedApplication:
    submission: Submission
    message: str
    email_to: str
    email_subject: str
    email_body: str
    delivery: EmailResult
    temporary_user_id: Optional[str] = None
    temporary_password: Optional[str] = None

    def as_dict(self) -> dict:
        return {
            "status": "success",
            "message": self.message,
            "email": {
                "to": self.email_to,
                "subject": self.email_subject,
                "body": self.email_body,
            },
            "emailSent": self.delivery.success,
            "temporaryUserId": self.temporary_user_id,
            "temporaryPassword": self.temporary_password,
        }


def collection_for(campus_status: Optional[str]) -> str:
    if campus_status == CampusStatus.OFF_CAMPUS.value:
        return OFF_CAMPUS_APPLICATIONS_COLLECTION
    return CONTACT_SUBMISSIONS_COLLECTION


def validate_submission(body: dict) -> None:
    for name in REQUIRED_FIELDS:
        if not body.get(name):
            raise ValidationError(f"Missing required field: {name}", field=name)
    if body["domain"] not in DOMAIN_OPTIONS:
        raise ValidationError("Invalid domain value.", field="domain")
    if body["sector"] not in SECTOR_OPTIONS:
        raise ValidationError("Invalid sector value.", field="sector")
    legal_status = body.get("legalStatus")
    if legal_status and legal_status not in LEGAL_STATUS_OPTIONS:
        raise ValidationError("Invalid legal status value.", field="legalStatus")


def create_submission(store: DocumentStore, body: dict) -> Submission:
    """Validate an intake form and store it in the matching collection."""
    validate_submission(body)

    campus_status = (
        CampusStatus.OFF_CAMPUS
        if body.get("campusStatus") == CampusStatus.OFF_CAMPUS.value
        else CampusStatus.CAMPUS
    )
    submission = Submission(
        id="",
        full_name=body["fullName"],
        phone=body.get("phone") or "",
        nature_of_inquiry=body["natureOfInquiry"],
        company_name=body["companyName"],
        company_email=body["companyEmail"],
        founder_names=body["founderNames"],
        founder_bio=body["founderBio"],
        portfolio_url=body.get("portfolioUrl") or "",
        team_info=body.get("teamInfo") or "",
        startup_idea=body["startupIdea"],
        problem_solving=body.get("problemSolving") or "",
        uniqueness=body["uniqueness"],
        domain=body["domain"],
        sector=body["sector"],
        legal_status=body.get("legalStatus") or None,
        name=body["fullName"],
        email=body["companyEmail"],
        idea=body["startupIdea"],
        campus_status=campus_status,
        status=SubmissionStatus.PENDING,
        submitted_at=datetime.now(timezone.utc),
    )
    collection = collection_for(campus_status.value)
    submission.id = store.add(collection, submission.as_document())
    logger.info("Submission %s added to %s", submission.id, collection)
    return submission


def list_submissions(
    store: DocumentStore, campus_status: Optional[str] = None
) -> list[Submission]:
    """Newest first, across both collections unless ``campus_status`` narrows it."""
    if campus_status:
        collections = [collection_for(campus_status)]
    else:
        collections = [CONTACT_SUBMISSIONS_COLLECTION, OFF_CAMPUS_APPLICATIONS_COLLECTION]

    submissions = []
    for collection in collections:
        for doc_id, data in store.list(collection):
            submissions.append(Submission.from_document(doc_id, data))

    epoch = datetime.min.replace(tzinfo=timezone.utc)
    submissions.sort(
        key=lambda s: s.submitted_at or s.imported_at or epoch, reverse=True
    )
    return submissions


def find_submission(store: DocumentStore, submission_id: str) -> tuple[str, Submission]:
    for collection in (CONTACT_SUBMISSIONS_COLLECTION, OFF_CAMPUS_APPLICATIONS_COLLECTION):
        data = store.get(collection, submission_id)
        if data is not None:
            return collection, Submission.from_document(submission_id, data)
    raise NotFoundError(f"Submission with ID {submission_id} not found.")


def _random_string(length: int) -> str:
    return "".join(secrets.choice(_CREDENTIAL_ALPHABET) for _ in range(length))


def process_application(
    store: DocumentStore,
    mailer: Mailer,
    submission_id: str,
    action: ApplicationAction,
) -> ProcessedApplication:
    collection, submission = find_submission(store, submission_id)
    applicant_email = submission.company_email or submission.email
    applicant_name = submission.full_name or submission.name

    updates: dict = {"processedByAdminAt": datetime.now(timezone.utc)}
    temporary_user_id = temporary_password = None
    if action == ApplicationAction.ACCEPT:
        temporary_user_id = _random_string(8)
        temporary_password = _random_string(10)
        updates.update(
            status=SubmissionStatus.ACCEPTED.value,
            temporaryUserId=temporary_user_id,
            temporaryPassword=temporary_password,
        )
        content = application_accepted_email(
            applicant_name, temporary_user_id, temporary_password
        )
    else:
        updates["status"] = SubmissionStatus.REJECTED.value
        content = application_rejected_email(applicant_name)

    result = store.compare_and_set(
        collection, submission_id, "status", SubmissionStatus.PENDING.value, updates
    )
    if not result.applied:
        raise InvalidTransitionError(
            f"Submission {submission_id} has already been processed "
            f"(status: {result.previous}).",
            current_status=result.previous,
        )

    delivery = mailer.send(applicant_email, content.subject, content.text)
    if not delivery.success:
        logger.warning("Application email to %s not delivered: %s", applicant_email, delivery.message)

    _, submission = find_submission(store, submission_id)
    past = "accepted" if action == ApplicationAction.ACCEPT else "rejected"
    return ProcessedApplication(
        submission=submission,
        message=f"Application {past} successfully.",
        email_to=applicant_email,
        email_subject=content.subject,
        email_body=content.text,
        delivery=delivery,
        temporary_user_id=temporary_user_id,
        temporary_password=temporary_password,
    )
