"""
Dataclass records for documents held in the store.

Documents are stored with camelCase keys; records use snake_case and enums.
``from_document`` / ``as_document`` convert at the store boundary.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, List, Optional, Type, TypeVar

from dacite import Config, from_dict

from innonexus.json_utils import convert_keys

T = TypeVar("T", bound="DocumentRecord")

_DACITE_CONFIG = Config(cast=[Enum], check_types=False)


class MentorRequestStatus(str, Enum):
    PENDING = "pending"
    ADMIN_APPROVED = "admin_approved"
    ADMIN_REJECTED = "admin_rejected"
    MENTOR_APPROVED = "mentor_approved"
    MENTOR_REJECTED = "mentor_rejected"


class Decision(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"


# Email tokens carry the same two verbs as admin/mentor decisions.
TokenAction = Decision


class SubmissionStatus(str, Enum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class CampusStatus(str, Enum):
    CAMPUS = "campus"
    OFF_CAMPUS = "off-campus"


class EventStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class NotificationType(str, Enum):
    MENTOR_REQUEST_FORWARDED = "mentor_request_forwarded"
    MENTOR_REQUEST_APPROVED = "mentor_request_approved"
    MENTOR_REQUEST_REJECTED = "mentor_request_rejected"
    MENTOR_DECISION = "mentor_decision"


class Role(str, Enum):
    ADMIN = "admin"
    MENTOR = "mentor"
    USER = "user"


def _plain(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_plain(v) for v in value]
    return value


@dataclass
class DocumentRecord:
    """Base for records that round-trip through the document store."""

    id: str

    @classmethod
    def from_document(cls: Type[T], doc_id: str, data: dict) -> T:
        payload = convert_keys(data or {}, "camel_to_snake")
        payload["id"] = doc_id
        return from_dict(data_class=cls, data=payload, config=_DACITE_CONFIG)

    def as_document(self) -> dict:
        data = {k: _plain(v) for k, v in asdict(self).items() if v is not None}
        data.pop("id", None)
        return convert_keys(data, "snake_to_camel")

    def as_dict(self) -> dict:
        """JSON-friendly representation used in API responses."""
        data = {k: _plain(v) for k, v in asdict(self).items()}
        return convert_keys(data, "snake_to_camel")


@dataclass
class MentorRequest(DocumentRecord):
    user_id: str = ""
    user_email: str = ""
    user_name: str = "Unknown User"
    mentor_id: str = ""
    mentor_email: str = ""
    mentor_name: str = "Unknown Mentor"
    status: MentorRequestStatus = MentorRequestStatus.PENDING
    request_message: str = ""
    admin_notes: Optional[str] = None
    admin_processed_at: Optional[datetime] = None
    admin_processed_by: Optional[str] = None
    mentor_notes: Optional[str] = None
    mentor_processed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class EmailToken(DocumentRecord):
    request_id: str = ""
    mentor_email: str = ""
    created_at: Optional[datetime] = None
    expires_at: Optional[datetime] = None
    used: bool = False
    # Absent for review-only tokens.
    action: Optional[TokenAction] = None


@dataclass
class Notification(DocumentRecord):
    user_id: str = ""
    type: NotificationType = NotificationType.MENTOR_DECISION
    title: str = ""
    message: str = ""
    request_id: str = ""
    mentor_id: Optional[str] = None
    mentor_name: Optional[str] = None
    read: bool = False
    created_at: Optional[datetime] = None


@dataclass
class Submission(DocumentRecord):
    full_name: str = ""
    phone: str = ""
    nature_of_inquiry: str = ""
    company_name: str = ""
    company_email: str = ""
    founder_names: str = ""
    founder_bio: str = ""
    portfolio_url: str = ""
    team_info: str = ""
    startup_idea: str = ""
    problem_solving: str = ""
    uniqueness: str = ""
    domain: Optional[str] = None
    sector: Optional[str] = None
    legal_status: Optional[str] = None
    # Legacy aliases kept for older dashboards.
    name: str = ""
    email: str = ""
    idea: str = ""
    campus_status: CampusStatus = CampusStatus.CAMPUS
    status: SubmissionStatus = SubmissionStatus.PENDING
    submitted_at: Optional[datetime] = None
    processed_by_admin_at: Optional[datetime] = None
    temporary_user_id: Optional[str] = None
    temporary_password: Optional[str] = None
    source_row: Optional[int] = None
    imported_at: Optional[datetime] = None
    form_submitted_at: Optional[str] = None


@dataclass
class Event(DocumentRecord):
    title: str = ""
    description: str = ""
    date: str = ""
    time: str = ""
    venue: str = ""
    registration_link: Optional[str] = None
    image_url: Optional[str] = None
    status: Optional[EventStatus] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class MentorProfile:
    name: str = ""
    email: str = ""
    designation: str = ""
    expertise: str = ""
    description: str = ""
    profile_picture_url: str = ""
    linkedin_url: str = ""


@dataclass
class Mentor(DocumentRecord):
    uid: str = ""
    name: str = ""
    email: str = ""
    role: str = Role.MENTOR.value
    status: str = "active"
    profile: MentorProfile = field(default_factory=MentorProfile)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class Startup(DocumentRecord):
    name: str = ""
    logo_url: str = ""
    description: str = ""
    badge_text: str = ""
    website_url: str = ""
    funnel_source: str = ""
    session: str = ""
    month_year_of_incubation: str = ""
    status: str = ""
    legal_status: str = ""
    rknec_email_id: str = ""
    email_id: str = ""
    mobile_number: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class UserProfile(DocumentRecord):
    uid: str = ""
    email: str = ""
    name: str = ""
    role: str = Role.USER.value
    status: str = "active"
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    phone: Optional[str] = None
    bio: Optional[str] = None
    linkedin: Optional[str] = None
    notification_preferences: Optional[dict] = None
    submission_id: Optional[str] = None
    skills: Optional[List[str]] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
