"""
Pydantic request and response schemas for the incubator API.

Bodies use camelCase on the wire, matching the stored documents.
"""

from __future__ import annotations

import datetime as dt
import re
from typing import Annotated, Optional

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from innonexus.records import Decision, EventStatus
from innonexus.submissions import ApplicationAction

EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"
TIME_PATTERN = r"^([01]\d|2[0-3]):([0-5]\d)$"
_URL = re.compile(r"^https?://\S+$")


def optional_url(value: Optional[str]) -> Optional[str]:
    """Empty strings mean "no URL"; anything else must be http(s)."""
    if value is None or value == "":
        return None
    if not _URL.match(value):
        raise ValueError("must be a valid URL")
    return value


OptionalUrl = Annotated[Optional[str], AfterValidator(optional_url)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ActionResponse(BaseModel):
    success: bool
    message: str


# Mentor requests


class MentorRequestCreate(CamelModel):
    mentor_id: str = ""
    request_message: str = ""
    user_name: Optional[str] = None


class AdminActionPayload(CamelModel):
    action: Decision
    notes: Optional[str] = None


class MentorDecisionPayload(CamelModel):
    action: Decision
    notes: Optional[str] = None


class EmailActionPayload(CamelModel):
    action: Optional[Decision] = None
    notes: Optional[str] = None


# Submissions


class ApplicationActionPayload(CamelModel):
    action: ApplicationAction


# Events


class EventPayload(CamelModel):
    title: str = Field(..., min_length=3)
    description: str = Field(..., min_length=10)
    date: dt.date
    time: str = Field(..., pattern=TIME_PATTERN)
    venue: str = Field(..., min_length=3)
    registration_link: OptionalUrl = Field(
        default=None, validation_alias=AliasChoices("registrationLink", "applyLink")
    )
    image_url: OptionalUrl = None
    status: Optional[EventStatus] = None


class EventUpdatePayload(CamelModel):
    title: Optional[str] = Field(default=None, min_length=3)
    description: Optional[str] = Field(default=None, min_length=10)
    date: Optional[dt.date] = None
    time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    venue: Optional[str] = Field(default=None, min_length=3)
    registration_link: OptionalUrl = Field(
        default=None, validation_alias=AliasChoices("registrationLink", "applyLink")
    )
    image_url: OptionalUrl = None
    status: Optional[EventStatus] = None


# Mentors


class MentorCreatePayload(CamelModel):
    name: str = Field(..., min_length=3)
    designation: str = Field(..., min_length=3)
    expertise: str = Field(..., min_length=3)
    description: str = Field(..., min_length=10)
    profile_picture_url: OptionalUrl = None
    linkedin_url: OptionalUrl = None
    email: str = Field(..., pattern=EMAIL_PATTERN)
    password: str = Field(..., min_length=6)


class MentorProfileUpdate(CamelModel):
    name: Optional[str] = Field(default=None, min_length=3)
    designation: Optional[str] = Field(default=None, min_length=3)
    expertise: Optional[str] = Field(default=None, min_length=3)
    description: Optional[str] = Field(default=None, min_length=10)
    profile_picture_url: OptionalUrl = None
    linkedin_url: OptionalUrl = None


# Startups


class StartupPayload(CamelModel):
    name: str = Field(..., min_length=3)
    logo_url: OptionalUrl = None
    description: str = Field(..., min_length=10)
    badge_text: str = Field(..., min_length=2)
    website_url: OptionalUrl = None
    funnel_source: str = Field(..., min_length=1)
    session: str = Field(..., min_length=1)
    month_year_of_incubation: str = Field(..., min_length=1)
    status: str = Field(..., min_length=1)
    legal_status: str = Field(..., min_length=1)
    rknec_email_id: str = Field(..., pattern=EMAIL_PATTERN)
    email_id: str = Field(..., pattern=EMAIL_PATTERN)
    mobile_number: str = Field(..., min_length=10, max_length=15)


# Users


class UserProfileUpdate(CamelModel):
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone: Optional[str] = None
    bio: Optional[str] = None
    linkedin: OptionalUrl = None


class NotificationPreferencesPayload(CamelModel):
    email_notifications: bool


class AdminCredentialsPayload(CamelModel):
    new_email: str = Field(..., pattern=EMAIL_PATTERN)
    new_password: str = Field(..., min_length=8)


class DeleteAuthUserPayload(CamelModel):
    uid: Optional[str] = None
