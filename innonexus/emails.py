"""
Email bodies sent by the application and mentor-request workflows.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

SIGNATURE = "Best regards,\nThe TBI Team"
MENTOR_MESSAGE_LABEL = "Mentor's message"


@dataclass
class EmailContent:
    subject: str
    text: str
    html: Optional[str] = None


def _optional_line(label: str, value: Optional[str]) -> str:
    return f"{label}: {value}\n\n" if value else ""


def admin_rejection_email(user_name: str, mentor_name: str, notes: Optional[str]) -> EmailContent:
    text = (
        f"Dear {user_name},\n\n"
        f"Thank you for your interest in connecting with {mentor_name} through our TBI platform.\n\n"
        "After careful review, we regret to inform you that your mentor request cannot be "
        "approved at this time.\n\n"
        f"{_optional_line('Reason', notes)}"
        "We encourage you to explore other mentors available on our platform who might be a "
        "better fit for your current needs.\n\n"
        f"{SIGNATURE}"
    )
    return EmailContent(subject="Update on Your Mentor Request", text=text)


def mentor_review_email(
    mentor_name: str,
    applicant_name: str,
    requests_url: str,
    login_url: str,
    approve_url: Optional[str] = None,
    reject_url: Optional[str] = None,
) -> EmailContent:
    quick_actions = ""
    quick_actions_html = ""
    if approve_url and reject_url:
        quick_actions = (
            "You can also respond directly from this email (links expire in 7 days):\n"
            f"Accept: {approve_url}\n"
            f"Decline: {reject_url}\n\n"
        )
        quick_actions_html = (
            "<p>Or respond directly (links expire in 7 days):</p>"
            f'<p><a href="{approve_url}">Accept request</a> | '
            f'<a href="{reject_url}">Decline request</a></p>'
        )

    text = (
        f"Dear {mentor_name},\n\n"
        f"You have a new mentorship request from {applicant_name}.\n\n"
        "Please log in to your TBI Mentor Dashboard to review the request and respond:\n"
        f"{requests_url}\n\n"
        f"If you are not logged in, please go to: {login_url}\n\n"
        f"{quick_actions}"
        "Thank you for your guidance and support.\n\n"
        f"{SIGNATURE}"
    )
    html = (
        f"<p>Dear {mentor_name},</p>"
        f"<p>You have a new mentorship request from <strong>{applicant_name}</strong>.</p>"
        "<p>Please log in to your TBI Mentor Dashboard to review the full request and respond.</p>"
        f'<a href="{requests_url}">Click here to view your requests</a>'
        f"{quick_actions_html}"
        "<p>Thank you for your guidance and support.</p>"
        "<p>Best regards,<br>The TBI Team</p>"
    )
    return EmailContent(
        subject="You Have a New Mentorship Request", text=text, html=html
    )


def mentor_approved_email(
    user_name: str, mentor_name: str, mentor_email: str, notes: Optional[str]
) -> EmailContent:
    text = (
        f"Dear {user_name},\n\n"
        f"Great news! {mentor_name} has accepted your mentorship request.\n\n"
        f"You can now reach out to your mentor directly at: {mentor_email}\n\n"
        f"{_optional_line(MENTOR_MESSAGE_LABEL, notes)}"
        "We're excited to see your mentorship journey begin!\n\n"
        f"{SIGNATURE}"
    )
    return EmailContent(subject="Mentorship Request Approved!", text=text)


def mentor_declined_email(user_name: str, mentor_name: str, notes: Optional[str]) -> EmailContent:
    text = (
        f"Dear {user_name},\n\n"
        f"Thank you for your interest in connecting with {mentor_name}.\n\n"
        f"After consideration, {mentor_name} is unable to take on new mentees at this time.\n\n"
        f"{_optional_line(MENTOR_MESSAGE_LABEL, notes)}"
        "We encourage you to explore other mentors available on our platform.\n\n"
        f"{SIGNATURE}"
    )
    return EmailContent(subject="Update on Your Mentorship Request", text=text)


def application_accepted_email(
    applicant_name: str, temporary_user_id: str, temporary_password: str
) -> EmailContent:
    text = (
        f"Dear {applicant_name},\n\n"
        "We are thrilled to inform you that your application to InnoNexus has been accepted!\n\n"
        "We were very impressed with your idea and believe in its potential. Here are your "
        "temporary login credentials to access our portal:\n"
        f"User ID: {temporary_user_id}\n"
        f"Password: {temporary_password}\n\n"
        "Please keep these safe. We will be in touch shortly with the next steps.\n\n"
        "Welcome to InnoNexus!\n\n"
        "Best regards,\nThe InnoNexus Team"
    )
    return EmailContent(
        subject="Congratulations! Your InnoNexus Application has been Accepted!",
        text=text,
    )


def application_rejected_email(applicant_name: str) -> EmailContent:
    text = (
        f"Dear {applicant_name},\n\n"
        "Thank you for your interest in InnoNexus and for taking the time to apply.\n\n"
        "After careful consideration, we regret to inform you that we will not be moving "
        "forward with your application at this time. The selection process is highly "
        "competitive, and we receive many qualified applications.\n\n"
        "We wish you the best of luck in your future endeavors.\n\n"
        "Sincerely,\nThe InnoNexus Team"
    )
    return EmailContent(subject="Update on Your InnoNexus Application", text=text)
