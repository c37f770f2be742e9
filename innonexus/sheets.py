"""
Import of off-campus applications collected through a Google Form.

The form writes to a Google Sheet; each data row becomes an
``offCampusApplications`` document keyed by its sheet row number so repeated
imports only add new rows.
"""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Sequence
from urllib.parse import quote

from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from innonexus.constants import OFF_CAMPUS_APPLICATIONS_COLLECTION
from innonexus.errors import ValidationError
from innonexus.records import CampusStatus, SubmissionStatus
from innonexus.store import DocumentStore

logger = logging.getLogger(__name__)

SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets.readonly"
SHEETS_VALUES_URL = "https://sheets.googleapis.com/v4/spreadsheets/{sheet_id}/values/{range}"

# Normalised form question -> document field.
HEADER_FIELDS = {
    "timestamp": "formSubmittedAt",
    "full name": "fullName",
    "name": "fullName",
    "phone": "phone",
    "phone number": "phone",
    "mobile number": "phone",
    "nature of inquiry": "natureOfInquiry",
    "company name": "companyName",
    "startup name": "companyName",
    "company email": "companyEmail",
    "email": "companyEmail",
    "email address": "companyEmail",
    "founder names": "founderNames",
    "founder bio": "founderBio",
    "portfolio url": "portfolioUrl",
    "linkedin url": "linkedinUrl",
    "team info": "teamInfo",
    "startup idea": "startupIdea",
    "problem solving": "problemSolving",
    "uniqueness": "uniqueness",
    "domain": "domain",
    "sector": "sector",
    "legal status": "legalStatus",
    "development stage": "developmentStage",
    "business category": "businessCategory",
}


@dataclass
class SheetImportSummary:
    imported: int = 0
    skipped: int = 0
    ids: list[str] = field(default_factory=list)

    def as_dict(self) -> dict:
        return {"imported": self.imported, "skipped": self.skipped, "ids": self.ids}


def _normalise_header(header: str) -> str:
    return re.sub(r"[^a-z0-9]+", " ", header.lower()).strip()


def map_row(headers: Sequence[str], row: Sequence[str]) -> dict:
    """Map one sheet row onto submission fields; unknown columns are dropped."""
    data: dict = {}
    for index, header in enumerate(headers):
        name = HEADER_FIELDS.get(_normalise_header(header))
        if not name or index >= len(row):
            continue
        value = (row[index] or "").strip()
        if value and name not in data:
            data[name] = value
    return data


def build_application(row_number: int, mapped: dict, now: datetime) -> dict:
    application = {
        "fullName": "",
        "phone": "",
        "natureOfInquiry": "",
        "companyName": "",
        "companyEmail": "",
        "founderNames": "",
        "founderBio": "",
        "portfolioUrl": "",
        "teamInfo": "",
        "startupIdea": "",
        "problemSolving": "",
        "uniqueness": "",
        **mapped,
    }
    application.update(
        name=application["fullName"],
        email=application["companyEmail"],
        idea=application["startupIdea"],
        campusStatus=CampusStatus.OFF_CAMPUS.value,
        status=SubmissionStatus.PENDING.value,
        sourceRow=row_number,
        importedAt=now,
    )
    return application


def import_rows(store: DocumentStore, values: Sequence[Sequence[str]]) -> SheetImportSummary:
    """
    Import sheet ``values`` (header row first). Row numbers are 1-based sheet
    rows, so the first data row is 2.
    """
    summary = SheetImportSummary()
    if not values:
        return summary

    headers, rows = values[0], values[1:]
    existing_rows = {
        data.get("sourceRow")
        for _, data in store.list(OFF_CAMPUS_APPLICATIONS_COLLECTION)
        if data.get("sourceRow") is not None
    }
    now = datetime.now(timezone.utc)

    for offset, row in enumerate(rows):
        row_number = offset + 2
        if row_number in existing_rows or not any((cell or "").strip() for cell in row):
            summary.skipped += 1
            continue
        mapped = map_row(headers, row)
        doc_id = f"sheet-row-{row_number}"
        store.set(
            OFF_CAMPUS_APPLICATIONS_COLLECTION,
            doc_id,
            build_application(row_number, mapped, now),
        )
        summary.imported += 1
        summary.ids.append(doc_id)

    logger.info(
        "Sheet import finished: imported=%d skipped=%d", summary.imported, summary.skipped
    )
    return summary


def _session(service_account_json: str) -> AuthorizedSession:
    try:
        info = json.loads(service_account_json)
    except json.JSONDecodeError:
        raise ValidationError(
            "GOOGLE_SERVICE_ACCOUNT_KEY_JSON is not valid JSON",
            field="GOOGLE_SERVICE_ACCOUNT_KEY_JSON",
        )
    credentials = service_account.Credentials.from_service_account_info(
        info, scopes=[SHEETS_SCOPE]
    )
    return AuthorizedSession(credentials)


def fetch_sheet_values(
    sheet_id: str,
    sheet_range: str,
    service_account_json: str,
    session: Optional[AuthorizedSession] = None,
) -> list[list[str]]:
    session = session or _session(service_account_json)
    url = SHEETS_VALUES_URL.format(sheet_id=sheet_id, range=quote(sheet_range, safe=""))
    response = session.get(url, timeout=30)
    response.raise_for_status()
    return response.json().get("values", [])


def import_off_campus_sheet(
    store: DocumentStore,
    *,
    sheet_id: Optional[str],
    sheet_range: str,
    service_account_json: Optional[str],
    session: Optional[AuthorizedSession] = None,
) -> SheetImportSummary:
    if not sheet_id:
        raise ValidationError("OFF_CAMPUS_SHEET_ID is not configured", field="sheetId")
    if not service_account_json and session is None:
        raise ValidationError(
            "GOOGLE_SERVICE_ACCOUNT_KEY_JSON is not configured",
            field="GOOGLE_SERVICE_ACCOUNT_KEY_JSON",
        )
    values = fetch_sheet_values(sheet_id, sheet_range, service_account_json or "", session)
    return import_rows(store, values)
