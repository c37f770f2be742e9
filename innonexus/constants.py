"""
Firestore collection names and the fixed enumerations accepted at the API
boundary.
"""

CONTACT_SUBMISSIONS_COLLECTION = "contactSubmissions"
OFF_CAMPUS_APPLICATIONS_COLLECTION = "offCampusApplications"
SUBMISSIONS_COLLECTION = "submissions"
EVENTS_COLLECTION = "events"
MENTORS_COLLECTION = "mentors"
MENTOR_PROFILE_COLLECTION = "profile"
MENTOR_PROFILE_DOC_ID = "details"
MENTOR_REQUESTS_COLLECTION = "mentorRequests"
# One document per (user, mentor) pair, pointing at the open request.
MENTOR_REQUEST_SLOTS_COLLECTION = "mentorRequestSlots"
EMAIL_TOKENS_COLLECTION = "emailTokens"
NOTIFICATIONS_COLLECTION = "notifications"
STARTUPS_COLLECTION = "startups"
USERS_COLLECTION = "users"

DOMAIN_OPTIONS = (
    "HealthTech",
    "EdTech",
    "FinTech",
    "AgriTech",
    "FoodTech",
    "E-commerce",
    "SaaS",
    "IoT",
    "AI/ML",
    "CleanTech",
)

SECTOR_OPTIONS = (
    "Technology",
    "Healthcare",
    "Education",
    "Financial Services",
    "Manufacturing",
    "Retail",
    "Agriculture",
    "Food & Beverage",
    "Real Estate",
    "Consulting",
)

LEGAL_STATUS_OPTIONS = (
    "MSME SSI",
    "LLP",
    "Pvt. Ltd.",
    "Proprietorship",
    "Gumasta",
    "Family Owned Business",
    "Not registered",
)

MIN_REQUEST_MESSAGE_LENGTH = 10
PROFILE_VERSION = "2.0"


def mentor_profile_collection(mentor_id: str) -> str:
    """Path of the profile sub-collection for one mentor."""
    return f"{MENTORS_COLLECTION}/{mentor_id}/{MENTOR_PROFILE_COLLECTION}"
