# safe_harbor/core/definitions.py

"""Identifier categories of the HIPAA Safe Harbor method (45 CFR 164.514(b)(2))."""

from enum import Enum
from typing import Dict


class IdentifierCategory(str, Enum):
    """The 18 Safe Harbor identifier categories plus the age-over-89 rule."""

    NAMES = "Names"
    GEOGRAPHIC_SUBDIVISION = "Geographic Subdivision"
    DATES = "Dates"
    TELEPHONE = "Telephone"
    FAX = "Fax"
    EMAIL = "Email"
    SSN = "SSN"
    MEDICAL_RECORD_NUMBER = "Medical Record Number"
    HEALTH_PLAN_BENEFICIARY_NUMBER = "Health Plan Beneficiary Number"
    ACCOUNT_NUMBER = "Account Number"
    CERTIFICATE_LICENSE_NUMBER = "Certificate/License Number"
    VEHICLE_IDENTIFIER = "Vehicle Identifier"
    DEVICE_IDENTIFIER = "Device Identifier"
    URL = "URL"
    IP_ADDRESS = "IP Address"
    BIOMETRIC_IDENTIFIER = "Biometric Identifier"
    FULL_FACE_PHOTOGRAPH = "Full-Face Photograph Reference"
    OTHER_UNIQUE_IDENTIFIER = "Other Unique Identifying Number"

    # Not a Safe Harbor identifier, aggregated to "90 or older".
    AGE_OVER_89 = "Age>89"


# Lower rank wins when overlapping spans disagree on category.
CATEGORY_PRIORITY: Dict[IdentifierCategory, int] = {
    IdentifierCategory.SSN: 0,
    IdentifierCategory.MEDICAL_RECORD_NUMBER: 1,
    IdentifierCategory.HEALTH_PLAN_BENEFICIARY_NUMBER: 1,
    IdentifierCategory.ACCOUNT_NUMBER: 1,
    IdentifierCategory.CERTIFICATE_LICENSE_NUMBER: 1,
    IdentifierCategory.VEHICLE_IDENTIFIER: 1,
    IdentifierCategory.DEVICE_IDENTIFIER: 1,
    IdentifierCategory.BIOMETRIC_IDENTIFIER: 1,
    IdentifierCategory.OTHER_UNIQUE_IDENTIFIER: 1,
    IdentifierCategory.EMAIL: 2,
    IdentifierCategory.URL: 2,
    IdentifierCategory.IP_ADDRESS: 2,
    IdentifierCategory.FULL_FACE_PHOTOGRAPH: 2,
    IdentifierCategory.TELEPHONE: 3,
    IdentifierCategory.FAX: 3,
    IdentifierCategory.DATES: 4,
    IdentifierCategory.NAMES: 5,
    IdentifierCategory.GEOGRAPHIC_SUBDIVISION: 6,
    IdentifierCategory.AGE_OVER_89: 7,
}


def priority_of(category: IdentifierCategory) -> int:
    """Returns the overlap-resolution rank of a category (0 is highest)."""
    return CATEGORY_PRIORITY[category]
