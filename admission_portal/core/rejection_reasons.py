"""Rejection reason taxonomy shown to reviewers. Reason ids are stored on rejected applications."""

from typing import Dict, List, Set

REJECTION_REASONS: Dict[str, Dict] = {
    "documentIssues": {
        "category": "Document Issues",
        "reasons": [
            {"id": "MISSING_DOCUMENT", "title": "Missing Document", "description": "Required document is not uploaded"},
            {"id": "DOCUMENT_EXPIRED", "title": "Document Expired", "description": "Document has expired and needs renewal"},
            {"id": "DOCUMENT_OLD", "title": "Document Too Old", "description": "Document is too old, need recent/current version"},
            {"id": "DOCUMENT_BLURRY", "title": "Document Not Clear", "description": "Document image is blurry or unclear"},
            {"id": "DOCUMENT_CUT_OFF", "title": "Document Cut Off", "description": "Document image is incomplete or cut off"},
            {"id": "WRONG_DOCUMENT", "title": "Wrong Document Type", "description": "Uploaded document is not the required type"},
            {"id": "DOCUMENT_DAMAGED", "title": "Document Damaged", "description": "Document is damaged or torn"},
        ],
    },
    "personalInfoIssues": {
        "category": "Personal Information Issues",
        "reasons": [
            {"id": "NAME_MISMATCH", "title": "Name Mismatch", "description": "Name in documents doesn't match application"},
            {"id": "DATE_MISMATCH", "title": "Date Mismatch", "description": "Date of birth or other dates don't match"},
            {"id": "INCOMPLETE_INFO", "title": "Incomplete Information", "description": "Required personal information is missing"},
        ],
    },
    "academicIssues": {
        "category": "Academic Issues",
        "reasons": [
            {"id": "GRADE_INSUFFICIENT", "title": "Insufficient Grades", "description": "Academic performance doesn't meet requirements"},
            {"id": "COURSE_MISMATCH", "title": "Course Mismatch", "description": "Selected course doesn't match qualifications"},
        ],
    },
    "otherIssues": {
        "category": "Other Issues",
        "reasons": [
            {"id": "FRAUD_DETECTED", "title": "Fraud Detected", "description": "Suspected fraudulent documents"},
            {"id": "INCOMPLETE_APPLICATION", "title": "Incomplete Application", "description": "Application form is incomplete"},
            {"id": "DUPLICATE_APPLICATION", "title": "Duplicate Application", "description": "Multiple applications found"},
        ],
    },
}


def all_reason_ids() -> List[str]:
    return [r["id"] for group in REJECTION_REASONS.values() for r in group["reasons"]]


REJECTION_REASON_IDS: Set[str] = set(all_reason_ids())
