"""
Nexus Compliance - PII Detection Service

Scans uploaded spreadsheets for personally identifiable information,
by column name and by cell pattern, and records what the user chose to
do about each warning.
"""

import logging
import re
import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, select
from sqlalchemy.ext.asyncio import AsyncSession

from app.models.pii import PIIAction, PIIDetection

logger = logging.getLogger(__name__)


PII_PATTERNS: Dict[str, re.Pattern] = {
    "ssn": re.compile(r"\b\d{3}-\d{2}-\d{4}\b"),
    "email": re.compile(r"\b[A-Za-z0-9._%+-]+@[A-Za-z0-9.-]+\.[A-Za-z]{2,}\b"),
    "phone": re.compile(r"\b\d{3}[-.]?\d{3}[-.]?\d{4}\b"),
    "address": re.compile(
        r"\b\d+\s+[\w\s]+(?:street|st|avenue|ave|road|rd|boulevard|blvd|lane|ln|drive|dr"
        r"|court|ct|circle|cir|way)\b",
        re.IGNORECASE,
    ),
    "zipcode": re.compile(r"\b\d{5}(?:-\d{4})?\b"),
    "creditcard": re.compile(r"\b\d{4}[-\s]?\d{4}[-\s]?\d{4}[-\s]?\d{4}\b"),
}

PII_COLUMN_NAMES = [
    "name", "first_name", "last_name", "full_name", "fname", "lname",
    "ssn", "social_security", "tax_id", "ein",
    "address", "street", "city", "zip", "postal", "zipcode",
    "email", "e-mail", "email_address",
    "phone", "mobile", "telephone", "cell",
    "dob", "date_of_birth", "birthdate", "birth_date",
    "employee_id", "emp_id", "employee_number", "employee_name",
    "customer_name", "client_name", "contact_name",
]

SAMPLE_ROWS = 100
MAX_EXAMPLES = 5

# Shortest header that may match as a fragment of a PII column name
MIN_FRAGMENT_LENGTH = 4

_SEPARATORS = re.compile(r"[_\s-]")

SEVERITY_RANK = {"NONE": 0, "LOW": 1, "MEDIUM": 2, "HIGH": 3}


def _squash(text: str) -> str:
    return _SEPARATORS.sub("", text.lower())


def mask_value(value: Any) -> str:
    """Keep the last 4 characters visible."""
    text = "" if value is None else str(value)
    if len(text) <= 4:
        return "****"
    return "*" * (len(text) - 4) + text[-4:]


def is_pii_column(header: Any) -> bool:
    squashed = _squash(str(header or ""))
    if not squashed:
        return False
    for name in PII_COLUMN_NAMES:
        pii = _squash(name)
        if pii in squashed:
            return True
        if len(squashed) >= MIN_FRAGMENT_LENGTH and squashed in pii:
            return True
    return False


def _raise_severity(current: str, pattern_type: str) -> str:
    if pattern_type in ("ssn", "creditcard"):
        candidate = "HIGH"
    elif pattern_type in ("email", "phone"):
        candidate = "MEDIUM"
    else:
        candidate = "LOW"
    return candidate if SEVERITY_RANK[candidate] > SEVERITY_RANK[current] else current


def detect_pii(file_data: List[List[Any]], headers: List[Any]) -> Dict[str, Any]:
    """
    Detect PII in parsed sheet data.

    file_data[0] is the header row; the next 100 rows are sampled.
    """
    result: Dict[str, Any] = {
        "hasPII": False,
        "byColumn": {},
        "byPattern": {},
        "severity": "NONE",
        "totalIssues": 0,
    }

    for index, header in enumerate(headers):
        if not is_pii_column(header):
            continue
        samples = [
            row[index] if index < len(row) and row[index] is not None else ""
            for row in file_data[1:4]
        ]
        result["byColumn"][str(header)] = {
            "index": index,
            "type": "COLUMN_NAME",
            "risk": "HIGH",
            "sampleValues": [mask_value(v) for v in samples],
        }
        result["severity"] = "HIGH"
        result["totalIssues"] += 1

    for row_number, row in enumerate(file_data[1:SAMPLE_ROWS + 1], start=1):
        for col_index, cell in enumerate(row):
            if cell is None or cell == "":
                continue
            text = str(cell)
            for pattern_type, pattern in PII_PATTERNS.items():
                if not pattern.search(text):
                    continue
                examples = result["byPattern"].setdefault(pattern_type, [])
                if len(examples) < MAX_EXAMPLES:
                    examples.append({
                        "column": str(headers[col_index]) if col_index < len(headers) else None,
                        "columnIndex": col_index,
                        "row": row_number,
                        "value": mask_value(text),
                    })
                result["severity"] = _raise_severity(result["severity"], pattern_type)
                result["totalIssues"] += 1

    result["hasPII"] = result["totalIssues"] > 0
    return result


def get_field_recommendations() -> Dict[str, List[Dict[str, str]]]:
    return {
        "required": [
            {"field": "State/Jurisdiction", "description": "Where activity occurred"},
            {"field": "Amount/Revenue", "description": "Transaction or aggregate amount"},
            {"field": "Date/Period", "description": "When activity occurred"},
        ],
        "optional": [
            {"field": "Product Type", "description": "Tangible vs services vs SaaS"},
            {"field": "Sales Channel", "description": "Direct, marketplace, etc."},
            {"field": "Job Role/Title", "description": "For employee activity classification"},
            {"field": "GL Code", "description": "For revenue categorization"},
        ],
        "excluded": [
            {"field": "Employee names", "reason": "Use employee IDs or roles instead"},
            {"field": "Social Security Numbers", "reason": "Not required for nexus analysis"},
            {"field": "Home addresses", "reason": "Use business locations only"},
            {"field": "Email addresses (personal)", "reason": "Not needed for compliance"},
            {"field": "Phone numbers", "reason": "Not relevant to tax nexus"},
            {"field": "Dates of birth", "reason": "Not required"},
            {"field": "Employee IDs (when linked to names)", "reason": "Use aggregated data"},
        ],
    }


def auto_exclude_pii_columns(headers: List[Any], detection: Dict[str, Any]) -> List[Any]:
    """Headers left after dropping HIGH-risk PII columns."""
    excluded = {
        info["index"] for info in detection.get("byColumn", {}).values() if info.get("risk") == "HIGH"
    }
    return [header for index, header in enumerate(headers) if index not in excluded]


def generate_pii_warning(detection: Dict[str, Any]) -> Optional[str]:
    if detection.get("severity", "NONE") == "NONE":
        return None

    lines = [
        f"Potential PII Detected ({detection['severity']} Risk)",
        "",
        f"We detected {detection['totalIssues']} potential PII issue(s) in your data.",
        "",
    ]
    if detection.get("byColumn"):
        lines.append("Columns with PII:")
        lines.extend(f"  - {column} ({info['type']})" for column, info in detection["byColumn"].items())
        lines.append("")
    if detection.get("byPattern"):
        lines.append("Detected patterns:")
        lines.extend(
            f"  - {pattern_type}: {len(instances)} instance(s)"
            for pattern_type, instances in detection["byPattern"].items()
        )
        lines.append("")
    lines.extend([
        "Recommended actions:",
        "  - Remove PII columns before upload",
        "  - Use client IDs instead of names",
        "  - Aggregate data to remove individual identifiers",
    ])
    return "\n".join(lines)


class PIIService:
    """Persistence for PII warning decisions."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def log_warning(
        self,
        upload_id: str,
        detection: Dict[str, Any],
        action: str,
        user_id: Optional[uuid.UUID] = None,
        organization_id: Optional[uuid.UUID] = None,
    ) -> PIIDetection:
        """
        Record a PII warning decision.

        Raises:
            ValueError: If the action is not SHOWN, OVERRIDE or AUTO_EXCLUDED
        """
        valid = {a.value for a in PIIAction}
        if action not in valid:
            raise ValueError("action must be SHOWN, OVERRIDE, or AUTO_EXCLUDED")

        if action == PIIAction.OVERRIDE.value:
            logger.warning(
                f"User {user_id} proceeded with upload {upload_id} despite "
                f"{detection.get('severity')} PII warning"
            )

        record = PIIDetection(
            upload_id=upload_id,
            organization_id=organization_id,
            user_id=user_id,
            action=action,
            pii_types=list((detection.get("byPattern") or {}).keys()),
            pii_columns=list((detection.get("byColumn") or {}).keys()),
            severity=detection.get("severity"),
            total_issues=int(detection.get("totalIssues") or 0),
        )
        self.db.add(record)
        await self.db.flush()
        return record

    async def get_history(self, upload_id: str) -> List[PIIDetection]:
        result = await self.db.execute(
            select(PIIDetection)
            .where(PIIDetection.upload_id == upload_id)
            .order_by(desc(PIIDetection.created_at))
        )
        return list(result.scalars().all())


def serialize_pii_detection(record: PIIDetection) -> Dict[str, Any]:
    return {
        "id": str(record.id),
        "upload_id": record.upload_id,
        "organization_id": str(record.organization_id) if record.organization_id else None,
        "user_id": str(record.user_id) if record.user_id else None,
        "action": record.action,
        "pii_types": record.pii_types or [],
        "pii_columns": record.pii_columns or [],
        "severity": record.severity,
        "total_issues": record.total_issues,
        "created_at": record.created_at.isoformat() if record.created_at else None,
    }
