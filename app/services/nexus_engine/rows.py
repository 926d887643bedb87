"""
Nexus Compliance - Row Helpers

Shared helpers for reading normalized data rows: field lookup, amount
parsing, state resolution and the common alert envelope.
"""

import re
import secrets
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Optional

from app.services.nexus_engine.state_rules import STATE_RULES


# Fields searched, in order, for a row's state
STATE_FIELDS = [
    "state", "ship_state", "customer_state", "billing_state", "location_state",
    "work_state", "employee_state", "destination_state", "state_code", "st",
    "location", "ship_location",
]

# Free-text location fields that may hold "City, ST"
LOCATION_FIELDS = ["ship_location", "location", "address", "destination"]

REVENUE_FIELDS = ["revenue", "amount", "sales", "total", "gross_sales", "net_sales", "order_total"]

_STATE_NAME_INDEX = {rule["name"].upper(): code for code, rule in STATE_RULES.items()}
_COMMA_STATE = re.compile(r",\s*([A-Za-z]{2})\s*$")
_TRAILING_STATE = re.compile(r"\b([A-Za-z]{2})\s*$")
_AMOUNT_CLEAN = re.compile(r"[$,\s]")


def normalize_key(key: Any) -> str:
    """'Ship State' -> 'ship_state'"""
    return re.sub(r"[\s\-]+", "_", str(key).strip().lower())


def normalize_row(row: Dict[str, Any]) -> Dict[str, Any]:
    """Lower-case and underscore every key of a row."""
    return {normalize_key(k): v for k, v in row.items()}


def has_value(value: Any) -> bool:
    """Truthiness for spreadsheet cells: None, '' and whitespace are empty."""
    if value is None:
        return False
    if isinstance(value, str):
        return bool(value.strip())
    if isinstance(value, bool):
        return value
    return True


def first_value(row: Dict[str, Any], fields: Iterable[str]) -> Any:
    """First non-empty value among candidate fields."""
    for field in fields:
        value = row.get(field)
        if has_value(value):
            return value
    return None


def parse_amount(value: Any) -> Optional[float]:
    """Parse '$1,234.50' style values. Returns None when not numeric."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    cleaned = _AMOUNT_CLEAN.sub("", str(value))
    if cleaned.startswith("(") and cleaned.endswith(")"):
        cleaned = "-" + cleaned[1:-1]
    try:
        return float(cleaned)
    except ValueError:
        return None


def extract_amount(row: Dict[str, Any], fields: Iterable[str]) -> float:
    """First parseable amount among fields, else 0."""
    for field in fields:
        if field in row:
            parsed = parse_amount(row[field])
            if parsed is not None:
                return parsed
    return 0.0


def extract_revenue(row: Dict[str, Any]) -> float:
    return extract_amount(row, REVENUE_FIELDS)


def normalize_state(value: Any) -> Optional[str]:
    """Two-letter code or full state name to a state code."""
    if not has_value(value):
        return None
    text = str(value).strip().upper()
    if len(text) == 2 and text in STATE_RULES:
        return text
    return _STATE_NAME_INDEX.get(text)


def extract_state_from_location(location: Any) -> Optional[str]:
    """Resolve 'Los Angeles, CA', 'CA' or 'California' to a state code."""
    if not has_value(location):
        return None
    text = str(location)
    state = normalize_state(text)
    if state:
        return state

    for pattern in (_COMMA_STATE, _TRAILING_STATE):
        match = pattern.search(text)
        if match:
            code = match.group(1).upper()
            if code in STATE_RULES:
                return code
    return None


def extract_state(row: Dict[str, Any]) -> Optional[str]:
    """State code a row belongs to, or None."""
    for field in STATE_FIELDS:
        state = extract_state_from_location(row.get(field))
        if state:
            return state

    for field in LOCATION_FIELDS:
        state = extract_state_from_location(row.get(field))
        if state:
            return state
    return None


def rows_for_state(rows: Iterable[Dict[str, Any]], state: str) -> List[Dict[str, Any]]:
    return [row for row in rows if extract_state(row) == state]


def contains_any(text: Any, needles: Iterable[str]) -> bool:
    haystack = str(text or "").lower()
    return any(needle in haystack for needle in needles)


def format_number(value: float) -> str:
    """1234567.8 -> '1,234,568'"""
    return f"{round(value):,}"


def percentage(actual: float, threshold: float) -> str:
    """Percent of threshold as a one-decimal string."""
    return f"{(actual / threshold) * 100:.1f}"


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_alert_id(kind: str, state: str) -> str:
    millis = int(datetime.now(timezone.utc).timestamp() * 1000)
    return f"{kind}_{state}_{millis}_{secrets.token_hex(5)[:9]}"


def due_date(days: int = 30) -> str:
    return (datetime.now(timezone.utc) + timedelta(days=days)).isoformat()


def build_alert(
    kind: str,
    alert_type: str,
    subtype: str,
    state: str,
    severity: str,
    title: str,
    description: str,
    facts: Dict[str, Any],
    recommendation: str,
    priority: str,
    requires_action: bool,
    judgment_required: bool = False,
    **extra: Any,
) -> Dict[str, Any]:
    """Common alert envelope shared by every detector."""
    rule = STATE_RULES.get(state, {})
    alert = {
        "id": new_alert_id(kind, state),
        "type": alert_type,
        "subtype": subtype,
        "state": state,
        "stateName": rule.get("name", state),
        "severity": severity,
        "title": title,
        "description": description,
        "facts": facts,
        "recommendation": recommendation,
        "judgmentRequired": judgment_required,
        "requiresAction": requires_action,
        "priority": priority,
        "createdDate": utc_now_iso(),
    }
    alert.update(extra)
    return alert
