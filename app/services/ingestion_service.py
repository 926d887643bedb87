"""
Nexus Compliance - Document Ingestion Service

Parses uploaded CSV and Excel workbooks, classifies the document, finds
the header row and suggests how columns map onto nexus fields.
"""

import csv
import io
import logging
import random
import re
import string
import time
from typing import Any, Dict, List, Optional

from openpyxl import load_workbook

from app.services.nexus_engine import NexusEngine
from app.services.nexus_engine.rows import extract_revenue, extract_state, normalize_row, utc_now_iso

logger = logging.getLogger(__name__)


MAX_UPLOAD_BYTES = 15 * 1024 * 1024
CSV_RICHNESS_SCORE = 80
PREVIEW_ROWS = 10
HEADER_SCAN_ROWS = 20

EXCEL_EXTENSIONS = ("xlsx", "xlsm")


# ===========================================
# DOCUMENT CLASSIFICATION
# ===========================================

DOCUMENT_TYPES: Dict[str, Dict[str, Any]] = {
    "PROFIT_LOSS": {
        "subtype": "STATE_AGGREGATED",
        "confidence": 95,
        "description": "Profit & Loss statement with state-level breakdown",
    },
    "TRANSACTION_DETAIL": {
        "subtype": "INVOICE_LEVEL",
        "confidence": 90,
        "description": "Detailed transaction records with invoice data",
    },
    "CHANNEL_ANALYSIS": {
        "subtype": "MARKETPLACE",
        "confidence": 85,
        "description": "Channel breakdown analysis (Amazon, Shopify, etc.)",
    },
    "MONTHLY_ADJUSTMENTS": {
        "subtype": "GROSS_NET",
        "confidence": 80,
        "description": "Monthly adjustment reports",
    },
    "STATE_SUMMARY": {
        "subtype": "REVENUE_ONLY",
        "confidence": 75,
        "description": "Simple state-level revenue summary",
    },
    "PAYROLL_DATA": {
        "subtype": "EMPLOYEE_LEVEL",
        "confidence": 85,
        "description": "Payroll data with employee information",
    },
    "GL_DATA": {
        "subtype": "ACCOUNT_LEVEL",
        "confidence": 80,
        "description": "General Ledger account data",
    },
    "UNKNOWN": {
        "subtype": "GENERIC",
        "confidence": 30,
        "description": "Could not determine document type based on patterns",
    },
}

PL_PATTERNS = ["40000 -", "40100 -", "Profit & Loss", "Fiscal Year", "P&L"]
TRANSACTION_PATTERNS = ["invoice", "customer", "ship", "tax code", "subsidiary", "transaction"]
CHANNEL_PATTERNS = ["amazon", "shopify", "walmart", "ebay", "channel"]
PAYROLL_PATTERNS = ["employee", "wages", "salary", "payroll", "w-2", "compensation"]
GL_PATTERNS = ["gl account", "account code", "ledger", "debit", "credit"]


def _any_contains(headers: List[str], patterns: List[str]) -> bool:
    lowered = [h.lower() for h in headers]
    return any(p in h for h in lowered for p in patterns)


def classify_document(headers: List[Any]) -> Dict[str, Any]:
    """Classify a document from its header row. First matching rule wins."""
    cells = [str(h) if h is not None else "" for h in headers]

    if any(p in h for h in cells for p in PL_PATTERNS):
        doc_type = "PROFIT_LOSS"
    elif _any_contains(cells, TRANSACTION_PATTERNS):
        doc_type = "TRANSACTION_DETAIL"
    elif _any_contains(cells, CHANNEL_PATTERNS):
        doc_type = "CHANNEL_ANALYSIS"
    elif any("Month" in h for h in cells) and any(
        "Gross_Revenue" in h or "Net_Revenue" in h for h in cells
    ):
        doc_type = "MONTHLY_ADJUSTMENTS"
    elif (
        len(cells) <= 3
        and _any_contains(cells, ["revenue"])
        and _any_contains(cells, ["state"])
    ):
        doc_type = "STATE_SUMMARY"
    elif _any_contains(cells, PAYROLL_PATTERNS):
        doc_type = "PAYROLL_DATA"
    elif _any_contains(cells, GL_PATTERNS):
        doc_type = "GL_DATA"
    else:
        doc_type = "UNKNOWN"

    return {"type": doc_type, **DOCUMENT_TYPES[doc_type]}


# ===========================================
# PARSING
# ===========================================

def parse_csv(text: str) -> List[List[str]]:
    """Rows of trimmed cells. Blank lines are dropped."""
    reader = csv.reader(io.StringIO(text))
    rows = []
    for row in reader:
        if not any(cell.strip() for cell in row):
            continue
        rows.append([cell.strip() for cell in row])
    return rows


def _cell(value: Any) -> Any:
    return "" if value is None else value


def parse_workbook(content: bytes) -> Dict[str, List[List[Any]]]:
    """Sheet name to rows, in workbook order."""
    workbook = load_workbook(io.BytesIO(content), read_only=True, data_only=True)
    try:
        sheets: Dict[str, List[List[Any]]] = {}
        for worksheet in workbook.worksheets:
            rows = []
            for row in worksheet.iter_rows(values_only=True):
                cells = [_cell(v) for v in row]
                while cells and cells[-1] == "":
                    cells.pop()
                rows.append(cells)
            while rows and not rows[-1]:
                rows.pop()
            sheets[worksheet.title] = rows
        return sheets
    finally:
        workbook.close()


def richness_score(rows: List[List[Any]]) -> int:
    columns = len(rows[0]) if rows else 0
    return min(100, round(len(rows) * columns / 10))


def describe_sheet(name: str, rows: List[List[Any]], score: Optional[int] = None) -> Dict[str, Any]:
    return {
        "name": name,
        "rowCount": len(rows),
        "columnCount": len(rows[0]) if rows else 0,
        "richnessScore": richness_score(rows) if score is None else score,
    }


def file_type_for(file_name: str) -> str:
    extension = file_name.rsplit(".", 1)[-1].lower() if "." in file_name else ""
    return "excel" if extension in EXCEL_EXTENSIONS else "csv"


def new_upload_id() -> str:
    suffix = "".join(random.choices(string.ascii_lowercase + string.digits, k=9))
    return f"upload-{int(time.time() * 1000)}-{suffix}"


# ===========================================
# HEADER DETECTION
# ===========================================

HEADER_KEYWORDS = [
    "state", "revenue", "amount", "location", "ship", "entity", "gl", "account",
    "payroll", "employee", "wages", "date", "customer", "invoice", "total", "sales", "tax",
]

GL_ACCOUNT_PATTERNS = [
    re.compile(r"\b\d{4,5}\s*-\s*[A-Za-z]"),
    re.compile(r"\bGL\s*Account", re.IGNORECASE),
    re.compile(r"\bAccount\s*Code", re.IGNORECASE),
]

_STATE_HEADER = re.compile(r"state|^st$|location|jurisdiction", re.IGNORECASE)
_REVENUE_HEADER = re.compile(r"revenue|amount|sales|total", re.IGNORECASE)
_DATE_HEADER = re.compile(r"date|month|period|year", re.IGNORECASE)


def _nonzero_number(cell: Any) -> bool:
    text = str(cell).replace("$", "").replace(",", "").strip()
    match = re.match(r"^[+-]?(\d+\.?\d*|\.\d+)", text)
    return bool(match) and float(match.group(0)) != 0


def _score_row(rows: List[List[Any]], index: int) -> int:
    row = rows[index]
    lowered = [str(cell).lower() for cell in row]

    score = sum(5 for cell in lowered if any(k in cell for k in HEADER_KEYWORDS))
    score += sum(10 for cell in row if any(p.search(str(cell)) for p in GL_ACCOUNT_PATTERNS))

    if index + 1 < len(rows):
        next_row = rows[index + 1]
        if next_row:
            numeric = sum(1 for cell in next_row if _nonzero_number(cell))
            if numeric > len(next_row) * 0.3:
                score += 20

    score += sum(1 for cell in row if str(cell).strip())
    return score


def detect_header_row(rows: List[List[Any]]) -> Dict[str, Any]:
    """Pick the most header-like row among the first 20."""
    best_index = -1
    best_score = -1
    headers: List[str] = []

    for index, row in enumerate(rows[:HEADER_SCAN_ROWS]):
        if not row:
            continue
        score = _score_row(rows, index)
        if score > best_score:
            best_score = score
            best_index = index
            headers = [str(cell).strip() for cell in row]

    if best_index == -1:
        for index, row in enumerate(rows[:HEADER_SCAN_ROWS]):
            if any(str(cell).strip() for cell in row):
                best_index = index
                headers = [str(cell).strip() for cell in row]
                best_score = 30
                break

    critical_fields = {
        "hasState": any(_STATE_HEADER.search(h) for h in headers),
        "hasRevenue": any(_REVENUE_HEADER.search(h) for h in headers),
        "hasDate": any(_DATE_HEADER.search(h) for h in headers),
    }

    confidence = 0
    if best_index != -1:
        confidence = min(100, round(best_score / (len(headers) * 10 + 20) * 100))

    detected = best_index != -1
    logger.debug(f"Header row {best_index} detected with confidence {confidence}")

    return {
        "headerRowIndex": best_index,
        "confidence": confidence,
        "headers": headers,
        "dataStartRow": best_index + 1 if detected else -1,
        "status": "DETECTED" if detected else "NEEDS_MAPPING",
        "message": (
            "Header row successfully detected." if detected
            else "Could not confidently detect header row."
        ),
        "criticalFields": critical_fields,
    }


# ===========================================
# COLUMN MAPPING SUGGESTIONS
# ===========================================

MAPPABLE_FIELDS = [
    {"value": "state", "label": "State",
     "patterns": ["state", "st", "location", "jurisdiction", "ship state", "ship_state"]},
    {"value": "revenue", "label": "Revenue",
     "patterns": ["revenue", "amount", "sales", "total", "gross", "net"]},
    {"value": "entity", "label": "Entity",
     "patterns": ["entity", "company", "subsidiary", "business", "unit"]},
    {"value": "workers", "label": "Workers",
     "patterns": ["employee", "worker", "headcount", "staff", "personnel"]},
    {"value": "glAccount", "label": "GL Account",
     "patterns": ["gl", "account", "ledger", "code"]},
    {"value": "date", "label": "Date",
     "patterns": ["date", "period", "month", "year", "quarter"]},
    {"value": "customer", "label": "Customer",
     "patterns": ["customer", "client", "buyer", "purchaser"]},
    {"value": "invoice", "label": "Invoice",
     "patterns": ["invoice", "order", "transaction", "reference"]},
]


def suggest_mappings(headers: List[Any]) -> List[Dict[str, Any]]:
    """Best field per header: 95 for an exact pattern, 75 for a contained one."""
    mappings = []
    for index, header in enumerate(headers):
        lowered = str(header).lower()
        best: Optional[str] = None
        best_confidence = 0
        alternatives: List[str] = []

        for field in MAPPABLE_FIELDS:
            for pattern in field["patterns"]:
                if pattern not in lowered:
                    continue
                # "st" and "gl" only count as whole headers
                if len(pattern) <= 2 and pattern != lowered:
                    continue
                confidence = 95 if pattern == lowered else 75
                if confidence > best_confidence:
                    if best:
                        alternatives.append(best)
                    best = field["value"]
                    best_confidence = confidence
                else:
                    alternatives.append(field["value"])
                break

        mappings.append({
            "columnIndex": index,
            "columnName": header,
            "suggestedField": best,
            "confidence": best_confidence,
            "alternatives": alternatives[:3],
        })
    return mappings


def apply_mappings(rows: List[Dict[str, Any]], mappings: Optional[Dict[str, str]]) -> List[Dict[str, Any]]:
    """Rename source columns to nexus field names. Unmapped columns pass through."""
    if not mappings:
        return rows
    mapped = []
    for row in rows:
        out = dict(row)
        for source, target in mappings.items():
            if target and target != "ignore" and source in row:
                out[target] = row[source]
        mapped.append(out)
    return mapped


# ===========================================
# ALERT GENERATION
# ===========================================

FALLBACK_THRESHOLDS = {
    "CA": 500_000, "TX": 500_000, "NY": 500_000,
    "FL": 100_000, "IL": 100_000, "GA": 100_000, "NC": 100_000, "PA": 100_000,
}
FALLBACK_DEFAULT_THRESHOLD = 100_000


def generate_fallback_alerts(rows: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Plain sales threshold checks used when the engine cannot run."""
    totals: Dict[str, float] = {}
    for raw in rows:
        row = normalize_row(raw)
        state = extract_state(row)
        if not state:
            continue
        totals[state] = totals.get(state, 0.0) + extract_revenue(row)

    alerts = []
    stamp = int(time.time() * 1000)
    for state, revenue in totals.items():
        threshold = FALLBACK_THRESHOLDS.get(state, FALLBACK_DEFAULT_THRESHOLD)
        percentage = revenue / threshold * 100

        if revenue >= threshold:
            alerts.append({
                "id": f"SALES_{state}_{stamp}",
                "type": "SALES_NEXUS",
                "subtype": "ECONOMIC_NEXUS",
                "state": state,
                "stateName": state,
                "severity": "HIGH",
                "title": f"{state} Sales Tax Economic Nexus Triggered",
                "description": (
                    f"Revenue of ${revenue:,.0f} exceeds {state}'s threshold of ${threshold:,.0f}"
                ),
                "facts": {
                    "threshold": threshold,
                    "actualRevenue": revenue,
                    "percentageOver": f"{percentage:.1f}",
                },
                "recommendation": f"Register for sales tax collection in {state}",
                "judgmentRequired": False,
                "requiresAction": True,
                "createdDate": utc_now_iso(),
            })
        elif percentage >= 80:
            alerts.append({
                "id": f"SALES_APPROACHING_{state}_{stamp}",
                "type": "SALES_NEXUS",
                "subtype": "ECONOMIC_NEXUS_APPROACHING",
                "state": state,
                "stateName": state,
                "severity": "MEDIUM",
                "title": f"{state} Sales Tax Threshold Approaching",
                "description": (
                    f"Revenue of ${revenue:,.0f} is {percentage:.1f}% of {state}'s threshold"
                ),
                "facts": {
                    "threshold": threshold,
                    "actualRevenue": revenue,
                    "percentageOfThreshold": f"{percentage:.1f}",
                },
                "recommendation": f"Monitor sales activity in {state}",
                "judgmentRequired": False,
                "requiresAction": False,
                "createdDate": utc_now_iso(),
            })
    return alerts


def _fallback_summary(alerts: List[Dict[str, Any]]) -> Dict[str, Any]:
    summary: Dict[str, Any] = {
        "total": len(alerts),
        "bySeverity": {"HIGH": 0, "MEDIUM": 0, "LOW": 0},
        "byType": {},
        "fallback": True,
    }
    for alert in alerts:
        summary["bySeverity"][alert["severity"]] = summary["bySeverity"].get(alert["severity"], 0) + 1
        summary["byType"][alert["type"]] = summary["byType"].get(alert["type"], 0) + 1
    return summary


def generate_alerts(
    rows: List[Dict[str, Any]],
    mappings: Optional[Dict[str, str]] = None,
    risk_posture: str = "standard",
    enabled_modules: Optional[Dict[str, bool]] = None,
    firm_id: str = "default",
    document_type: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Run the nexus engine over mapped rows, falling back to plain thresholds
    when a detector fails.

    Raises:
        ValueError: If the risk posture is unknown
    """
    data = apply_mappings(rows, mappings)
    engine = NexusEngine({
        "firm_id": firm_id,
        "risk_posture": risk_posture,
        "enabled_modules": enabled_modules,
    })
    try:
        result = engine.process_document(data, document_type)
        return {"success": True, "alerts": result["alerts"], "summary": result["summary"]}
    except Exception as e:
        logger.warning(f"Nexus engine failed, using fallback thresholds: {e}")
        alerts = generate_fallback_alerts(data)
        return {"success": True, "alerts": alerts, "summary": _fallback_summary(alerts)}


# ===========================================
# UPLOAD
# ===========================================

class IngestionService:
    """Turns an uploaded file into sheets, header detection and a preview."""

    def __init__(self, max_bytes: int = MAX_UPLOAD_BYTES):
        self.max_bytes = max_bytes

    def read_rows(
        self,
        file_name: str,
        content: bytes,
        sheet_name: Optional[str] = None,
        file_type: Optional[str] = None,
    ) -> Dict[str, Any]:
        """
        Parse a file into rows.

        file_type ("csv" or "excel") overrides the type implied by the
        file extension.

        Raises:
            ValueError: If the file is empty, too large or unreadable
        """
        if not content:
            raise ValueError("No file uploaded")
        if len(content) > self.max_bytes:
            raise ValueError(f"File exceeds the {self.max_bytes // (1024 * 1024)}MB upload limit")

        if file_type:
            file_type = "csv" if file_type.lower() == "csv" else "excel"
        else:
            file_type = file_type_for(file_name)
        if file_type == "csv":
            try:
                text = content.decode("utf-8-sig")
            except UnicodeDecodeError as e:
                raise ValueError(f"CSV file is not valid UTF-8: {e}") from e
            rows = parse_csv(text)
            return {
                "fileType": file_type,
                "rows": rows,
                "sheets": [describe_sheet("Sheet1", rows, CSV_RICHNESS_SCORE)],
                "sheetName": "Sheet1",
            }

        try:
            workbook = parse_workbook(content)
        except Exception as e:
            raise ValueError(f"Could not read Excel workbook: {e}") from e
        if not workbook:
            raise ValueError("Workbook contains no sheets")

        sheets = [describe_sheet(name, rows) for name, rows in workbook.items()]
        target = sheet_name if sheet_name in workbook else next(iter(workbook))
        return {
            "fileType": file_type,
            "rows": workbook[target],
            "sheets": sheets,
            "sheetName": target,
        }

    def process_upload(self, file_name: str, content: bytes) -> Dict[str, Any]:
        parsed = self.read_rows(file_name, content)
        rows = parsed["rows"]
        header_detection = detect_header_row(rows)
        classification = classify_document(header_detection["headers"] or (rows[0] if rows else []))

        recommended = max(parsed["sheets"], key=lambda s: s["richnessScore"])["name"]
        upload_id = new_upload_id()

        logger.info(
            f"Upload {upload_id} ({file_name}): {classification['type']}, "
            f"header row {header_detection['headerRowIndex']}"
        )

        return {
            "success": True,
            "uploadId": upload_id,
            "fileName": file_name,
            "fileType": parsed["fileType"],
            "fileSize": len(content),
            "uploadedAt": utc_now_iso(),
            "sheets": parsed["sheets"],
            "recommendedSheet": recommended,
            "headerDetection": header_detection,
            "classification": classification,
            "previewData": rows[:PREVIEW_ROWS],
            "rowCount": len(rows),
            "allData": rows,
        }

    def detect_sheets(self, file_name: str, content: bytes, file_type: Optional[str] = None) -> Dict[str, Any]:
        """Sheet names with row and column counts. A CSV is one sheet whose header row is not counted."""
        parsed = self.read_rows(file_name, content, file_type=file_type)
        if parsed["fileType"] == "csv":
            rows = parsed["rows"]
            sheets = [{
                "name": "Sheet1",
                "rowCount": max(len(rows) - 1, 0),
                "columnCount": len(rows[0]) if rows else 0,
                "richnessScore": CSV_RICHNESS_SCORE,
            }]
        else:
            sheets = parsed["sheets"]
        return {"success": True, "sheets": sheets}

    def detect_header(self, file_name: str, content: bytes, sheet_name: Optional[str] = None) -> Dict[str, Any]:
        parsed = self.read_rows(file_name, content, sheet_name)
        rows = parsed["rows"]
        detection = detect_header_row(rows)
        start = max(detection["dataStartRow"], 0)
        return {"success": True, **detection, "sampleRows": rows[start:start + 5]}


def rows_to_records(rows: List[List[Any]], header_row_index: int = 0) -> List[Dict[str, Any]]:
    """Zip data rows under the header row into dicts."""
    if header_row_index < 0 or header_row_index >= len(rows):
        return []
    headers = [str(h).strip() for h in rows[header_row_index]]
    records = []
    for row in rows[header_row_index + 1:]:
        if not any(str(cell).strip() for cell in row):
            continue
        records.append({
            header: row[i] if i < len(row) else ""
            for i, header in enumerate(headers) if header
        })
    return records
