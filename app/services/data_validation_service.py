"""
Nexus Compliance - Data Validation Engine

Validation pipeline run over uploaded files before nexus analysis.

Stages:
1. parse - file structure
2. headers - column detection against the field taxonomy
3. quality - empty states and non-numeric revenue
4. normalize - state values to USPS codes
5. validate - required fields per analysis module
6. learn - record confident mappings in the firm taxonomy
7. finalize - summary statistics
"""

import logging
import re
from difflib import SequenceMatcher
from typing import Any, Dict, List, Optional

from app.services.nexus_engine.rows import parse_amount
from app.services.nexus_engine.state_rules import STATE_NAMES

logger = logging.getLogger(__name__)


STATE_VARIATIONS: Dict[str, str] = {
    "calif": "CA", "cali": "CA", "cal": "CA",
    "tex": "TX", "texs": "TX",
    "fla": "FL", "flor": "FL",
    "newyork": "NY",
    "penn": "PA", "penna": "PA",
    "mass": "MA",
    "wash": "WA",
    "mich": "MI",
    "minn": "MN",
    "wisc": "WI", "wis": "WI",
    "conn": "CT",
    "tenn": "TN",
    "ariz": "AZ",
    "colo": "CO",
    "virg": "VA",
    "okla": "OK",
    "nebr": "NE", "neb": "NE",
    "kans": "KS", "kan": "KS",
    "mont": "MT",
    "oreg": "OR", "ore": "OR",
    "miss": "MS",
    "ala": "AL",
    "ark": "AR",
    "dela": "DE", "del": "DE",
    "georg": "GA",
    "idah": "ID",
    "indi": "IN",
    "kent": "KY",
    "louis": "LA",
    "maryl": "MD",
    "nevad": "NV", "nev": "NV",
    "rhode": "RI",
    "verm": "VT",
    "wyom": "WY", "wyo": "WY",
}

_AMOUNT = re.compile(r"^-?\$?[\d,]+\.?\d*$")
_DATE = re.compile(r"^\d{1,2}[/\-]\d{1,2}[/\-]\d{2,4}$|^\d{4}[/\-]\d{1,2}[/\-]\d{1,2}$")

FIELD_TAXONOMY: Dict[str, Dict[str, Any]] = {
    "state": {
        "patterns": [
            "state", "ship_state", "ship_location", "ship_to_state", "destination_state",
            "customer_state", "billing_state", "location", "region", "st", "ship to",
        ],
        "data_pattern": re.compile(r"^[A-Z]{2}$|^[A-Za-z\s]{4,20}$"),
        "priority": 1,
    },
    "revenue": {
        "patterns": [
            "amount", "revenue", "total", "sales", "net_amount", "gross_amount",
            "transaction_amount", "sale_amount", "invoice_amount", "price", "value",
        ],
        "data_pattern": _AMOUNT,
        "priority": 1,
    },
    "date": {
        "patterns": [
            "date", "transaction_date", "invoice_date", "sale_date", "order_date",
            "created_date", "posted_date", "period", "month", "year",
        ],
        "data_pattern": _DATE,
        "priority": 2,
    },
    "customer": {
        "patterns": [
            "customer", "customer_name", "client", "client_name", "company",
            "account", "account_name", "buyer", "purchaser",
        ],
        "data_pattern": None,
        "priority": 3,
    },
    "product": {
        "patterns": [
            "item", "product", "service", "item_service", "description",
            "sku", "item_name", "product_name", "service_name",
        ],
        "data_pattern": None,
        "priority": 3,
    },
    "activity_type": {
        "patterns": [
            "activity", "activity_type", "type", "category", "transaction_type",
            "service_type", "tax_code",
        ],
        "data_pattern": None,
        "priority": 2,
    },
    "employee": {
        "patterns": ["employee", "employee_name", "worker", "staff", "personnel"],
        "data_pattern": None,
        "priority": 3,
    },
    "wages": {
        "patterns": ["wages", "salary", "compensation", "payroll", "earnings", "pay"],
        "data_pattern": _AMOUNT,
        "priority": 2,
    },
}

REQUIRED_FIELDS: Dict[str, Dict[str, List[str]]] = {
    "sales": {"required": ["state", "revenue"], "optional": ["date", "customer", "product"]},
    "income": {"required": ["state", "revenue"], "optional": ["date", "activity_type"]},
    "payroll": {"required": ["state", "wages"], "optional": ["date", "employee"]},
    "franchise": {"required": ["state", "revenue"], "optional": ["date"]},
}

FIELD_LABELS = {
    "state": "State",
    "revenue": "Revenue/Amount",
    "date": "Date",
    "customer": "Customer",
    "product": "Product/Service",
    "activity_type": "Activity Type",
    "employee": "Employee",
    "wages": "Wages",
    "ignore": "Ignore",
}

SEVERITY_BUCKETS = {"error": "high", "warning": "medium", "info": "low"}

# Minimum difflib ratio for a header to count as a fuzzy match
HEADER_FUZZY_CUTOFF = 0.6
# Patterns this short ("st") only match a header exactly
MIN_PARTIAL_PATTERN = 2
STATE_FUZZY_CUTOFF = 0.7
LEARNING_CONFIDENCE = 80

_STATE_BY_NAME = {name.upper(): code for code, name in STATE_NAMES.items()}


def field_label(field: str) -> str:
    return FIELD_LABELS.get(field, field)


def _normalize_header(header: str) -> str:
    return re.sub(r"[^a-z0-9]", "_", header.lower())


def _best_ratio(text: str, candidates: List[str]) -> float:
    return max((SequenceMatcher(None, text, c).ratio() for c in candidates), default=0.0)


def is_valid_state(value: Any) -> bool:
    if value is None:
        return False
    cleaned = str(value).strip().upper()
    return cleaned in STATE_NAMES or cleaned in _STATE_BY_NAME


def normalize_state_value(value: Any) -> Dict[str, Any]:
    """Resolve a state value to a code with a confidence score."""
    if value is None or not str(value).strip():
        return {"normalized": None, "confidence": 0}

    cleaned = str(value).strip().upper()

    if cleaned in STATE_NAMES:
        return {"normalized": cleaned, "confidence": 100}
    if cleaned in _STATE_BY_NAME:
        return {"normalized": _STATE_BY_NAME[cleaned], "confidence": 100}

    variation = STATE_VARIATIONS.get(cleaned.lower())
    if variation:
        return {"normalized": variation, "confidence": 95}

    match = re.search(r",\s*([A-Z]{2})$", cleaned)
    if match and match.group(1) in STATE_NAMES:
        return {"normalized": match.group(1), "confidence": 90}

    best_code, best_ratio = None, 0.0
    for name, code in _STATE_BY_NAME.items():
        ratio = SequenceMatcher(None, cleaned, name).ratio()
        if ratio > best_ratio:
            best_code, best_ratio = code, ratio
    if best_code and best_ratio >= STATE_FUZZY_CUTOFF:
        return {"normalized": best_code, "confidence": round(best_ratio * 85)}

    return {"normalized": None, "confidence": 0}


def detect_data_type(samples: List[Any]) -> str:
    if not samples:
        return "unknown"
    counts: Dict[str, int] = {}
    for sample in samples:
        if isinstance(sample, (int, float)) and not isinstance(sample, bool):
            kind = "number"
        else:
            text = str(sample)
            if _DATE.match(text):
                kind = "date"
            elif _AMOUNT.match(text):
                kind = "number"
            else:
                kind = "string"
        counts[kind] = counts.get(kind, 0) + 1
    return max(counts.items(), key=lambda item: item[1])[0]


class DataValidationEngine:
    """
    Runs the validation stages over one or more parsed files.

    Each file is a dict with allData (or previewData) rows and an optional
    headerDetection block from the upload step.
    """

    def __init__(
        self,
        options: Optional[Dict[str, Any]] = None,
        firm_taxonomy: Optional[Dict[str, str]] = None,
    ):
        options = options or {}
        self.options = {
            "enableFirmLearning": options.get("enableFirmLearning", True),
            "strictMode": options.get("strictMode", False),
            "sampleSize": int(options.get("sampleSize", 1000)),
            "confidenceThreshold": int(options.get("confidenceThreshold", 50)),
        }
        self.firm_taxonomy: Dict[str, str] = dict(firm_taxonomy or {})

    # ===========================================
    # PIPELINE
    # ===========================================

    def validate(self, files: List[Dict[str, Any]]) -> Dict[str, Any]:
        results: Dict[str, Any] = {
            "stages": [],
            "issues": [],
            "mappings": [],
            "normalizations": [],
            "statesFound": [],
        }

        finals = []
        for file in files:
            file_result = self.validate_file(file)
            results["stages"].extend(file_result["stages"])
            results["issues"].extend(file_result["issues"])
            results["mappings"] = file_result["mappings"]
            results["normalizations"].extend(file_result["normalizations"])
            finals.append(file_result["final"])

        states = sorted({
            n["normalized"] for n in results["normalizations"] if n["normalized"] in STATE_NAMES
        })
        results["statesFound"] = states
        results["summary"] = self.generate_summary(results, finals)
        results["recommendations"] = self.generate_recommendations(results)
        results["success"] = results["summary"]["canProceed"]
        results["firmTaxonomy"] = dict(self.firm_taxonomy)

        logger.info(
            f"Validation complete: {len(results['issues'])} issues, "
            f"{len(states)} states, canProceed={results['success']}"
        )
        return results

    def validate_file(self, file: Dict[str, Any]) -> Dict[str, Any]:
        data = file.get("allData") or file.get("previewData") or []
        detection = file.get("headerDetection") or {}
        headers = detection.get("headers") or (data[0] if data else [])
        data_start = detection.get("dataStartRow")
        if not isinstance(data_start, int) or data_start < 1:
            data_start = 1

        stages: List[Dict[str, Any]] = []
        issues: List[Dict[str, Any]] = []

        stages.append(self.parse_stage(data))

        header_result = self.header_stage(headers, data, data_start)
        stages.append(header_result["stage"])
        issues.extend(header_result["issues"])
        mappings = header_result["mappings"]

        quality_result = self.quality_stage(data, data_start, mappings)
        stages.append(quality_result["stage"])
        issues.extend(quality_result["issues"])

        state_result = self.normalization_stage(data, data_start, mappings)
        stages.append(state_result["stage"])
        issues.extend(state_result["issues"])

        required_result = self.required_fields_stage(mappings)
        stages.append(required_result["stage"])
        issues.extend(required_result["issues"])

        stages.append(self.learning_stage(mappings))

        final_stage = self.finalize_stage(data, data_start, mappings, state_result["normalizations"])
        stages.append(final_stage)

        return {
            "stages": stages,
            "issues": issues,
            "mappings": mappings,
            "normalizations": state_result["normalizations"],
            "moduleStatus": required_result["stage"]["details"]["moduleStatus"],
            "final": final_stage["details"],
        }

    # ===========================================
    # STAGES
    # ===========================================

    @staticmethod
    def parse_stage(data: List[List[Any]]) -> Dict[str, Any]:
        stage = {
            "id": "parse",
            "status": "success",
            "progress": 100,
            "message": f"Parsed {len(data)} rows successfully",
        }
        if not data:
            stage.update(status="error", message="No data found in file")
        elif len(data) < 2:
            stage.update(status="warning", message="File contains only header row")
        return stage

    def header_stage(self, headers: List[Any], data: List[List[Any]], data_start: int) -> Dict[str, Any]:
        threshold = self.options["confidenceThreshold"]
        samples = self.sample_columns(data, data_start)
        mappings = []
        issues = []

        for index, raw in enumerate(headers):
            header = str(raw if raw is not None else "").strip()
            mapping = self.detect_column_mapping(header, samples.get(index, []))
            mappings.append(mapping)

            if mapping["confidence"] < threshold:
                issues.append({
                    "id": f"mapping-{index}",
                    "type": "column_mapping",
                    "severity": "warning",
                    "title": f'Low confidence mapping for "{header}"',
                    "description": f'Could not confidently determine the purpose of column "{header}"',
                    "column": header,
                    "suggestions": [
                        {"value": alt["field"], "confidence": alt["confidence"], "label": field_label(alt["field"])}
                        for alt in mapping["alternatives"]
                    ],
                })

        field_counts: Dict[str, int] = {}
        for mapping in mappings:
            if mapping["suggestedField"] != "ignore":
                field_counts[mapping["suggestedField"]] = field_counts.get(mapping["suggestedField"], 0) + 1

        for field, count in field_counts.items():
            if count < 2:
                continue
            label = field_label(field)
            issues.append({
                "id": f"duplicate-{field}",
                "type": "duplicate_column",
                "severity": "warning",
                "title": f'Multiple columns mapped to "{label}"',
                "description": f'Found {count} columns that could be "{label}". Please select which one to use.',
                "suggestions": [
                    {
                        "value": m["sourceColumn"],
                        "confidence": m["confidence"],
                        "label": f'Use "{m["sourceColumn"]}" ({m["confidence"]}% confidence)',
                    }
                    for m in mappings if m["suggestedField"] == field
                ],
            })

        auto_mapped = sum(1 for m in mappings if m["confidence"] >= 80)
        return {
            "stage": {
                "id": "headers",
                "status": "warning" if issues else "success",
                "progress": 100,
                "message": f"{auto_mapped}/{len(mappings)} columns auto-mapped",
                "details": {"autoMapped": auto_mapped, "total": len(mappings)},
            },
            "mappings": mappings,
            "issues": issues,
        }

    def detect_column_mapping(self, header: str, samples: List[Any]) -> Dict[str, Any]:
        normalized = _normalize_header(header)
        best = {"field": "ignore", "confidence": 0, "source": "none"}
        alternatives = []

        learned = self.firm_taxonomy.get(normalized)
        if learned:
            best = {"field": learned, "confidence": 100, "source": "firm"}

        for field, config in FIELD_TAXONOMY.items():
            patterns = [p.replace(" ", "_") for p in config["patterns"]]
            confidence = 0
            source = "fuzzy"

            if normalized in patterns:
                confidence, source = 100, "exact"
            elif any(p in normalized for p in patterns if len(p) > MIN_PARTIAL_PATTERN):
                confidence, source = 85, "partial"
            else:
                ratio = _best_ratio(normalized, patterns)
                if ratio >= HEADER_FUZZY_CUTOFF:
                    confidence = round(ratio * 70)

            data_pattern = config["data_pattern"]
            if confidence > 0 and data_pattern is not None and samples:
                matching = sum(1 for s in samples if data_pattern.match(str(s)))
                rate = matching / len(samples)
                if rate > 0.7:
                    confidence = min(100, confidence + 15)
                elif rate < 0.3 and confidence < 90:
                    confidence = max(0, confidence - 20)

            if field == "state" and samples:
                valid = sum(1 for s in samples if is_valid_state(s))
                if valid / len(samples) > 0.5:
                    confidence = max(confidence, 90)
                    source = "data_analysis"

            if confidence > 0:
                alternatives.append({"field": field, "confidence": confidence, "source": source})
            tie_on_exact = (
                confidence == best["confidence"] and source == "exact" and best["source"] != "exact"
            )
            if confidence > best["confidence"] or tie_on_exact:
                best = {"field": field, "confidence": confidence, "source": source}

        alternatives.sort(key=lambda alt: alt["confidence"], reverse=True)
        threshold = self.options["confidenceThreshold"]

        return {
            "sourceColumn": header,
            "suggestedField": best["field"] if best["confidence"] >= threshold else "ignore",
            "confidence": best["confidence"],
            "source": best["source"],
            "alternatives": alternatives[:3],
            "dataType": detect_data_type(samples),
            "sampleValues": samples[:5],
        }

    @staticmethod
    def _column_of(mappings: List[Dict[str, Any]], field: str) -> Optional[int]:
        for index, mapping in enumerate(mappings):
            if mapping["suggestedField"] == field:
                return index
        return None

    def quality_stage(self, data: List[List[Any]], data_start: int, mappings: List[Dict[str, Any]]) -> Dict[str, Any]:
        rows = data[data_start:]
        issues = []
        quality_score = 100

        state_index = self._column_of(mappings, "state")
        if state_index is not None and rows:
            empty = sum(1 for row in rows if not _cell_text(row, state_index))
            rate = empty / len(rows)
            if rate > 0.1:
                quality_score -= 20
                issues.append({
                    "id": "quality-state-empty",
                    "type": "data_quality",
                    "severity": "error" if rate > 0.3 else "warning",
                    "title": "Missing state values",
                    "description": f"{round(rate * 100)}% of rows have empty state values",
                    "affectedRows": empty,
                    "suggestions": [
                        {"value": "proceed", "confidence": 70, "label": "Proceed with available data"},
                        {"value": "review", "confidence": 30, "label": "Review and fix data"},
                    ],
                })

        revenue_index = self._column_of(mappings, "revenue")
        if revenue_index is not None and rows:
            invalid = sum(
                1 for row in rows
                if _cell_text(row, revenue_index) and parse_amount(row[revenue_index]) is None
            )
            if invalid:
                quality_score -= 15
                issues.append({
                    "id": "quality-revenue-invalid",
                    "type": "data_quality",
                    "severity": "error" if invalid > len(rows) * 0.1 else "warning",
                    "title": "Invalid revenue values",
                    "description": f"{invalid} rows have non-numeric revenue values",
                    "affectedRows": invalid,
                })

        return {
            "stage": {
                "id": "quality",
                "status": "warning" if issues else "success",
                "progress": 100,
                "message": (
                    f"Found {len(issues)} data quality issues" if issues else "Data quality checks passed"
                ),
                "details": {"qualityScore": quality_score, "issueCount": len(issues)},
            },
            "issues": issues,
        }

    def normalization_stage(self, data: List[List[Any]], data_start: int, mappings: List[Dict[str, Any]]) -> Dict[str, Any]:
        state_index = self._column_of(mappings, "state")
        if state_index is None:
            return {
                "stage": {
                    "id": "normalize",
                    "status": "warning",
                    "progress": 100,
                    "message": "No state column detected - skipping normalization",
                },
                "normalizations": [],
                "issues": [],
            }

        counts: Dict[str, int] = {}
        resolved: Dict[str, Dict[str, Any]] = {}
        success = failed = 0

        for row in data[data_start:]:
            original = _cell_text(row, state_index)
            if not original:
                continue
            if original not in resolved:
                resolved[original] = normalize_state_value(original)
                counts[original] = 0
            counts[original] += 1
            if resolved[original]["normalized"]:
                success += 1
            else:
                failed += 1

        normalizations = [
            {
                "original": original,
                "normalized": resolved[original]["normalized"] or original,
                "confidence": resolved[original]["confidence"],
                "count": count,
                "flagged": resolved[original]["confidence"] < 80,
            }
            for original, count in counts.items()
        ]

        total = success + failed
        rate = success / total if total else 0
        issues = []
        if rate < 0.8 and failed:
            issues.append({
                "id": "normalize-low-success",
                "type": "state_normalization",
                "severity": "error" if rate < 0.5 else "warning",
                "title": "State normalization issues",
                "description": f"{round((1 - rate) * 100)}% of state values couldn't be standardized",
                "affectedRows": failed,
                "suggestions": [
                    {"value": "proceed", "confidence": 60, "label": "Proceed with partial normalization"},
                    {"value": "review", "confidence": 40, "label": "Review failed normalizations"},
                ],
            })

        corrected = sum(
            1 for n in normalizations if n["original"] != n["normalized"] and n["confidence"] >= 80
        )
        return {
            "stage": {
                "id": "normalize",
                "status": "warning" if issues else "success",
                "progress": 100,
                "message": f"{corrected} values auto-corrected, {round(rate * 100)}% success rate",
                "details": {"successRate": rate, "corrected": corrected, "failed": failed},
            },
            "normalizations": normalizations,
            "issues": issues,
        }

    def required_fields_stage(self, mappings: List[Dict[str, Any]]) -> Dict[str, Any]:
        threshold = self.options["confidenceThreshold"]
        detected = {
            m["suggestedField"] for m in mappings
            if m["suggestedField"] != "ignore" and m["confidence"] >= threshold
        }

        module_status = {}
        issues = []
        for module, requirements in REQUIRED_FIELDS.items():
            missing_required = [f for f in requirements["required"] if f not in detected]
            missing_optional = [f for f in requirements["optional"] if f not in detected]
            ready = not missing_required
            module_status[module] = {
                "canProceed": ready,
                "missingRequired": missing_required,
                "missingOptional": missing_optional,
                "status": ("limited" if missing_optional else "full") if ready else "blocked",
            }
            if not ready:
                issues.append({
                    "id": f"required-{module}",
                    "type": "missing_field",
                    "severity": "error",
                    "title": f"Missing required fields for {module} tax analysis",
                    "description": (
                        f"Cannot perform {module} analysis without: "
                        f"{', '.join(field_label(f) for f in missing_required)}"
                    ),
                    "suggestions": [
                        {"value": f, "confidence": 0, "label": f'Map a column to "{field_label(f)}"'}
                        for f in missing_required
                    ],
                })

        ready_count = sum(1 for s in module_status.values() if s["canProceed"])
        if ready_count == 0:
            status = "error"
        else:
            status = "warning" if issues else "success"

        return {
            "stage": {
                "id": "validate",
                "status": status,
                "progress": 100,
                "message": (
                    f"{ready_count}/{len(REQUIRED_FIELDS)} analysis modules ready" if ready_count
                    else "Missing required fields for all analysis modules"
                ),
                "details": {"moduleStatus": module_status},
            },
            "issues": issues,
        }

    def learning_stage(self, mappings: List[Dict[str, Any]]) -> Dict[str, Any]:
        learned = 0
        if self.options["enableFirmLearning"]:
            for mapping in mappings:
                if mapping["confidence"] >= LEARNING_CONFIDENCE and mapping["suggestedField"] != "ignore":
                    self.firm_taxonomy[_normalize_header(mapping["sourceColumn"])] = mapping["suggestedField"]
                    learned += 1

        return {
            "id": "learn",
            "status": "success",
            "progress": 100,
            "message": (
                f"{learned} mappings added to firm taxonomy" if self.options["enableFirmLearning"]
                else "Firm learning disabled"
            ),
            "details": {"learnedMappings": learned},
        }

    def finalize_stage(
        self,
        data: List[List[Any]],
        data_start: int,
        mappings: List[Dict[str, Any]],
        normalizations: List[Dict[str, Any]],
    ) -> Dict[str, Any]:
        rows = data[data_start:]
        state_index = self._column_of(mappings, "state")
        revenue_index = self._column_of(mappings, "revenue")
        lookup = {n["original"]: n["normalized"] for n in normalizations}

        total_revenue = 0.0
        states = set()
        if state_index is not None and revenue_index is not None:
            for row in rows:
                state = _cell_text(row, state_index)
                if state:
                    states.add(lookup.get(state, state))
                amount = parse_amount(row[revenue_index]) if revenue_index < len(row) else None
                if amount is not None:
                    total_revenue += amount

        return {
            "id": "finalize",
            "status": "success",
            "progress": 100,
            "message": "Data ready for nexus analysis",
            "details": {
                "totalRows": len(rows),
                "statesDetected": len(states),
                "totalRevenue": total_revenue,
            },
        }

    # ===========================================
    # SUMMARY
    # ===========================================

    def generate_summary(self, results: Dict[str, Any], finals: List[Dict[str, Any]]) -> Dict[str, Any]:
        issues = results["issues"]
        buckets = {"high": 0, "medium": 0, "low": 0}
        for issue in issues:
            buckets[SEVERITY_BUCKETS.get(issue.get("severity"), "low")] += 1

        total_rows = sum(f["totalRows"] for f in finals)
        affected = sum(i.get("affectedRows", 0) for i in issues if i["type"] == "data_quality")

        stages = results["stages"]
        if self.options["strictMode"]:
            can_proceed = bool(stages) and not issues
        else:
            # At least one module ready and every file parsed
            can_proceed = (
                bool(stages)
                and all(s["status"] != "error" for s in stages if s["id"] == "parse")
                and any(s["status"] != "error" for s in stages if s["id"] == "validate")
            )

        return {
            "totalIssues": len(issues),
            "high": buckets["high"],
            "medium": buckets["medium"],
            "low": buckets["low"],
            "canProceed": can_proceed,
            "totalRows": total_rows,
            "validRows": max(0, total_rows - affected),
            "statesDetected": len(results["statesFound"]),
            "totalRevenue": sum(f["totalRevenue"] for f in finals),
            "autoResolved": sum(1 for i in issues if i.get("resolved")),
        }

    @staticmethod
    def generate_recommendations(results: Dict[str, Any]) -> List[str]:
        recommendations = []
        ids = {issue["id"] for issue in results["issues"]}

        if any(i.startswith("required-") for i in ids):
            recommendations.append("Map columns for the missing required fields before running analysis")
        if any(i.startswith("duplicate-") for i in ids):
            recommendations.append("Choose one column for each field that has multiple candidates")
        if "quality-state-empty" in ids:
            recommendations.append("Fill in missing state values or exclude those rows")
        if "quality-revenue-invalid" in ids:
            recommendations.append("Correct non-numeric revenue values")
        if "normalize-low-success" in ids:
            recommendations.append("Review state values that could not be standardized")
        if any(n.get("flagged") for n in results["normalizations"]):
            recommendations.append("Confirm low-confidence state corrections")
        if not recommendations:
            recommendations.append("Data is ready for nexus analysis")
        return recommendations

    def sample_columns(self, data: List[List[Any]], data_start: int) -> Dict[int, List[Any]]:
        samples: Dict[int, List[Any]] = {}
        for row in data[data_start:data_start + self.options["sampleSize"]]:
            if not isinstance(row, (list, tuple)):
                continue
            for index, value in enumerate(row):
                if value is not None and str(value).strip():
                    samples.setdefault(index, []).append(value)
        return samples


def _cell_text(row: List[Any], index: int) -> str:
    if index >= len(row) or row[index] is None:
        return ""
    return str(row[index]).strip()
