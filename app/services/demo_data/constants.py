"""
Nexus Compliance - Demo Data Constants

Distribution tables that shape generated demo portfolios.
"""

from typing import Dict, List


# ===========================================
# STATUS
# ===========================================

COMPLIANT = "compliant"
WARNING = "warning"
CRITICAL = "critical"

STATUS_COLORS: Dict[str, str] = {
    COMPLIANT: "#10b981",
    WARNING: "#f97316",
    CRITICAL: "#ef4444",
}


# ===========================================
# PORTFOLIO SHAPE
# ===========================================

TOTAL_CLIENTS = 10

# Risk level per client slot (2 critical, 2 high, 3 medium, 3 low)
RISK_DISTRIBUTION: List[str] = [
    "critical", "critical",
    "high", "high",
    "medium", "medium", "medium",
    "low", "low", "low",
]

# States per client by risk level
STATE_DISTRIBUTION: Dict[str, Dict[str, int]] = {
    "critical": {"total": 5, "compliant": 1, "warning": 2, "critical": 2},
    "high": {"total": 4, "compliant": 1, "warning": 2, "critical": 1},
    "medium": {"total": 4, "compliant": 2, "warning": 2, "critical": 0},
    "low": {"total": 3, "compliant": 2, "warning": 1, "critical": 0},
}

# Alerts per client slot within each risk level; 5 high, 10 medium, 5 low overall
ALERT_ALLOCATION: Dict[str, List[Dict[str, int]]] = {
    "critical": [
        {"high": 1, "medium": 1, "low": 0},
        {"high": 1, "medium": 1, "low": 0},
    ],
    "high": [
        {"high": 1, "medium": 1, "low": 0},
        {"high": 1, "medium": 1, "low": 0},
    ],
    "medium": [
        {"high": 1, "medium": 1, "low": 0},
        {"high": 0, "medium": 1, "low": 1},
        {"high": 0, "medium": 1, "low": 1},
    ],
    "low": [
        {"high": 0, "medium": 1, "low": 1},
        {"high": 0, "medium": 1, "low": 1},
        {"high": 0, "medium": 1, "low": 1},
    ],
}

# Warning / critical revenue-to-threshold ratios
QUALIFICATION_STRATEGIES: Dict[str, Dict[str, float]] = {
    "conservative": {"warning": 0.60, "critical": 1.00},
    "standard": {"warning": 0.80, "critical": 1.00},
    "aggressive": {"warning": 0.90, "critical": 1.10},
    "compliance-focused": {"warning": 0.70, "critical": 0.90},
    "risk-tolerant": {"warning": 1.00, "critical": 1.20},
}


# ===========================================
# AMOUNTS
# ===========================================

REVENUE_RANGE = {"min": 50_000, "max": 600_000}

STATE_THRESHOLDS: Dict[str, Dict[str, int]] = {
    "large": {"min": 500_000, "max": 1_000_000},
    "medium": {"min": 200_000, "max": 500_000},
    "small": {"min": 100_000, "max": 300_000},
}

LARGE_STATES = ["CA", "NY", "TX"]
MEDIUM_STATES = ["FL", "IL", "PA", "OH"]

DEFAULT_PRIORITY_STATES = ["CA", "NY", "TX", "FL", "IL"]

PENALTY_EXPOSURE_RANGES: Dict[str, tuple] = {
    "critical": (50_000, 200_000),
    "high": (25_000, 100_000),
    "medium": (5_000, 25_000),
    "low": (0, 5_000),
}

QUALITY_SCORE_RANGES: Dict[str, tuple] = {
    "critical": (60, 75),
    "high": (75, 85),
    "medium": (85, 95),
    "low": (95, 100),
}

ALERT_DEADLINE_DAYS = {"high": 30, "medium": 60, "low": 90}


# ===========================================
# NAMES
# ===========================================

COMPANY_NAMES = [
    "TechCorp", "DataFlow", "CloudSync", "InnovateLab", "DigitalEdge", "NextGen",
    "FutureTech", "SmartSolutions", "AlphaSystems", "BetaWorks", "GammaTech", "DeltaData",
]

INDUSTRIES = [
    "Technology", "Software Development", "E-commerce", "SaaS", "Fintech", "HealthTech",
    "EdTech", "RetailTech", "Manufacturing", "Logistics", "Consulting", "Marketing",
]
