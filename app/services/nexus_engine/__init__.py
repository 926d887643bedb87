"""
Nexus Compliance - Nexus Detection Engine Package

Multi-state nexus detection over uploaded financial data.
"""

from app.services.nexus_engine.engine import NexusEngine
from app.services.nexus_engine.franchise import FranchiseNexusDetector
from app.services.nexus_engine.income import IncomeNexusDetector
from app.services.nexus_engine.payroll import PayrollNexusDetector
from app.services.nexus_engine.sales import SalesNexusDetector
from app.services.nexus_engine.state_rules import (
    PL_86_272_ACTIVITIES,
    RISK_MULTIPLIERS,
    SEVERITY_THRESHOLDS,
    STATE_NAMES,
    STATE_RULES,
    get_risk_multiplier,
    get_state_rule,
)

__all__ = [
    "NexusEngine",
    "SalesNexusDetector",
    "IncomeNexusDetector",
    "PayrollNexusDetector",
    "FranchiseNexusDetector",
    "STATE_RULES",
    "STATE_NAMES",
    "PL_86_272_ACTIVITIES",
    "RISK_MULTIPLIERS",
    "SEVERITY_THRESHOLDS",
    "get_state_rule",
    "get_risk_multiplier",
]
