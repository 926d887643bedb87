"""
Nexus Compliance - Demo Data Package

Generates demo client portfolios for personalized dashboards.
"""

from app.services.demo_data.alert_generator import AlertGenerator
from app.services.demo_data.client_generator import ClientGenerator
from app.services.demo_data.constants import (
    ALERT_ALLOCATION,
    QUALIFICATION_STRATEGIES,
    RISK_DISTRIBUTION,
    STATUS_COLORS,
    TOTAL_CLIENTS,
)
from app.services.demo_data.state_generator import StateGenerator
from app.services.demo_data.status import calculate_revenue_for_status, determine_status

__all__ = [
    "AlertGenerator",
    "ClientGenerator",
    "StateGenerator",
    "determine_status",
    "calculate_revenue_for_status",
    "ALERT_ALLOCATION",
    "QUALIFICATION_STRATEGIES",
    "RISK_DISTRIBUTION",
    "STATUS_COLORS",
    "TOTAL_CLIENTS",
]
