"""
Nexus Compliance - Routers Package

FastAPI route handlers.

Routers:
- auth: Authentication (register, login, tokens, profile)
- dashboards: Generated dashboards
- personalized_dashboard: Per-section dashboard views
- nexus: Nexus alerts, activities, client states and summaries
- risk_portfolio: Portfolio and client risk profiles
- role_dashboards: Managing partner, tax manager and system admin dashboards
- memos: Nexus memo drafting, sealing and verification
- nexus_memos: Document upload, mapping, analysis and validation
- audit: Hash-chained audit trail
- pii: PII detection and warning decisions
- doctrine_rules: Firm doctrine rules, approvals, versions and impact
- statutes: Firm statute overrides
- approvals: Approval requirements and sign-offs
"""

from app.routers import (
    auth,
    dashboards,
    personalized_dashboard,
    nexus,
    risk_portfolio,
    role_dashboards,
    memos,
    nexus_memos,
    audit,
    pii,
    doctrine_rules,
    statutes,
    approvals,
)

__all__ = [
    "auth",
    "dashboards",
    "personalized_dashboard",
    "nexus",
    "risk_portfolio",
    "role_dashboards",
    "memos",
    "nexus_memos",
    "audit",
    "pii",
    "doctrine_rules",
    "statutes",
    "approvals",
]
