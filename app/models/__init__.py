"""
Nexus Compliance - SQLAlchemy Models Package

This package contains all database models for the application.
"""

from app.models.base import BaseModel, TimestampMixin, JSONType
from app.models.organization import Organization
from app.models.user import User, UserRole
from app.models.client import Client, ClientState, RiskLevel, StateStatus
from app.models.nexus import (
    NexusAlert,
    NexusActivity,
    AlertPriority,
    NexusAlertStatus,
    NexusActivityType,
)
from app.models.alert import Alert, Task
from app.models.dashboard import GeneratedDashboard
from app.models.memo import (
    NexusMemo,
    MemoHashVerification,
    MemoType,
    MemoStatus,
    VerificationResult,
)
from app.models.audit import AuditLog
from app.models.pii import PIIDetection, PIIAction
from app.models.doctrine import (
    DoctrineRule,
    DoctrineApproval,
    DoctrineVersionEvent,
    DoctrineImpactMetrics,
    DoctrineScope,
    DoctrineStatus,
    DoctrineDecision,
)
from app.models.statute import StatuteOverride, ValidationStatus
from app.models.approval import ApprovalRequirement, Approval, ApprovalStatus

__all__ = [
    "BaseModel",
    "TimestampMixin",
    "JSONType",
    "Organization",
    "User",
    "UserRole",
    "Client",
    "ClientState",
    "RiskLevel",
    "StateStatus",
    "NexusAlert",
    "NexusActivity",
    "AlertPriority",
    "NexusAlertStatus",
    "NexusActivityType",
    "Alert",
    "Task",
    "GeneratedDashboard",
    "NexusMemo",
    "MemoHashVerification",
    "MemoType",
    "MemoStatus",
    "VerificationResult",
    "AuditLog",
    "PIIDetection",
    "PIIAction",
    "DoctrineRule",
    "DoctrineApproval",
    "DoctrineVersionEvent",
    "DoctrineImpactMetrics",
    "DoctrineScope",
    "DoctrineStatus",
    "DoctrineDecision",
    "StatuteOverride",
    "ValidationStatus",
    "ApprovalRequirement",
    "Approval",
    "ApprovalStatus",
]
