"""
Nexus Compliance - Services Package

Business logic services.
"""

from app.services.auth_service import AuthService
from app.services.audit_service import AuditService
from app.services.pii_service import PIIService
from app.services.ingestion_service import IngestionService
from app.services.data_validation_service import DataValidationEngine
from app.services.dashboard_generation_service import DashboardGenerationService
from app.services.dashboard_service import DashboardService
from app.services.nexus_service import NexusService
from app.services.portfolio_service import PortfolioService
from app.services.memo_pdf_service import MemoPDFService
from app.services.memo_service import MemoService
from app.services.nexus_engine import NexusEngine
from app.services.doctrine_service import DoctrineService
from app.services.doctrine_impact_service import DoctrineAlertMatcher, DoctrineImpactService
from app.services.statute_service import StatuteService
from app.services.approval_service import ApprovalService

__all__ = [
    "AuthService",
    "AuditService",
    "PIIService",
    "IngestionService",
    "DataValidationEngine",
    "DashboardGenerationService",
    "DashboardService",
    "NexusService",
    "PortfolioService",
    "MemoPDFService",
    "MemoService",
    "NexusEngine",
    "DoctrineService",
    "DoctrineImpactService",
    "DoctrineAlertMatcher",
    "StatuteService",
    "ApprovalService",
]
