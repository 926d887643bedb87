"""
Nexus Compliance - Schemas Package

Pydantic schemas for request/response validation.
"""

from app.schemas.common import CamelModel
from app.schemas.auth import (
    UserRegisterRequest,
    UserLoginRequest,
    TokenRefreshRequest,
    PasswordChangeRequest,
    ProfileUpdateRequest,
    TokenResponse,
    UserResponse,
    OrganizationResponse,
    UserWithTokenResponse,
    CurrentUserResponse,
    MessageResponse,
)
from app.schemas.dashboard import DashboardGenerateRequest
from app.schemas.nexus import (
    NexusAlertCreate,
    NexusAlertUpdate,
    NexusActivityCreate,
    ClientStateCreate,
    ClientStateUpdate,
)
from app.schemas.memo import MemoCreate, MemoUpdate, SupplementalMemoCreate, MemoFromAlertsRequest
from app.schemas.ingestion import SuggestMappingsRequest, GenerateAlertsRequest, ValidateDataRequest
from app.schemas.audit import AuditLogRequest, VerifyChainRequest
from app.schemas.pii import PIIDetectRequest, PIILogWarningRequest
from app.schemas.doctrine import (
    DoctrineRuleCreate,
    DoctrineRuleUpdate,
    DoctrineDryRunRequest,
    DoctrineReviewRequest,
    DoctrineRollbackRequest,
    DoctrineDisableRequest,
)
from app.schemas.statute import StatuteOverrideCreate, StatuteOverrideReject
from app.schemas.approval import ApprovalRequirementCreate, ApprovalSubmit
