"""
I/O models for API requests and responses.

Modules:
- businesses: Directory listing schemas
- quotes: Quote requests and the lead views shown to businesses
- auth: Signup, login and profile schemas
- claims: Claim flow and campaign generation
- billing: Plans, subscriptions, featured listings and checkout
"""

from .auth import AuthResponse, ChangePasswordRequest, LoginRequest, ProfileUpdate, SignupRequest, UserRead
from .billing import (
    CheckoutRequest,
    CheckoutResponse,
    FeaturedListingRead,
    FeaturedStatus,
    MarkReadRequest,
    NotificationRead,
    PlanCreate,
    PlanRead,
    PlanUpdate,
    SubscriptionRead,
)
from .businesses import (
    AdminBusinessUpdate,
    BusinessCreate,
    BusinessListResponse,
    BusinessRead,
    BusinessUpdate,
    DuplicateCheckResponse,
    SetFeaturedRequest,
)
from .claims import (
    ClaimCampaignInfo,
    ClaimGenerateRequest,
    ClaimGenerateResponse,
    ClaimRequest,
    ClaimResponse,
    ClaimTokenResponse,
    ClaimTrackRequest,
    GeneratedClaim,
)
from .quotes import (
    AssignmentResult,
    LeadListResponse,
    LeadStatusUpdate,
    LeadView,
    QuoteCreate,
    QuoteListResponse,
    QuoteRead,
    QuoteSubmitted,
    QuoteUpdate,
    RevealResponse,
)

__all__ = [
    "AdminBusinessUpdate",
    "AssignmentResult",
    "AuthResponse",
    "BusinessCreate",
    "BusinessListResponse",
    "BusinessRead",
    "BusinessUpdate",
    "ChangePasswordRequest",
    "CheckoutRequest",
    "CheckoutResponse",
    "ClaimCampaignInfo",
    "ClaimGenerateRequest",
    "ClaimGenerateResponse",
    "ClaimRequest",
    "ClaimResponse",
    "ClaimTokenResponse",
    "ClaimTrackRequest",
    "DuplicateCheckResponse",
    "FeaturedListingRead",
    "FeaturedStatus",
    "GeneratedClaim",
    "LeadListResponse",
    "LeadStatusUpdate",
    "LeadView",
    "LoginRequest",
    "MarkReadRequest",
    "NotificationRead",
    "PlanCreate",
    "PlanRead",
    "PlanUpdate",
    "ProfileUpdate",
    "QuoteCreate",
    "QuoteListResponse",
    "QuoteRead",
    "QuoteSubmitted",
    "QuoteUpdate",
    "RevealResponse",
    "SignupRequest",
    "SubscriptionRead",
    "UserRead",
]
