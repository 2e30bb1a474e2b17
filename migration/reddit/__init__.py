from .options import (
    MigrationOptions,
    ListingKind,
    SubredditAction,
    PostAction,
    AccountRole,
)
from .models import (
    Credential,
    AccountAuthState,
    ItemPage,
    SelectionSet,
    SelectionMode,
    DeleteFromSource,
    MigrationRequest,
    CustomMigrationRequest,
    OutcomeReport,
    MigrationResult,
)
from .errors import (
    MigrationError,
    AuthError,
    ListingError,
    ItemOperationError,
    NetworkError,
    HttpError,
    RateLimited,
    RequestValidationError,
)
from .chunker import chunk
from .rate_gate import RateGate
from .client import RedditApiClient
from .paginator import Paginator
from .executor import BatchExecutor
from .planner import MigrationPlan, build_plan, expand_to_stages
from .orchestrator import MigrationOrchestrator, parse_request, parse_custom_request
