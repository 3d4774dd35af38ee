"""mapch - Async Python client for the Map-channel spot map API."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("mapch")
except PackageNotFoundError:
    __version__ = "0+local"
from mapch._transport import AiohttpTransport, RequestDescriptor, Response, Transport, UploadFile
from mapch.auth import AuthService
from mapch.client import MapchClient
from mapch.config import MapchConfig
from mapch.exceptions import (
    IdentityCreationError,
    MapchAggregatedFailure,
    MapchCompensationError,
    MapchConfigError,
    MapchError,
    MapchIdentityError,
    MapchPermanentError,
    MapchProvisioningError,
    MapchRequestError,
    MapchTransientError,
    MapchValidationError,
    RegistrationError,
)
from mapch.executor import RequestExecutor
from mapch.models import (
    Board,
    BoardPage,
    BoardSort,
    BoundingBox,
    PageCursor,
    Photo,
    Post,
    PostForm,
    Spot,
    SpotEdit,
    SpotForm,
    ViewportSnapshot,
)
from mapch.probe import BodyEncoding, CandidateProbe, CandidateRequest
from mapch.provisioning import ProvisioningAttempt, ProvisioningPhase, ProvisioningState, ProvisioningWorkflow
from mapch.session import SessionGuard, SessionStatus
from mapch.viewport import ViewportPhase, ViewportSyncController

__all__ = [
    "__version__",
    "AiohttpTransport",
    "AuthService",
    "BodyEncoding",
    "Board",
    "BoardPage",
    "BoardSort",
    "BoundingBox",
    "CandidateProbe",
    "CandidateRequest",
    "IdentityCreationError",
    "MapchAggregatedFailure",
    "MapchClient",
    "MapchCompensationError",
    "MapchConfig",
    "MapchConfigError",
    "MapchError",
    "MapchIdentityError",
    "MapchPermanentError",
    "MapchProvisioningError",
    "MapchRequestError",
    "MapchTransientError",
    "MapchValidationError",
    "PageCursor",
    "Photo",
    "Post",
    "PostForm",
    "ProvisioningAttempt",
    "ProvisioningPhase",
    "ProvisioningState",
    "ProvisioningWorkflow",
    "RegistrationError",
    "RequestDescriptor",
    "RequestExecutor",
    "Response",
    "SessionGuard",
    "SessionStatus",
    "Spot",
    "SpotEdit",
    "SpotForm",
    "Transport",
    "UploadFile",
    "ViewportPhase",
    "ViewportSnapshot",
    "ViewportSyncController",
]
