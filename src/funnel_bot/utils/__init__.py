from .errors import (
    FunnelBotError,
    NavigationError,
    SessionClosedError,
    is_session_closed_error,
)
from .files import (
    FunnelArtifacts,
    slug_from_url,
    write_json_file,
)
from .step_logger import StepLogger

__all__ = [
    "FunnelArtifacts",
    "FunnelBotError",
    "NavigationError",
    "SessionClosedError",
    "StepLogger",
    "is_session_closed_error",
    "slug_from_url",
    "write_json_file",
]
