from .models import (
    ConfigSnapshot, MediaInfo, DiscoveredFile, FinalizeResult, SessionView,
    DecisionOutcome, SessionPhase, SessionOutcome, Severity,
)
from .errors import (
    FetchCoreError, ToolNotFoundError, LaunchFailureError,
    NonZeroExitError, ProbeFailureError, FilesystemError,
)
from .config import snapshot_to_dict, snapshot_from_dict, load_snapshot_file
from .fetch_args import build_fetch_arguments
from .probe import MediaInspector
from .decision import decide, can_remux
from .subtitles import convert_to_plaintext
from .transcoder import TranscodeRunner
from .output_parser import OutputStreamParser
from .session import SessionState
from .pipeline import SessionPipeline
from .coordinator import SessionCoordinator

__all__ = [
    "ConfigSnapshot", "MediaInfo", "DiscoveredFile", "FinalizeResult", "SessionView",
    "DecisionOutcome", "SessionPhase", "SessionOutcome", "Severity",
    "FetchCoreError", "ToolNotFoundError", "LaunchFailureError",
    "NonZeroExitError", "ProbeFailureError", "FilesystemError",
    "snapshot_to_dict", "snapshot_from_dict", "load_snapshot_file",
    "build_fetch_arguments",
    "MediaInspector",
    "decide", "can_remux",
    "convert_to_plaintext",
    "TranscodeRunner",
    "OutputStreamParser",
    "SessionState",
    "SessionPipeline",
    "SessionCoordinator",
]
