"""Release stage: assemble and publish a GitHub release from build artifacts."""

from .errors import ReleaseError
from .model import GhAsset, GhRelease, PlannedAsset, ReleaseStage
from .orchestrator import ReleaseClient, ReleaseOrchestrator

__all__ = [
    "GhAsset",
    "GhRelease",
    "PlannedAsset",
    "ReleaseClient",
    "ReleaseError",
    "ReleaseOrchestrator",
    "ReleaseStage",
]
