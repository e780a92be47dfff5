"""
Domain models — Pydantic types for ffpkg.

All models are re-exported here for convenient access:

    from ffpkg.core.models import ReleaseArtifact, InstallState, Settings
"""

from ffpkg.core.models.receipt import VerificationReceipt
from ffpkg.core.models.release import NoMatch, ReleaseArtifact
from ffpkg.core.models.settings import Settings
from ffpkg.core.models.state import InstallState, TrustRecord

__all__ = [
    "InstallState",
    "NoMatch",
    "ReleaseArtifact",
    "Settings",
    "TrustRecord",
    "VerificationReceipt",
]
