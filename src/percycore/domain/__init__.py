"""Domain models for percycore.

This package contains the data structures exchanged over the control
API: agent configuration, snapshot descriptors and the testing-mode
fault-injection state. All models use Pydantic v2 for validation and
serialization.
"""

from percycore.domain.models import (
    DiscoveryConfig,
    FaultMode,
    PercyConfig,
    SnapshotConfig,
    SnapshotOptions,
    TestingState,
)

__all__ = [
    "DiscoveryConfig",
    "FaultMode",
    "PercyConfig",
    "SnapshotConfig",
    "SnapshotOptions",
    "TestingState",
]
