"""Release build support: version properties rewriting and publishing."""

from artifact_promotion.release.coordinator import EditCoordinator, LocalEditCoordinator
from artifact_promotion.release.copier import (
    ArtifactPublisher,
    DirectoryArtifactPublisher,
    GradlePropertiesCopier,
)
from artifact_promotion.release.properties import PropertiesTransformer
from artifact_promotion.release.provider import (
    GradleReleaseProvider,
    ReleaseProvider,
    TaskDefinition,
    build_map_according_to_status,
    find_gradle_definition,
    resolve_properties_location,
)

__all__ = [
    "ArtifactPublisher",
    "DirectoryArtifactPublisher",
    "EditCoordinator",
    "GradlePropertiesCopier",
    "GradleReleaseProvider",
    "LocalEditCoordinator",
    "PropertiesTransformer",
    "ReleaseProvider",
    "TaskDefinition",
    "build_map_according_to_status",
    "find_gradle_definition",
    "resolve_properties_location",
]
