"""Publishing of gradle.properties as a build artifact.

After a Gradle build the properties file is published as an artifact
named ``gradle``. The release management view reads the release and next
development values from that artifact instead of the server-side working
copy, which goes stale when builds run on remote agents.
"""

import logging
import shutil
from pathlib import Path
from typing import Callable, Iterable, Optional, Protocol

from artifact_promotion.release.provider import (
    GRADLE_BUILD_SCRIPT_KEY,
    TaskDefinition,
    find_gradle_definition,
    resolve_properties_location,
)

logger = logging.getLogger(__name__)

GRADLE_ARTIFACT_NAME = "gradle"


class ArtifactPublisher(Protocol):
    """Stores files of a build under a named artifact."""

    def publish(self, name: str, source_dir: Path, pattern: str) -> int:
        ...


class DirectoryArtifactPublisher:
    """Publishes artifacts by copying files into ``base_dir/<name>/``."""

    def __init__(self, base_dir: Path):
        self.base_dir = Path(base_dir)

    def publish(self, name: str, source_dir: Path, pattern: str) -> int:
        """Copy files of ``source_dir`` matching ``pattern``.

        Returns:
            Number of files copied.
        """
        target = self.base_dir / name
        target.mkdir(parents=True, exist_ok=True)
        copied = 0
        for source in sorted(Path(source_dir).glob(pattern)):
            if source.is_file():
                shutil.copy2(source, target / source.name)
                copied += 1
        logger.info(
            "Artifact published",
            extra={"artifact": name, "files": copied, "target": str(target)},
        )
        return copied


class GradlePropertiesCopier:
    """Publishes a Gradle build's gradle.properties after the build."""

    def __init__(
        self,
        publisher: ArtifactPublisher,
        build_logger: Optional[Callable[[str], None]] = None,
    ):
        self.publisher = publisher
        self.build_logger = build_logger

    def copy(
        self,
        checkout_dir: Optional[Path],
        task_definitions: Iterable[TaskDefinition],
        result_key: str,
    ) -> bool:
        """Publish the properties file of a finished build.

        Returns:
            True if the artifact was published, False if the build has no
            checkout directory or is not a Gradle build.
        """
        if checkout_dir is None or not Path(checkout_dir).exists():
            return False

        definition = find_gradle_definition(task_definitions)
        if definition is None:
            logger.debug("Current build is not a gradle build")
            return False

        message = f"Copying the gradle properties artifact for build: {result_key}"
        logger.info(message)
        if self.build_logger is not None:
            self.build_logger(message)

        properties_file = resolve_properties_location(
            Path(checkout_dir),
            definition.configuration.get(GRADLE_BUILD_SCRIPT_KEY),
        )
        self.publisher.publish(
            GRADLE_ARTIFACT_NAME,
            properties_file.parent,
            properties_file.name,
        )
        return True
