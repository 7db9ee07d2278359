"""Release providers rewriting build descriptors during a release build.

A release build runs twice over the version properties: once to set the
release values before building, and once to set the next development
values afterwards. The provider decides which values apply and where the
descriptor lives; PropertiesTransformer does the rewriting.
"""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, Dict, Iterable, Mapping, Optional

from artifact_promotion.release.coordinator import EditCoordinator
from artifact_promotion.release.properties import PropertiesTransformer

logger = logging.getLogger(__name__)

GRADLE_PLUGIN_KEY = "artifactoryGradleBuilder"
GRADLE_BUILD_SCRIPT_KEY = "builder.artifactoryGradleBuilder.buildScript"
GRADLE_PROPERTIES_FILE = "gradle.properties"

RELEASE_VALUE_PREFIX = "release-value-"
NEXT_INTEG_VALUE_PREFIX = "next-integ-value-"


@dataclass
class TaskDefinition:
    """A configured task of the build plan.

    Attributes:
        plugin_key: Identifier of the task type.
        configuration: Task settings as entered in the plan.
    """

    plugin_key: str
    configuration: Dict[str, str] = field(default_factory=dict)


def find_gradle_definition(
    task_definitions: Iterable[TaskDefinition],
) -> Optional[TaskDefinition]:
    """Return the first Gradle task definition, or None."""
    for definition in task_definitions:
        if GRADLE_PLUGIN_KEY in definition.plugin_key:
            return definition
    return None


def resolve_properties_location(
    root: Path,
    build_script: Optional[str],
    file_name: str = GRADLE_PROPERTIES_FILE,
) -> Path:
    """Join the checkout root, the build script directory and the file name.

    A blank build script directory means the file is at the root.
    """
    location = ""
    if build_script and build_script.strip():
        location = build_script
        if not location.endswith(os.sep):
            location += os.sep
    return Path(root) / (location + file_name)


def build_map_according_to_status(
    conf: Mapping[str, str],
    release: bool,
) -> Dict[str, str]:
    """Compute the property replacements for release or next development.

    Release values are configured as ``release-value-<key>`` and next
    development values as ``next-integ-value-<key>``.

    Args:
        conf: Task configuration holding the configured values.
        release: True for release values, False for next development.

    Returns:
        Mapping of property key to its new value.
    """
    prefix = RELEASE_VALUE_PREFIX if release else NEXT_INTEG_VALUE_PREFIX
    replacements = {}
    for key, value in conf.items():
        if not key.startswith(prefix):
            continue
        property_key = key[len(prefix):]
        if property_key.strip():
            replacements[property_key] = value
    return replacements


class ReleaseProvider(ABC):
    """Base class for build-tool specific descriptor rewriting.

    Attributes:
        source_dir_resolver: Returns the build's checkout root, or None.
        coordinator: Edit guard taken before a descriptor is modified.
        build_logger: Sink for lines shown in the build log.
    """

    def __init__(
        self,
        source_dir_resolver: Callable[[], Optional[Path]],
        coordinator: EditCoordinator,
        build_logger: Optional[Callable[[str], None]] = None,
    ):
        self.source_dir_resolver = source_dir_resolver
        self.coordinator = coordinator
        self.build_logger = build_logger

    def get_source_dir(self) -> Optional[Path]:
        return self.source_dir_resolver()

    def log(self, message: str) -> None:
        logger.info(message)
        if self.build_logger is not None:
            self.build_logger(message)

    @abstractmethod
    def get_task_configuration(
        self,
        task_definitions: Iterable[TaskDefinition],
    ) -> Mapping[str, str]:
        """Return the configuration of this provider's task type."""

    @abstractmethod
    def transform_descriptor(self, conf: Mapping[str, str], release: bool) -> bool:
        """Rewrite the build descriptor for release or next development."""


class GradleReleaseProvider(ReleaseProvider):
    """Release provider for Gradle builds, rewriting gradle.properties."""

    def get_task_configuration(
        self,
        task_definitions: Iterable[TaskDefinition],
    ) -> Mapping[str, str]:
        definition = find_gradle_definition(task_definitions)
        if definition is None:
            return {}
        return definition.configuration

    def transform_descriptor(self, conf: Mapping[str, str], release: bool) -> bool:
        """Rewrite gradle.properties with the release or next values.

        Returns:
            True if the file was rewritten, False when there is no checkout
            directory, no properties file, or reading or writing it failed.
        """
        root_dir = self.get_source_dir()
        if root_dir is None:
            logger.warning("No checkout directory available for the build")
            return False

        replacements = build_map_according_to_status(conf, release)
        file_to_transform = resolve_properties_location(
            root_dir, conf.get(GRADLE_BUILD_SCRIPT_KEY)
        )
        transform_message = "release" if release else "next development"
        self.log(f"Transforming: {file_to_transform.absolute()} to {transform_message}")

        try:
            with self.coordinator.edit(file_to_transform) as path:
                return PropertiesTransformer(path, replacements).transform()
        except (OSError, UnicodeError) as exc:
            logger.exception(
                "Failed to transform properties file",
                extra={"path": str(file_to_transform)},
            )
            self.log(f"Failed to transform {file_to_transform}: {exc}")
            return False
