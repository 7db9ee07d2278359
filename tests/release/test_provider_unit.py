"""Unit tests for release providers and the edit coordinator."""

import os
import stat
import threading
import time
from contextlib import contextmanager
from pathlib import Path
from typing import List

import pytest

from artifact_promotion.release.coordinator import LocalEditCoordinator
from artifact_promotion.release.provider import (
    GRADLE_BUILD_SCRIPT_KEY,
    GradleReleaseProvider,
    TaskDefinition,
    build_map_according_to_status,
    find_gradle_definition,
    resolve_properties_location,
)

GRADLE_KEY = "org.jfrog.bamboo.plugins:artifactoryGradleBuilder"
MAVEN_KEY = "org.jfrog.bamboo.plugins:maven3Builder"

CONF = {
    "release-value-version": "1.0",
    "next-integ-value-version": "1.1-SNAPSHOT",
    "release-value-apiVersion": "3",
    "next-integ-value-apiVersion": "4-SNAPSHOT",
    "release-value- ": "ignored",
    "unrelated": "x",
}


class RecordingCoordinator:
    """Edit coordinator that records which files were checked out."""

    def __init__(self):
        self.edited: List[Path] = []
        self.released: List[Path] = []

    @contextmanager
    def edit(self, path):
        self.edited.append(Path(path))
        try:
            yield Path(path)
        finally:
            self.released.append(Path(path))


class FailingCoordinator:
    @contextmanager
    def edit(self, path):
        raise PermissionError(f"cannot open {path} for edit")
        yield  # pragma: no cover


@pytest.fixture
def build_log():
    return []


def _provider(root, coordinator, build_log):
    return GradleReleaseProvider(
        source_dir_resolver=lambda: root,
        coordinator=coordinator,
        build_logger=build_log.append,
    )


class TestBuildMap:
    def test_release_values(self):
        assert build_map_according_to_status(CONF, release=True) == {
            "version": "1.0",
            "apiVersion": "3",
        }

    def test_next_development_values(self):
        assert build_map_according_to_status(CONF, release=False) == {
            "version": "1.1-SNAPSHOT",
            "apiVersion": "4-SNAPSHOT",
        }

    def test_empty_configuration(self):
        assert build_map_according_to_status({}, release=True) == {}


class TestResolveLocation:
    def test_root_when_no_build_script(self, tmp_path):
        assert resolve_properties_location(tmp_path, None) == tmp_path / "gradle.properties"

    def test_blank_build_script(self, tmp_path):
        assert resolve_properties_location(tmp_path, "  ") == tmp_path / "gradle.properties"

    def test_build_script_subdirectory(self, tmp_path):
        expected = tmp_path / "sub" / "gradle.properties"

        assert resolve_properties_location(tmp_path, "sub") == expected
        assert resolve_properties_location(tmp_path, "sub" + os.sep) == expected


class TestFindGradleDefinition:
    def test_finds_gradle_task(self):
        gradle = TaskDefinition(GRADLE_KEY, {"a": "b"})

        assert find_gradle_definition([TaskDefinition(MAVEN_KEY), gradle]) is gradle

    def test_none_without_gradle_task(self):
        assert find_gradle_definition([TaskDefinition(MAVEN_KEY)]) is None


class TestGradleReleaseProvider:
    def test_release_transform(self, tmp_path, build_log):
        properties = tmp_path / "gradle.properties"
        properties.write_text("version=1.0-SNAPSHOT\napiVersion=3-SNAPSHOT\nname=w\n")
        coordinator = RecordingCoordinator()

        result = _provider(tmp_path, coordinator, build_log).transform_descriptor(
            CONF, release=True
        )

        assert result is True
        assert properties.read_text() == "version=1.0\napiVersion=3\nname=w\n"
        assert coordinator.edited == [properties]
        assert coordinator.released == [properties]
        assert build_log == [
            f"Transforming: {properties.absolute()} to release"
        ]

    def test_next_development_transform(self, tmp_path, build_log):
        properties = tmp_path / "gradle.properties"
        properties.write_text("version=1.0\n")

        result = _provider(
            tmp_path, RecordingCoordinator(), build_log
        ).transform_descriptor(CONF, release=False)

        assert result is True
        assert properties.read_text() == "version=1.1-SNAPSHOT\n"
        assert build_log[0].endswith("to next development")

    def test_build_script_subdirectory(self, tmp_path, build_log):
        subdir = tmp_path / "app"
        subdir.mkdir()
        properties = subdir / "gradle.properties"
        properties.write_text("version=1.0-SNAPSHOT\n")
        conf = dict(CONF)
        conf[GRADLE_BUILD_SCRIPT_KEY] = "app"

        _provider(tmp_path, RecordingCoordinator(), build_log).transform_descriptor(
            conf, release=True
        )

        assert properties.read_text() == "version=1.0\n"

    def test_no_checkout_directory(self, build_log):
        coordinator = RecordingCoordinator()

        result = _provider(None, coordinator, build_log).transform_descriptor(
            CONF, release=True
        )

        assert result is False
        assert coordinator.edited == []

    def test_missing_properties_file(self, tmp_path, build_log):
        result = _provider(
            tmp_path, RecordingCoordinator(), build_log
        ).transform_descriptor(CONF, release=True)

        assert result is False

    def test_edit_failure_is_reported(self, tmp_path, build_log):
        (tmp_path / "gradle.properties").write_text("version=1.0-SNAPSHOT\n")

        result = _provider(
            tmp_path, FailingCoordinator(), build_log
        ).transform_descriptor(CONF, release=True)

        assert result is False
        assert any("cannot open" in line for line in build_log)

    def test_undecodable_file_is_reported(self, tmp_path, build_log):
        properties = tmp_path / "gradle.properties"
        content = b"version=1.0\ndescription=caf\xe9\n"
        properties.write_bytes(content)

        result = _provider(
            tmp_path, RecordingCoordinator(), build_log
        ).transform_descriptor({"release-value-version": "2.0"}, release=True)

        assert result is False
        assert any(line.startswith("Failed to transform") for line in build_log)
        assert properties.read_bytes() == content

    def test_task_configuration(self, tmp_path, build_log):
        provider = _provider(tmp_path, RecordingCoordinator(), build_log)
        definitions = [TaskDefinition(GRADLE_KEY, {"k": "v"})]

        assert provider.get_task_configuration(definitions) == {"k": "v"}
        assert provider.get_task_configuration([]) == {}


class TestLocalEditCoordinator:
    def test_makes_read_only_file_writable(self, tmp_path):
        target = tmp_path / "gradle.properties"
        target.write_text("version=1.0\n")
        target.chmod(stat.S_IRUSR)
        coordinator = LocalEditCoordinator()

        with coordinator.edit(target) as path:
            assert path == target.resolve()
            assert os.stat(path).st_mode & stat.S_IWUSR

    def test_lock_released_after_exception(self, tmp_path):
        target = tmp_path / "gradle.properties"
        target.write_text("version=1.0\n")
        coordinator = LocalEditCoordinator()

        with pytest.raises(ValueError):
            with coordinator.edit(target):
                raise ValueError("transform failed")

        assert coordinator._locks == {}
        with coordinator.edit(target) as path:
            assert coordinator._locks[path].lock.locked()

    def test_locks_dropped_after_edits(self, tmp_path):
        coordinator = LocalEditCoordinator()
        first = tmp_path / "gradle.properties"
        second = tmp_path / "app" / "gradle.properties"

        with coordinator.edit(first):
            with coordinator.edit(second):
                assert set(coordinator._locks) == {first.resolve(), second.resolve()}
            assert set(coordinator._locks) == {first.resolve()}

        assert coordinator._locks == {}

    def test_waiting_edit_keeps_lock_entry(self, tmp_path):
        target = tmp_path / "gradle.properties"
        coordinator = LocalEditCoordinator()
        order = []

        def second_edit():
            with coordinator.edit(target):
                order.append("second")

        with coordinator.edit(target):
            waiter = threading.Thread(target=second_edit)
            waiter.start()
            while coordinator._locks[target.resolve()].users < 2:
                time.sleep(0.01)
            order.append("first")
        waiter.join(timeout=5)

        assert order == ["first", "second"]
        assert coordinator._locks == {}

    def test_provider_with_local_coordinator(self, tmp_path, build_log):
        properties = tmp_path / "gradle.properties"
        properties.write_text("version=1.0-SNAPSHOT\n")

        result = _provider(
            tmp_path, LocalEditCoordinator(), build_log
        ).transform_descriptor(CONF, release=True)

        assert result is True
        assert properties.read_text() == "version=1.0\n"
