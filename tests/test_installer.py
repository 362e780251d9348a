# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""Tests for selection resolution and install execution"""

import os
import stat

import httpx
import pytest

from agworkflows.core import installer as installer_module
from agworkflows.core.exceptions import EmptySelection, InstallTargetError, WriteFailed
from agworkflows.core.installer import (
    InstallPlanner,
    atomic_write_text,
    dedupe,
    workflow_filename,
)
from agworkflows.core.models import (
    InstallResult,
    InstallStatus,
    Registry,
    SelectionRequest,
)

from conftest import BASE_URL, FakeRemote, asset_url

SINGLE = {"workflows": {"foo": {"description": "F", "category": "x", "tags": ["a"]}}}


@pytest.fixture
def single_registry() -> Registry:
    return Registry.model_validate(SINGLE)


@pytest.fixture
def umask_022():
    previous = os.umask(0o022)
    yield
    os.umask(previous)


@pytest.fixture
def single_remote() -> FakeRemote:
    return FakeRemote(SINGLE).add(asset_url("foo", "x"), text="fresh content\n")


# =============================================================================
# Selection
# =============================================================================


class TestResolveSelection:
    """Tests for InstallPlanner.resolve_selection"""

    def test_explicit_names(self, single_registry):
        """Scenario A: a single explicit name"""
        request = SelectionRequest(explicit_names=("foo",))
        assert InstallPlanner.resolve_selection(request, single_registry) == ["foo"]

    def test_explicit_names_deduplicated(self, single_registry):
        """Scenario B: repeated names collapse"""
        request = SelectionRequest(explicit_names=("foo", "foo"))
        assert InstallPlanner.resolve_selection(request, single_registry) == ["foo"]

    def test_first_occurrence_order(self, registry):
        request = SelectionRequest(
            explicit_names=("debug", "code-review", "debug", "missing", "code-review")
        )
        assert InstallPlanner.resolve_selection(request, registry) == [
            "debug",
            "code-review",
            "missing",
        ]

    def test_explicit_names_not_validated(self, registry):
        """Unknown names pass through and become NotFound at install time"""
        request = SelectionRequest(explicit_names=("bar",))
        assert InstallPlanner.resolve_selection(request, registry) == ["bar"]

    def test_category_filter(self):
        """Scenario D: only members of the category, in registry order"""
        registry = Registry.model_validate(
            {
                "workflows": {
                    "b": {"description": "B", "category": "x"},
                    "c": {"description": "C", "category": "y"},
                    "a": {"description": "A", "category": "x"},
                }
            }
        )
        request = SelectionRequest(category_filter="x")
        assert InstallPlanner.resolve_selection(request, registry) == ["b", "a"]

    def test_category_overrides_explicit_names(self, registry):
        request = SelectionRequest(explicit_names=("debug",), category_filter="git")
        assert InstallPlanner.resolve_selection(request, registry) == [
            "code-review",
            "commit-msg",
        ]

    def test_all_flag(self, registry):
        request = SelectionRequest(all_flag=True)
        assert InstallPlanner.resolve_selection(request, registry) == registry.names()

    def test_all_flag_ignores_other_fields(self, registry):
        request = SelectionRequest(
            explicit_names=("missing", "debug"), category_filter="git", all_flag=True
        )
        assert InstallPlanner.resolve_selection(request, registry) == [
            "code-review",
            "commit-msg",
            "unit-tests",
            "debug",
        ]

    def test_empty_explicit_names(self, registry):
        with pytest.raises(EmptySelection):
            InstallPlanner.resolve_selection(SelectionRequest(), registry)

    def test_category_without_members(self, registry):
        with pytest.raises(EmptySelection) as exc_info:
            InstallPlanner.resolve_selection(
                SelectionRequest(category_filter="docs"), registry
            )
        assert exc_info.value.details == {"category": "docs"}

    def test_all_flag_on_empty_registry(self):
        registry = Registry.model_validate({"workflows": {}})
        with pytest.raises(EmptySelection):
            InstallPlanner.resolve_selection(SelectionRequest(all_flag=True), registry)

    def test_dedupe(self):
        assert dedupe(["b", "a", "b", "c", "a"]) == ["b", "a", "c"]


# =============================================================================
# Execution
# =============================================================================


class TestExecuteInstall:
    """Tests for InstallPlanner.execute_install"""

    @pytest.mark.asyncio
    async def test_install_new_workflow(self, single_registry, single_remote, tmp_path):
        """Scenario A: absent target file, successful download"""
        target = tmp_path / "workflows"

        async with single_remote.client() as client:
            planner = InstallPlanner(BASE_URL, client=client)
            results = await planner.execute_install(["foo"], single_registry, target)

        assert results == [InstallResult.installed("foo", "F", target / "foo.md")]
        assert results[0].status is InstallStatus.INSTALLED
        assert (target / "foo.md").read_text(encoding="utf-8") == "fresh content\n"
        assert asset_url("foo", "x") in single_remote.requests

    @pytest.mark.asyncio
    async def test_not_found(self, single_registry, single_remote, tmp_path):
        """Scenario C: unknown name yields NotFound and writes nothing"""
        target = tmp_path / "workflows"

        async with single_remote.client() as client:
            planner = InstallPlanner(BASE_URL, client=client)
            results = await planner.execute_install(["bar"], single_registry, target)

        assert results == [InstallResult.not_found("bar")]
        assert list(target.iterdir()) == []
        assert single_remote.requests == []

    @pytest.mark.asyncio
    async def test_overwrite_existing(self, single_registry, single_remote, tmp_path):
        """Scenario E: existing file is fully replaced"""
        target = tmp_path / "workflows"
        target.mkdir()
        (target / "foo.md").write_text("old content that is much longer\n" * 10)

        async with single_remote.client() as client:
            planner = InstallPlanner(BASE_URL, client=client)
            results = await planner.execute_install(["foo"], single_registry, target)

        assert results[0].status is InstallStatus.OVERWRITTEN
        assert results[0].description == "F"
        assert (target / "foo.md").read_text(encoding="utf-8") == "fresh content\n"

    @pytest.mark.asyncio
    async def test_creates_nested_target_dir(self, single_registry, single_remote, tmp_path):
        target = tmp_path / "project" / ".agent" / "workflows"

        async with single_remote.client() as client:
            planner = InstallPlanner(BASE_URL, client=client)
            await planner.execute_install(["foo"], single_registry, str(target))

        assert (target / "foo.md").is_file()

    @pytest.mark.asyncio
    async def test_target_dir_is_a_file(self, single_registry, single_remote, tmp_path):
        """An unusable target directory aborts the whole batch"""
        target = tmp_path / "workflows"
        target.write_text("not a directory")

        async with single_remote.client() as client:
            planner = InstallPlanner(BASE_URL, client=client)
            with pytest.raises(InstallTargetError) as exc_info:
                await planner.execute_install(["foo"], single_registry, target)

        assert exc_info.value.path == str(target)
        assert single_remote.requests == []

    @pytest.mark.asyncio
    async def test_download_failure_does_not_abort(self, registry, remote, tmp_path):
        """One failed download is reported; the rest are still installed"""
        remote.add(asset_url("commit-msg", "git"), status=500, text="boom")

        async with remote.client() as client:
            planner = InstallPlanner(BASE_URL, client=client)
            results = await planner.execute_install(
                ["code-review", "commit-msg", "unit-tests"], registry, tmp_path
            )

        assert [r.name for r in results] == ["code-review", "commit-msg", "unit-tests"]
        assert [r.status for r in results] == [
            InstallStatus.INSTALLED,
            InstallStatus.DOWNLOAD_FAILED,
            InstallStatus.INSTALLED,
        ]
        assert "500" in results[1].reason
        assert not (tmp_path / "commit-msg.md").exists()
        assert (tmp_path / "unit-tests.md").exists()

    @pytest.mark.asyncio
    async def test_download_transport_error(self, registry, remote, tmp_path):
        remote.add(asset_url("debug", "misc"), error=httpx.ReadTimeout("timed out"))

        async with remote.client() as client:
            planner = InstallPlanner(BASE_URL, client=client)
            results = await planner.execute_install(["debug"], registry, tmp_path)

        assert results == [InstallResult.download_failed("debug", "timed out")]

    @pytest.mark.asyncio
    async def test_one_result_per_name_in_order(self, registry, remote, tmp_path):
        names = ["unit-tests", "missing", "debug", "code-review"]

        async with remote.client() as client:
            planner = InstallPlanner(BASE_URL, client=client)
            results = await planner.execute_install(names, registry, tmp_path)

        assert [r.name for r in results] == names
        assert results[1].status is InstallStatus.NOT_FOUND

    @pytest.mark.asyncio
    async def test_on_result_callback(self, registry, remote, tmp_path):
        seen = []

        async with remote.client() as client:
            planner = InstallPlanner(BASE_URL, client=client)
            results = await planner.execute_install(
                ["debug", "missing"], registry, tmp_path, on_result=seen.append
            )

        assert seen == results

    @pytest.mark.asyncio
    async def test_write_failure_is_per_item(self, registry, remote, tmp_path):
        """A directory squatting on the target path fails only that workflow"""
        (tmp_path / "debug.md").mkdir()

        async with remote.client() as client:
            planner = InstallPlanner(BASE_URL, client=client)
            results = await planner.execute_install(
                ["debug", "unit-tests"], registry, tmp_path
            )

        assert results[0].status is InstallStatus.WRITE_FAILED
        assert results[0].path == tmp_path / "debug.md"
        assert results[1].status is InstallStatus.INSTALLED
        assert sorted(p.name for p in tmp_path.iterdir()) == ["debug.md", "unit-tests.md"]

    @pytest.mark.asyncio
    async def test_unsafe_name(self, tmp_path):
        """Registry names cannot escape the target directory"""
        registry = Registry.model_validate(
            {"workflows": {"../evil": {"description": "E", "category": "x"}}}
        )
        remote = FakeRemote({"workflows": {}})
        target = tmp_path / "workflows"

        async with remote.client() as client:
            planner = InstallPlanner(BASE_URL, client=client)
            results = await planner.execute_install(["../evil"], registry, target)

        assert results[0].status is InstallStatus.WRITE_FAILED
        assert not (tmp_path / "evil.md").exists()
        assert remote.requests == []

    @pytest.mark.asyncio
    async def test_concurrent_results_keep_selection_order(self, registry, remote, tmp_path):
        remote.add(asset_url("code-review", "git"), status=404, text="gone")
        names = ["code-review", "commit-msg", "missing", "unit-tests", "debug"]

        async with remote.client() as client:
            planner = InstallPlanner(BASE_URL, client=client, max_concurrency=3)
            seen = []
            results = await planner.execute_install(
                names, registry, tmp_path, on_result=seen.append
            )

        assert [r.name for r in results] == names
        assert seen == results
        assert [r.status for r in results] == [
            InstallStatus.DOWNLOAD_FAILED,
            InstallStatus.INSTALLED,
            InstallStatus.NOT_FOUND,
            InstallStatus.INSTALLED,
            InstallStatus.INSTALLED,
        ]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("max_concurrency", [1, 3])
    async def test_unexpected_error_is_per_item(
        self, registry, remote, tmp_path, monkeypatch, max_concurrency
    ):
        real_write = installer_module.atomic_write_text

        def flaky_write(path, content):
            if path.name == "commit-msg.md":
                raise RuntimeError("boom")
            real_write(path, content)

        monkeypatch.setattr(installer_module, "atomic_write_text", flaky_write)
        names = ["code-review", "commit-msg", "debug"]

        async with remote.client() as client:
            planner = InstallPlanner(BASE_URL, client=client, max_concurrency=max_concurrency)
            results = await planner.execute_install(names, registry, tmp_path)

        assert [r.name for r in results] == names
        assert [r.status for r in results] == [
            InstallStatus.INSTALLED,
            InstallStatus.DOWNLOAD_FAILED,
            InstallStatus.INSTALLED,
        ]
        assert results[1].reason == "Unexpected error: boom"
        assert (tmp_path / "debug.md").exists()

    @pytest.mark.asyncio
    async def test_owns_client_when_none_given(self, single_registry, tmp_path, monkeypatch):
        """Without an injected client the planner opens its own"""
        remote = FakeRemote(SINGLE)

        def fake_create_client(timeout=None, verify_ssl=True):
            return remote.client()

        monkeypatch.setattr("agworkflows.core.http.create_client", fake_create_client)

        planner = InstallPlanner(BASE_URL)
        results = await planner.execute_install(["foo"], single_registry, tmp_path)

        assert results[0].ok


# =============================================================================
# Helpers
# =============================================================================


class TestHelpers:

    def test_workflow_url(self, registry):
        planner = InstallPlanner(BASE_URL + "/")
        assert (
            planner.workflow_url("unit-tests", registry.lookup("unit-tests"))
            == f"{BASE_URL}/workflows/testing/unit-tests.md"
        )

    def test_workflow_filename(self):
        assert workflow_filename("code-review") == "code-review.md"

    @pytest.mark.parametrize("name", ["", ".", "..", "a/b", "../x", "a\\b"])
    def test_workflow_filename_rejects_paths(self, name):
        with pytest.raises(WriteFailed):
            workflow_filename(name)

    def test_invalid_concurrency(self):
        with pytest.raises(ValueError):
            InstallPlanner(BASE_URL, max_concurrency=0)

    def test_atomic_write_leaves_no_temp_files(self, tmp_path):
        path = tmp_path / "foo.md"
        path.write_text("old")

        atomic_write_text(path, "new\r\nline\n")

        assert path.read_bytes() == b"new\r\nline\n"
        assert [p.name for p in tmp_path.iterdir()] == ["foo.md"]

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    @pytest.mark.asyncio
    async def test_installed_file_modes(self, registry, remote, tmp_path, umask_022):
        """New files get the umask default; overwritten files keep their mode"""
        existing = tmp_path / "debug.md"
        existing.write_text("old")
        existing.chmod(0o640)

        async with remote.client() as client:
            planner = InstallPlanner(BASE_URL, client=client)
            results = await planner.execute_install(["unit-tests", "debug"], registry, tmp_path)

        assert [r.status for r in results] == [InstallStatus.INSTALLED, InstallStatus.OVERWRITTEN]
        assert stat.S_IMODE((tmp_path / "unit-tests.md").stat().st_mode) == 0o644
        assert stat.S_IMODE(existing.stat().st_mode) == 0o640

    @pytest.mark.skipif(os.name == "nt", reason="POSIX permissions")
    def test_atomic_write_new_file_mode(self, tmp_path, umask_022):
        path = tmp_path / "fresh.md"

        atomic_write_text(path, "content")

        assert stat.S_IMODE(path.stat().st_mode) == 0o644
