# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Install Planner / Executor

Turns a selection request into an ordered, duplicate-free list of workflow
names and installs each one into a local directory:

    resolve_selection()   --all > --category > explicit names, deduplicated
    execute_install()     one InstallResult per name, in selection order

Existing files are overwritten without prompting. A failure on one workflow
is reported as a result and never stops the others; only an unusable
target directory aborts the batch. Concurrent installs into the same
directory are not coordinated (last writer wins).
"""

import asyncio
import logging
import os
import stat
import tempfile
from pathlib import Path
from typing import Callable, Iterable, List, Optional, Union

import httpx

from agworkflows.core.exceptions import (
    DownloadFailed,
    EmptySelection,
    InstallTargetError,
    WriteFailed,
)
from agworkflows.core.http import describe_http_error, describe_status, open_client
from agworkflows.core.models import (
    InstallResult,
    Registry,
    SelectionRequest,
    WorkflowEntry,
)

logger = logging.getLogger("agw.installer")

WORKFLOW_SUFFIX = ".md"

ResultCallback = Callable[[InstallResult], None]


def dedupe(names: Iterable[str]) -> List[str]:
    """Drop repeated names, keeping first-occurrence order"""
    return list(dict.fromkeys(names))


def workflow_filename(name: str) -> str:
    """
    File name for a workflow inside the target directory.

    Raises:
        WriteFailed: ``name`` would escape the target directory
    """
    if not name or name in (".", "..") or Path(name).name != name or "\\" in name:
        raise WriteFailed(f"Unsafe workflow name: {name!r}", workflow=name)
    return f"{name}{WORKFLOW_SUFFIX}"


def _target_mode(path: Path) -> int:
    """Mode the written file should end up with"""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def atomic_write_text(path: Path, content: str) -> None:
    """
    Replace ``path`` with ``content`` via a temp file in the same directory.

    An existing file keeps its permissions; a new one gets the umask default.
    """
    mode = _target_mode(path)
    temp_file = tempfile.NamedTemporaryFile(
        mode="w",
        encoding="utf-8",
        newline="",
        dir=path.parent,
        prefix=f".{path.name}.",
        suffix=".tmp",
        delete=False,
    )
    temp_path = Path(temp_file.name)

    try:
        with temp_file:
            temp_file.write(content)
        os.chmod(temp_path, mode)
        os.replace(temp_path, path)
    finally:
        if temp_path.exists():
            temp_path.unlink(missing_ok=True)


class InstallPlanner:
    """Resolve selections and install workflows from ``base_url``"""

    def __init__(
        self,
        base_url: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        verify_ssl: bool = True,
        max_concurrency: int = 1,
    ):
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")

        self.base_url = base_url.rstrip("/")
        self.client = client
        self.timeout = timeout
        self.verify_ssl = verify_ssl
        self.max_concurrency = max_concurrency

    def workflow_url(self, name: str, entry: WorkflowEntry) -> str:
        return f"{self.base_url}/workflows/{entry.category}/{name}{WORKFLOW_SUFFIX}"

    # -------------------------------------------------------------------------
    # Selection
    # -------------------------------------------------------------------------

    @staticmethod
    def resolve_selection(request: SelectionRequest, registry: Registry) -> List[str]:
        """
        Compute the names to install.

        Exactly one rule applies, in priority order:
            1. all_flag         -> every registry key
            2. category_filter  -> keys whose category equals the filter
            3. otherwise        -> the explicit names as given

        Raises:
            EmptySelection: Nothing was selected
        """
        if request.all_flag:
            names = registry.names()
        elif request.category_filter is not None:
            names = [
                name
                for name, entry in registry.workflows.items()
                if entry.category == request.category_filter
            ]
        else:
            names = list(request.explicit_names)

        selection = dedupe(names)
        if not selection:
            raise EmptySelection(
                "No workflows specified.",
                details={"category": request.category_filter}
                if request.category_filter is not None
                else None,
            )

        logger.debug(f"Resolved selection: {selection}")
        return selection

    # -------------------------------------------------------------------------
    # Execution
    # -------------------------------------------------------------------------

    async def execute_install(
        self,
        selection: List[str],
        registry: Registry,
        target_dir: Union[str, Path],
        on_result: Optional[ResultCallback] = None,
    ) -> List[InstallResult]:
        """
        Install every selected workflow into ``target_dir``.

        Args:
            selection: Names to install, in order
            registry: Registry the names are looked up in
            target_dir: Directory to write ``<name>.md`` files into
            on_result: Called with each result in selection order

        Returns:
            One InstallResult per name, in selection order

        Raises:
            InstallTargetError: target_dir cannot be created
        """
        target = Path(target_dir)
        try:
            target.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise InstallTargetError(
                f"Cannot create install directory {target}: {e.strerror or e}",
                path=str(target),
                cause=e,
            ) from e

        async with open_client(self.client, self.timeout, self.verify_ssl) as client:
            if self.max_concurrency == 1:
                results = []
                for name in selection:
                    result = await self._install_guarded(client, name, registry, target)
                    results.append(result)
                    if on_result:
                        on_result(result)
                return results

            semaphore = asyncio.Semaphore(self.max_concurrency)

            async def bounded(name: str) -> InstallResult:
                async with semaphore:
                    return await self._install_guarded(client, name, registry, target)

            results = list(await asyncio.gather(*(bounded(n) for n in selection)))

        if on_result:
            for result in results:
                on_result(result)
        return results

    async def _install_guarded(
        self,
        client: httpx.AsyncClient,
        name: str,
        registry: Registry,
        target: Path,
    ) -> InstallResult:
        """Install one workflow; an unexpected error becomes its result"""
        try:
            return await self._install_one(client, name, registry, target)
        except Exception as e:
            logger.exception(f"Unexpected error installing '{name}'")
            return InstallResult.download_failed(
                name, f"Unexpected error: {str(e) or type(e).__name__}"
            )

    async def _install_one(
        self,
        client: httpx.AsyncClient,
        name: str,
        registry: Registry,
        target: Path,
    ) -> InstallResult:
        entry = registry.lookup(name)
        if entry is None:
            logger.info(f"Workflow '{name}' not found in registry")
            return InstallResult.not_found(name)

        try:
            path = target / workflow_filename(name)
        except WriteFailed as e:
            logger.info(e.message)
            return InstallResult.write_failed(name, e.message)

        existed = path.exists()

        try:
            content = await self._download(client, name, entry)
        except DownloadFailed as e:
            logger.info(f"Download of '{name}' failed: {e.message}")
            return InstallResult.download_failed(name, e.message)

        try:
            await asyncio.to_thread(atomic_write_text, path, content)
        except OSError as e:
            error = WriteFailed(
                f"Cannot write {path}: {e.strerror or e}",
                workflow=name,
                path=str(path),
                cause=e,
            )
            logger.info(error.message)
            return InstallResult.write_failed(name, error.message, path=path)

        logger.info(f"{'Overwrote' if existed else 'Installed'} {name} -> {path}")
        if existed:
            return InstallResult.overwritten(name, entry.description, path)
        return InstallResult.installed(name, entry.description, path)

    async def _download(
        self, client: httpx.AsyncClient, name: str, entry: WorkflowEntry
    ) -> str:
        url = self.workflow_url(name, entry)
        logger.debug(f"Downloading {name} from {url}")

        try:
            response = await client.get(url)
        except httpx.HTTPError as e:
            raise DownloadFailed(
                describe_http_error(e), workflow=name, url=url, cause=e
            ) from e

        if not response.is_success:
            raise DownloadFailed(
                describe_status(response),
                workflow=name,
                url=url,
                status_code=response.status_code,
            )

        return response.text
