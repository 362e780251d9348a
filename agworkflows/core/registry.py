# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Workflow Registry Resolver

Fetches the remote registry index and validates it into a
:class:`~agworkflows.core.models.Registry`. Every command fetches the
index once; nothing is cached between invocations and no retry happens
here (see ``retry_on_error`` for caller-level retries).

Registry document::

    {
      "workflows":  {"<name>": {"description": str, "category": str, "tags": [str]}},
      "categories": {"<key>": {"name": str, "emoji": str}}      # optional
    }
"""

import logging
from typing import Any, Optional

import httpx
from pydantic import ValidationError

from agworkflows.core.config import DEFAULT_REGISTRY_PATH
from agworkflows.core.exceptions import RegistryMalformed, RegistryUnavailable
from agworkflows.core.http import describe_http_error, describe_status, open_client
from agworkflows.core.models import Registry

logger = logging.getLogger("agw.registry")


class RegistryResolver:
    """Fetch and parse the registry index published under ``base_url``"""

    def __init__(
        self,
        base_url: str,
        registry_path: str = DEFAULT_REGISTRY_PATH,
        client: Optional[httpx.AsyncClient] = None,
        timeout: Optional[float] = None,
        verify_ssl: bool = True,
    ):
        self.base_url = base_url.rstrip("/")
        self.registry_path = registry_path.lstrip("/")
        self.client = client
        self.timeout = timeout
        self.verify_ssl = verify_ssl

    @property
    def registry_url(self) -> str:
        return f"{self.base_url}/{self.registry_path}"

    async def fetch(self) -> Registry:
        """
        Fetch the registry index.

        Returns:
            Parsed Registry

        Raises:
            RegistryUnavailable: Transport failure or non-success status
            RegistryMalformed: Payload is not a valid registry document
        """
        url = self.registry_url
        logger.debug(f"Fetching registry from {url}")

        async with open_client(self.client, self.timeout, self.verify_ssl) as client:
            try:
                response = await client.get(url)
            except httpx.HTTPError as e:
                raise RegistryUnavailable(
                    f"Failed to fetch registry: {describe_http_error(e)}",
                    url=url,
                    cause=e,
                ) from e

            if not response.is_success:
                raise RegistryUnavailable(
                    f"Failed to fetch registry: {describe_status(response)}",
                    url=url,
                    status_code=response.status_code,
                )

            try:
                payload = response.json()
            except ValueError as e:
                raise RegistryMalformed(
                    "Registry is not valid JSON", url=url, cause=e
                ) from e

        registry = parse_registry(payload, url=url)
        logger.info(
            f"Loaded registry with {len(registry)} workflows "
            f"and {len(registry.categories)} categories"
        )
        return registry


def parse_registry(payload: Any, url: Optional[str] = None) -> Registry:
    """
    Validate a decoded registry document.

    Raises:
        RegistryMalformed: Missing ``workflows`` map or wrong field types
    """
    if not isinstance(payload, dict) or not isinstance(payload.get("workflows"), dict):
        raise RegistryMalformed("Registry is missing the 'workflows' map", url=url)

    try:
        return Registry.model_validate(payload)
    except ValidationError as e:
        problems = [
            f"{'.'.join(str(part) for part in err['loc'])}: {err['msg']}"
            for err in e.errors()
        ]
        raise RegistryMalformed(
            f"Registry has {len(problems)} invalid field(s)",
            url=url,
            details={"errors": problems},
            cause=e,
        ) from e
