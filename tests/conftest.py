# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""Shared fixtures: an in-memory remote registry served through httpx.MockTransport"""

import copy
import logging
import os
from typing import Any, Dict, List, Optional

import httpx
import pytest

from agworkflows.core.models import Registry

BASE_URL = "https://registry.test/main"

REGISTRY: Dict[str, Any] = {
    "workflows": {
        "code-review": {
            "description": "Review a pull request",
            "category": "git",
            "tags": ["review", "PR"],
        },
        "commit-msg": {
            "description": "Write a commit message",
            "category": "git",
            "tags": ["commit"],
        },
        "unit-tests": {
            "description": "Generate unit tests",
            "category": "testing",
            "tags": ["pytest", "coverage"],
        },
        "debug": {
            "description": "Debug a failing build",
            "category": "misc",
            "tags": [],
        },
    },
    "categories": {
        "git": {"name": "Git", "emoji": "🌿"},
        "testing": {"name": "Testing"},
    },
}


def asset_url(name: str, category: str) -> str:
    return f"{BASE_URL}/workflows/{category}/{name}.md"


class FakeRemote:
    """
    Routes GET requests to canned responses.

    A route holds a list of responses; each request consumes one until the
    last, which then repeats.
    """

    def __init__(self, registry: Optional[Dict[str, Any]] = None):
        self.routes: Dict[str, List[Any]] = {}
        self.requests: List[str] = []
        registry = copy.deepcopy(REGISTRY if registry is None else registry)
        self.add(f"{BASE_URL}/workflows/registry.json", json=registry)
        for name, entry in registry.get("workflows", {}).items():
            self.add(asset_url(name, entry["category"]), text=f"# {name}\n\nSteps for {name}.\n")

    def add(self, url: str, status: int = 200, text: Optional[str] = None,
            json: Any = None, error: Optional[Exception] = None):
        self.routes[url] = [(status, text, json, error)]
        return self

    def then(self, url: str, status: int = 200, text: Optional[str] = None,
             json: Any = None, error: Optional[Exception] = None):
        self.routes[url].append((status, text, json, error))
        return self

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)

        responses = self.routes.get(url)
        if not responses:
            return httpx.Response(404, text="Not Found")

        status, text, json, error = responses[0] if len(responses) == 1 else responses.pop(0)
        if error is not None:
            raise error
        if json is not None:
            return httpx.Response(status, json=json)
        return httpx.Response(status, text=text or "")

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def registry() -> Registry:
    return Registry.model_validate(copy.deepcopy(REGISTRY))


@pytest.fixture(autouse=True)
def isolated_env(tmp_path_factory, monkeypatch):
    """Keep config files, env vars and cwd of the developer out of tests"""
    root = tmp_path_factory.mktemp("env")
    home = root / "home"
    project = root / "project"
    home.mkdir()
    project.mkdir()

    monkeypatch.setenv("HOME", str(home))
    monkeypatch.chdir(project)
    for name in list(os.environ):
        if name.startswith("AGW_"):
            monkeypatch.delenv(name, raising=False)

    yield project

    agw_logger = logging.getLogger("agw")
    for handler in list(agw_logger.handlers):
        agw_logger.removeHandler(handler)
        handler.close()
