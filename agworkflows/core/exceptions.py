# Copyright 2025 Ilya Makarov
#
# Licensed under the Business Source License 1.1
# Change Date: 2028-11-05
# Change License: Apache License 2.0

"""
Antigravity Workflows Exception Hierarchy

Exception Hierarchy:
    AGWError (base)
    ├── ConfigError
    ├── RegistryError
    │   ├── RegistryUnavailable
    │   └── RegistryMalformed
    ├── SelectionError
    │   └── EmptySelection
    └── InstallError
        ├── InstallTargetError
        ├── DownloadFailed
        └── WriteFailed

Registry and target-directory errors abort a command. DownloadFailed and
WriteFailed are raised per workflow and turned into install results by the
planner.
"""

import asyncio
import inspect
import time
from functools import wraps
from typing import Any, Dict, Optional

# ============================================================================
# Base Exception
# ============================================================================


class AGWError(Exception):
    """Base exception for all antigravity-workflows errors"""

    def __init__(
        self,
        message: str,
        details: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        self.cause = cause

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/serialization"""
        result = {
            "type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }

        if self.cause:
            result["cause"] = {
                "type": self.cause.__class__.__name__,
                "message": str(self.cause),
            }

        return result

    def __str__(self):
        base = self.message
        if self.details:
            base += f" | Details: {self.details}"
        if self.cause:
            base += f" | Caused by: {self.cause}"
        return base


# ============================================================================
# Configuration Errors
# ============================================================================


class ConfigError(AGWError):
    """Configuration-related errors"""


# ============================================================================
# Registry Errors
# ============================================================================


class RegistryError(AGWError):
    """The registry index could not be obtained"""

    def __init__(self, message: str, url: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.url = url

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["url"] = self.url
        return result


class RegistryUnavailable(RegistryError):
    """Transport failure or non-success status while fetching the registry"""

    def __init__(self, message: str, status_code: Optional[int] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["status_code"] = self.status_code
        return result


class RegistryMalformed(RegistryError):
    """Registry payload is not JSON or does not have the registry shape"""


# ============================================================================
# Selection Errors
# ============================================================================


class SelectionError(AGWError):
    """Selection criteria could not be resolved"""


class EmptySelection(SelectionError):
    """No workflow names resolved from the selection request"""


# ============================================================================
# Install Errors
# ============================================================================


class InstallError(AGWError):
    """Install-related errors"""

    def __init__(self, message: str, workflow: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.workflow = workflow

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["workflow"] = self.workflow
        return result


class InstallTargetError(InstallError):
    """Target directory cannot be created or used"""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.path = path

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["path"] = self.path
        return result


class DownloadFailed(InstallError):
    """Workflow content could not be fetched"""

    def __init__(
        self,
        message: str,
        url: Optional[str] = None,
        status_code: Optional[int] = None,
        **kwargs,
    ):
        super().__init__(message, **kwargs)
        self.url = url
        self.status_code = status_code

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result.update(
            {
                "url": self.url,
                "status_code": self.status_code,
            }
        )
        return result


class WriteFailed(InstallError):
    """Workflow content could not be written to the target directory"""

    def __init__(self, message: str, path: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.path = path

    def to_dict(self) -> Dict[str, Any]:
        result = super().to_dict()
        result["path"] = self.path
        return result


# ============================================================================
# Retry Decorator with Error Handling
# ============================================================================


def retry_on_error(
    max_retries: int = 3,
    delay_ms: int = 1000,
    backoff: float = 2.0,
    exceptions: tuple = (Exception,),
):
    """
    Retry decorator with exponential backoff

    Args:
        max_retries: Maximum number of retries (0 = single attempt)
        delay_ms: Initial delay in milliseconds
        backoff: Backoff multiplier
        exceptions: Tuple of exceptions to catch

    Usage:
        @retry_on_error(max_retries=3, delay_ms=1000)
        async def my_function():
            ...
    """

    def decorator(func):
        @wraps(func)
        async def async_wrapper(*args, **kwargs):
            delay = delay_ms / 1000

            for attempt in range(max_retries + 1):
                try:
                    return await func(*args, **kwargs)
                except exceptions:
                    if attempt >= max_retries:
                        raise
                    await asyncio.sleep(delay)
                    delay *= backoff

        @wraps(func)
        def sync_wrapper(*args, **kwargs):
            delay = delay_ms / 1000

            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except exceptions:
                    if attempt >= max_retries:
                        raise
                    time.sleep(delay)
                    delay *= backoff

        if inspect.iscoroutinefunction(func):
            return async_wrapper
        return sync_wrapper

    return decorator
