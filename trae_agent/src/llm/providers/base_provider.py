# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""Base provider interface for LLM interactions."""

import random
import asyncio
import logging

import httpx
import openai
import anthropic

from abc import ABC, abstractmethod
from typing import Any
from datetime import datetime

from ..base import Completion, TimingInfo
from ...config import ModelParameters
from ...types.llm_types import Message
from ...types.tool_types import ToolSchema
from ...types.error_types import (
    ProviderError,
    RetriableProviderError,
    FatalProviderError,
)

logger = logging.getLogger(__name__)

# Request timeout, conflict, rate limit. Any 5xx is retried as well.
RETRIABLE_STATUS_CODES = {408, 409, 429}

RETRIABLE_EXCEPTIONS = (
    openai.APITimeoutError,
    openai.APIConnectionError,
    anthropic.APITimeoutError,
    anthropic.APIConnectionError,
    httpx.TimeoutException,
    httpx.NetworkError,
    TimeoutError,
)


class BaseProvider(ABC):
    """Abstract base class for LLM providers.

    Subclasses only translate between our message types and the vendor API
    in `create_completion`; retries and error classification live here so
    that every provider honours the same policy.
    """

    def __init__(self, params: ModelParameters, provider: str):
        self.params = params
        self.provider = provider

    def provider_name(self) -> str:
        return self.provider

    @property
    def model(self) -> str:
        return self.params.model

    def retry_delay(self, attempt: int) -> float:
        """Exponential backoff with jitter, for the given 0-based attempt."""
        delay = self.params.retry_base_delay * (2**attempt) * (0.5 + 0.5 * random.random())
        return min(delay, self.params.retry_max_delay)

    def classify_error(self, error: Exception) -> ProviderError:
        """Sort a raw SDK exception into a retriable or a fatal error."""
        description = f"{type(error).__name__}: {error}"
        if isinstance(error, RETRIABLE_EXCEPTIONS):
            return RetriableProviderError(self.provider, description)

        status = getattr(error, "status_code", None)
        if status is None and isinstance(error, httpx.HTTPStatusError):
            status = error.response.status_code
        if isinstance(status, int) and (status in RETRIABLE_STATUS_CODES or status >= 500):
            return RetriableProviderError(self.provider, description)

        return FatalProviderError(self.provider, description)

    async def send_turn(
        self, history: list[Message], tools: list[ToolSchema] | None = None
    ) -> Completion:
        """Get the model's next turn for the given conversation.

        Retriable errors are retried up to `max_retries` times with exponential
        backoff; fatal errors are raised on the first occurrence.

        Raises:
            ProviderError: a fatal error, or a retriable one once retries are
                exhausted. `attempts` records how many requests were made.
        """
        attempt = 0
        while True:
            start_time = datetime.now()
            try:
                completion = await self.create_completion(history, tools or [])
            except ProviderError as e:
                error, cause = e, e
            except Exception as e:
                error, cause = self.classify_error(e), e
            else:
                end_time = datetime.now()
                completion.attempts = attempt + 1
                completion.timing = TimingInfo(
                    start_time=start_time,
                    end_time=end_time,
                    total_duration=end_time - start_time,
                )
                return completion

            attempt += 1
            error.attempts = attempt

            if not error.retriable:
                logger.error(f"Fatal error from {self.provider}: {error.message}")
                if error is cause:
                    raise error
                raise error from cause

            if attempt > self.params.max_retries:
                logger.error(
                    f"Giving up on {self.provider} after {attempt} attempts: {error.message}"
                )
                raise RetriableProviderError(
                    self.provider,
                    f"retries exhausted after {attempt} attempts; last error: {error.message}",
                    attempts=attempt,
                ) from cause

            delay = self.retry_delay(attempt - 1)
            logger.warning(
                f"{self.provider} request failed ({error.message}), retrying in "
                f"{delay:.2f} seconds (attempt {attempt}/{self.params.max_retries})"
            )
            await asyncio.sleep(delay)

    # Abstract methods --------------------------------------------------------

    @abstractmethod
    def _prepare_messages(self, messages: list[Message]) -> Any:
        """Maps our framework-specific message list into provider-specific messages

        Note that this might involve agglomerating content blocks, or splitting
        out into multiple messages.
        """
        pass

    @abstractmethod
    def tool_to_native(self, tool: ToolSchema) -> dict:
        """Converts a tool schema into this provider's native tool format."""
        pass

    @abstractmethod
    async def create_completion(
        self, messages: list[Message], tools: list[ToolSchema]
    ) -> Completion:
        """Make a single request, without retries."""
        pass
