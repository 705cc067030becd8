# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
"""
Exceptions raised across the agent, its tools and its providers.

Tool errors are always recovered into a ToolResult by the executor; provider
errors either get retried (RetriableProviderError) or end the session.
"""


class AgentError(Exception):
    """Base class for all errors raised by the agent."""


class ConfigError(AgentError):
    """The configuration could not be resolved."""


# Provider errors =============================================================


class ProviderError(AgentError):
    def __init__(self, provider: str, message: str, retriable: bool = False, attempts: int = 1):
        super().__init__(f"[{provider}] {message}")
        self.provider = provider
        self.message = message
        self.retriable = retriable
        self.attempts = attempts


class RetriableProviderError(ProviderError):
    """Timeouts, rate limits and server-side failures."""

    def __init__(self, provider: str, message: str, attempts: int = 1):
        super().__init__(provider, message, retriable=True, attempts=attempts)


class FatalProviderError(ProviderError):
    """Bad credentials, malformed requests and other non-retriable failures."""

    def __init__(self, provider: str, message: str, attempts: int = 1):
        super().__init__(provider, message, retriable=False, attempts=attempts)


# Tool errors =================================================================


class ToolError(AgentError):
    pass


class DuplicateToolError(ToolError):
    def __init__(self, name: str):
        super().__init__(f"A tool named '{name}' is already registered")
        self.name = name


class ToolNotFoundError(ToolError):
    def __init__(self, name: str, available: list[str]):
        super().__init__(
            f"Tool '{name}' not found. Available tools: {', '.join(available) or 'none'}"
        )
        self.name = name
        self.available = available


class ToolValidationError(ToolError):
    def __init__(self, name: str, detail: str):
        super().__init__(f"Invalid arguments for tool '{name}': {detail}")
        self.name = name
        self.detail = detail


class ToolExecutionError(ToolError):
    """Raised by a tool's run() to report a failure to the model."""


# Loop termination ============================================================


class StepLimitExceeded(AgentError):
    def __init__(self, max_steps: int):
        super().__init__(f"Reached the step limit of {max_steps} without completing the task")
        self.max_steps = max_steps


class PatchRequiredButAbsent(AgentError):
    def __init__(self, attempts: int):
        super().__init__(
            f"The task requires a non-empty patch but none was produced after {attempts} completion attempt(s)"
        )
        self.attempts = attempts
