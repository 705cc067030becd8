# Self-Improving Coding Agent
# Copyright (c) 2025 Maxime Robeyns
#
# This source code is licensed under the MIT license found in the
# LICENSE file in the root directory of this source tree.
import time
import asyncio
import logging

from .base_tool import ToolRegistry
from ..events import EventBus
from ..types.llm_types import ToolCallContent
from ..types.tool_types import ToolResult, ToolContext, ToolErrorKind
from ..types.event_types import EventType, Event
from ..types.error_types import (
    ToolNotFoundError,
    ToolValidationError,
    ToolExecutionError,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


class ToolExecutor:
    """Runs the tool calls of one assistant turn.

    Results always come back in request order, one per request. No failure
    inside a tool (unknown name, bad arguments, exception) escapes as an
    exception; each is turned into an error ToolResult for the model.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        context: ToolContext,
        parallel: bool = False,
        event_bus: EventBus | None = None,
        publisher_id: str = "agent",
    ):
        self.registry = registry
        self.context = context
        self.parallel = parallel
        self.event_bus = event_bus
        self.publisher_id = publisher_id

    async def execute(
        self, calls: list[ToolCallContent], step: int | None = None
    ) -> list[ToolResult]:
        if not calls:
            return []

        if not self.parallel or len(calls) == 1:
            return [await self.execute_one(call, step) for call in calls]

        # One pre-sized slot per request; completion order does not matter
        results: list[ToolResult | None] = [None] * len(calls)

        async def run_slot(index: int, call: ToolCallContent) -> None:
            results[index] = await self.execute_one(call, step)

        await asyncio.gather(*(run_slot(i, c) for i, c in enumerate(calls)))
        return [r for r in results if r is not None]

    async def execute_one(
        self, call: ToolCallContent, step: int | None = None
    ) -> ToolResult:
        await self._publish(
            Event(
                type=EventType.TOOL_CALL,
                content=str(call),
                metadata=dict(
                    call_id=call.call_id,
                    name=call.tool_name,
                    args=call.tool_args,
                    step=step,
                ),
            )
        )

        start_time = time.time()
        try:
            if call.parse_error:
                raise ToolValidationError(call.tool_name, call.parse_error)
            tool_cls = self.registry.lookup(call.tool_name)
            tool = tool_cls.from_args(self.context, call.tool_args)
            result = await tool.run()

        except ToolNotFoundError as e:
            logger.info(f"Unknown tool requested: {call.tool_name}")
            result = ToolResult.failure(call.tool_name, str(e), ToolErrorKind.NOT_FOUND)
        except ToolValidationError as e:
            logger.info(f"Tool validation error: {e}")
            result = ToolResult.failure(call.tool_name, str(e), ToolErrorKind.VALIDATION)
        except ToolExecutionError as e:
            result = ToolResult.failure(call.tool_name, str(e), ToolErrorKind.EXECUTION)
        except Exception as e:
            logger.error(f"Error during tool execution: {str(e)}")
            result = ToolResult.failure(
                call.tool_name, f"Tool runtime error: {str(e)}", ToolErrorKind.EXECUTION
            )

        result.call_id = call.call_id
        result.duration = time.time() - start_time

        await self._publish(
            Event(
                type=EventType.TOOL_RESULT,
                content=str(result),
                metadata=dict(
                    call_id=call.call_id,
                    name=call.tool_name,
                    tool_result=result,
                    step=step,
                ),
            )
        )
        return result

    async def _publish(self, event: Event) -> None:
        if self.event_bus is not None:
            await self.event_bus.publish(event, self.publisher_id)
