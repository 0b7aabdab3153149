"""
SSE streaming endpoint for real-time meal analysis progress.
"""
import asyncio
from typing import AsyncIterator

from fastapi import APIRouter, Depends
from sse_starlette.sse import EventSourceResponse

from nutrisync.api.dependencies import get_state_channel
from nutrisync.models.pipeline_state import PipelineStage
from nutrisync.services.pipeline_state import PipelineStateChannel

router = APIRouter(prefix="/analysis", tags=["analysis-sse"])

TERMINAL_STAGES = (PipelineStage.COMPLETE, PipelineStage.FAILED)


async def state_events(
    channel: PipelineStateChannel, follow: bool = True
) -> AsyncIterator[dict]:
    """
    SSE event dicts for every pipeline state change.

    With follow=False the stream ends after the first terminal state
    published after connecting.
    """
    first = True
    async for state in channel.subscribe():
        yield {
            "event": "state",
            "data": state.model_dump_json()
        }

        if not follow and not first and state.stage in TERMINAL_STAGES:
            break
        first = False


@router.get("/stream")
async def stream_pipeline_state(
    follow: bool = True,
    channel: PipelineStateChannel = Depends(get_state_channel),
):
    """
    Stream pipeline state via Server-Sent Events.

    Events:
    - state: {"stage": "...", "current_tool": "...", "progress_message": "...",
              "is_active": bool, "request_id": "..."}

    The first event is the current state at connection time.
    """
    async def event_generator():
        try:
            async for event in state_events(channel, follow=follow):
                yield event
        except asyncio.CancelledError:
            # Client disconnected
            pass

    return EventSourceResponse(event_generator())
