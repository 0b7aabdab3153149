"""
Observable pipeline state.

The orchestrator is the single writer. Observers either register a
synchronous listener or iterate subscribe() for an async stream of every
state change. Overlapping runs are tracked by request id; the terminal
state is only published once the last of them finishes.
"""

import asyncio
import logging
from typing import AsyncIterator, Callable, Optional

from nutrisync.models.analysis import AnalysisTool
from nutrisync.models.pipeline_state import PipelineStage, PipelineState
from nutrisync.services.sse_publisher import SSEPublisher

logger = logging.getLogger(__name__)

StateListener = Callable[[PipelineState], None]


class PipelineStateChannel:
    def __init__(self, publisher: Optional[SSEPublisher] = None):
        self._state = PipelineState()
        self._listeners: list[StateListener] = []
        self._queues: set[asyncio.Queue] = set()
        self._runs: dict[Optional[str], PipelineState] = {}
        self.publisher = publisher

    @property
    def state(self) -> PipelineState:
        return self._state

    def publish(self, state: PipelineState) -> None:
        """Replace the current state and notify every observer."""
        self._state = state

        for listener in list(self._listeners):
            try:
                listener(state)
            except Exception:
                logger.exception("Pipeline state listener failed")

        for queue in self._queues:
            queue.put_nowait(state)

        if self.publisher is not None:
            self.publisher.publish_state(state)

    def start(self, request_id: Optional[str] = None) -> None:
        """Register a run. The idle reset is only published when no other run is in flight."""
        busy = bool(self._runs)
        self._runs[request_id] = PipelineState(request_id=request_id)
        if not busy:
            self.publish(self._runs[request_id])

    def enter(
        self,
        stage: PipelineStage,
        tool: AnalysisTool,
        request_id: Optional[str] = None,
    ) -> None:
        state = PipelineState(
            stage=stage,
            current_tool=tool,
            progress_message=tool.display_name,
            is_active=True,
            request_id=request_id,
        )
        if request_id in self._runs:
            # most recently updated run last
            self._runs.pop(request_id)
            self._runs[request_id] = state
        self.publish(state)

    def finish(
        self, stage: PipelineStage = PipelineStage.COMPLETE, request_id: Optional[str] = None
    ) -> None:
        """
        Terminal state: no tool, empty message, inactive.

        While other runs are still in flight the latest of their states is
        republished instead, so is_active stays true until the last run ends.
        """
        self._runs.pop(request_id, None)
        if self._runs:
            self.publish(next(reversed(self._runs.values())))
        else:
            self.publish(PipelineState(stage=stage, request_id=request_id))

    def add_listener(self, listener: StateListener) -> Callable[[], None]:
        """Register a synchronous observer. Returns a function that removes it."""
        self._listeners.append(listener)

        def remove():
            if listener in self._listeners:
                self._listeners.remove(listener)

        return remove

    async def subscribe(self) -> AsyncIterator[PipelineState]:
        """Yield the current state, then every later change, until cancelled."""
        queue: asyncio.Queue = asyncio.Queue()
        self._queues.add(queue)
        try:
            yield self._state
            while True:
                yield await queue.get()
        finally:
            self._queues.discard(queue)

    @property
    def active_runs(self) -> int:
        return len(self._runs)

    @property
    def subscriber_count(self) -> int:
        return len(self._queues)
