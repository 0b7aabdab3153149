"""Observable state of the meal analysis pipeline."""

import enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from nutrisync.models.analysis import AnalysisTool


class PipelineStage(str, enum.Enum):
    IDLE = "idle"
    INITIAL_ANALYSIS = "initial_analysis"
    ESCALATING = "escalating"
    COMPLETE = "complete"
    FAILED = "failed"


class PipelineState(BaseModel):
    model_config = ConfigDict(frozen=True)

    stage: PipelineStage = PipelineStage.IDLE
    current_tool: Optional[AnalysisTool] = None
    progress_message: str = ""
    is_active: bool = False
    request_id: Optional[str] = None
