"""Widget interaction models - observational log entries."""

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, Field


class WidgetInteraction(BaseModel):
    """One recorded widget interaction. Never authoritative for trip state."""

    id: str = Field(default_factory=lambda: f"interaction-{uuid.uuid4().hex[:12]}")
    timestamp: datetime
    widget_type: str
    interaction_type: str
    data: dict[str, Any] = Field(default_factory=dict)
    summary: str = Field(..., description="Human-readable summary for assistant context")
