from __future__ import annotations

"""Analytics configuration (chart hyperparameters) using Pydantic."""

from pydantic import BaseModel, Field


class AnalyticsConfig(BaseModel):
    """Hyperparameters for attempt-log charts.

    - smoothing_span: EWMA span in attempts (>1)
    - dpi: resolution of saved PNG files
    - min_attempts: cells with fewer attempts are left blank in the heatmap
    """

    smoothing_span: int = Field(10, gt=1)
    dpi: int = Field(150, gt=0)
    min_attempts: int = Field(1, ge=1)
