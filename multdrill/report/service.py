from __future__ import annotations

"""Report lifecycle: idle -> loading -> success | error, retryable."""

from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ValidationError

from .client import ReportClient, ReportServiceError
from .transcript import build_prompt, format_for_prompt
from ..app.explain import trace as xtrace


class ReportState(str, Enum):
    IDLE = "idle"
    LOADING = "loading"
    SUCCESS = "success"
    ERROR = "error"


class StructuredReport(BaseModel):
    resumen_general: str
    patron_errores: str
    plan_accion: str
    sugerencia_entrenamiento: str


class ReportService:
    """Turns the current session into a coaching report.

    ``analyze`` never raises: endpoint failures land in the ``error`` state
    with ``error`` set, and calling ``analyze`` again is the retry.
    """

    def __init__(
        self,
        client: ReportClient,
        *,
        structured: bool = False,
        on_state: Optional[Callable[[ReportState], None]] = None,
    ) -> None:
        self.client = client
        self.structured = structured
        self.on_state = on_state
        self.state = ReportState.IDLE
        self.text: Optional[str] = None
        self.report: Optional[StructuredReport] = None
        self.error: Optional[str] = None

    def _set(self, state: ReportState) -> None:
        self.state = state
        if self.on_state is not None:
            self.on_state(state)

    def analyze(self, store: Any) -> ReportState:
        """Report on the store's current session."""
        rows: List[Dict[str, Any]] = [r.model_dump() for r in store.session_rows]
        return self.analyze_rows(rows, store.get_session_stats())

    def analyze_rows(self, rows: Sequence[Mapping[str, Any]], stats: Mapping[str, Any]) -> ReportState:
        self.text = None
        self.report = None
        self.error = None
        self._set(ReportState.LOADING)

        prompt = build_prompt(format_for_prompt(rows, stats), structured=self.structured)
        try:
            text = self.client.generate(prompt)
        except ReportServiceError as e:
            self.error = str(e)
            xtrace("report_error", {"error": self.error})
            self._set(ReportState.ERROR)
            return self.state

        self.text = text
        if self.structured:
            obj = ReportClient._extract_json(text)
            if obj is not None:
                try:
                    self.report = StructuredReport.model_validate(obj)
                except ValidationError:
                    # Missing fields: keep the prose reply.
                    self.report = None
        xtrace("report_ready", {"chars": len(text), "structured": self.report is not None})
        self._set(ReportState.SUCCESS)
        return self.state

    def reset(self) -> None:
        self.text = None
        self.report = None
        self.error = None
        self._set(ReportState.IDLE)
