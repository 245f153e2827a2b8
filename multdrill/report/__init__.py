from .client import ReportClient, ReportServiceError
from .service import ReportService, ReportState, StructuredReport
from .transcript import build_prompt, format_for_prompt

__all__ = [
    "ReportClient",
    "ReportServiceError",
    "ReportService",
    "ReportState",
    "StructuredReport",
    "build_prompt",
    "format_for_prompt",
]
