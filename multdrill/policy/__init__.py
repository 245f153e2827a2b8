from .weakness import WeaknessReport, analyze_weaknesses

__all__ = ["WeaknessReport", "analyze_weaknesses"]
