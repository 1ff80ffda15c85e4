"""Plant Report - image analysis and PDF report service."""

__version__ = "0.1.0"

from plantreport.core.config import PlantReportConfig, config

__all__ = [
    "PlantReportConfig",
    "config",
]
