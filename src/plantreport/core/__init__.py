"""Core collaborators of the Plant Report service.

Modules
-------
config
    Pydantic Settings configuration and the global ``config`` instance.
errors
    Error taxonomy with HTTP status codes.
object_store
    GridFS-backed binary object store.
analysis
    Gemini image analysis client.
report
    reportlab PDF report renderer.
data_url
    Base64 data URL helpers.
"""

from plantreport.core.analysis import AnalysisClient, GeminiAnalysisClient
from plantreport.core.config import PlantReportConfig, config
from plantreport.core.object_store import GridFSObjectStore, ObjectStore, StoredFile
from plantreport.core.report import ReportRenderer

__all__ = [
    "AnalysisClient",
    "GeminiAnalysisClient",
    "GridFSObjectStore",
    "ObjectStore",
    "PlantReportConfig",
    "ReportRenderer",
    "StoredFile",
    "config",
]
