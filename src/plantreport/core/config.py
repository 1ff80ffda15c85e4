"""Configuration management for the Plant Report service.

This module provides centralized configuration management using Pydantic
Settings.  Configuration is loaded from environment variables with the
``PLANTREPORT_`` prefix, falling back to a ``.env`` file and finally to the
defaults defined on :class:`PlantReportConfig`.

Environment Variable Loading
-----------------------------
Configuration values are loaded in the following priority order:

1. Environment variables (``PLANTREPORT_*`` prefix, or the short legacy
   names ``MONGODB_URI``, ``GEMINI_API_KEY`` and ``PORT``)
2. ``.env`` file in the working directory
3. Default values defined in PlantReportConfig

Example .env file::

    PLANTREPORT_MONGODB_URI=mongodb://localhost:27017/plant_analysis
    PLANTREPORT_GEMINI_API_KEY=your-key
    PLANTREPORT_SERVER_PORT=5000

Every value is read once, when the global ``config`` instance is created at
import time.  The Gemini API key is not validated here: a
missing key only surfaces when the first analysis call fails.
"""

from pathlib import Path

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_ANALYSIS_PROMPT = (
    "Analyze this plant image and provide detailed analysis of its species, health, "
    "characteristics, care instructions, and interesting facts. Provide plain text only."
)


class PlantReportConfig(BaseSettings):
    """Main configuration for the Plant Report service.

    Attributes
    ----------
    Storage:
        mongodb_uri : str
            MongoDB connection string for the GridFS object store
        mongodb_database : str
            Database used when the connection string does not name one
        gridfs_bucket : str
            GridFS bucket name holding uploaded images
        mongodb_connect_timeout_ms : int
            Server selection timeout for the startup ping

    Analysis:
        gemini_api_key : str
            Google Gemini API key (empty by default, never validated)
        gemini_model : str
            Gemini model used for image analysis
        analysis_prompt : str
            Instruction sent alongside every image
        analysis_timeout_seconds : float
            Deadline for a single Gemini call
        discard_failed_uploads : bool
            Delete the stored image when analysis fails

    Server:
        server_host : str
            Bind address for uvicorn
        server_port : int
            Listen port
        max_upload_bytes : int
            Largest accepted image upload
        static_dir : Path
            Optional frontend directory served at ``/``
        log_level : str
            Root logging level
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="PLANTREPORT_",
        case_sensitive=False,
        extra="ignore",
        populate_by_name=True,
    )

    # Storage settings
    mongodb_uri: str = Field(
        default="mongodb://localhost:27017/plant_analysis",
        description="MongoDB connection string",
        validation_alias=AliasChoices("PLANTREPORT_MONGODB_URI", "MONGODB_URI", "mongodb_uri"),
    )
    mongodb_database: str = Field(
        default="plant_analysis",
        description="Database name used when the URI does not include one",
    )
    gridfs_bucket: str = Field(
        default="uploads",
        description="GridFS bucket for uploaded images",
    )
    mongodb_connect_timeout_ms: int = Field(
        default=5000,
        description="Server selection timeout in milliseconds",
        ge=100,
    )

    # Analysis settings
    gemini_api_key: str = Field(
        default="",
        description="Google Gemini API key",
        validation_alias=AliasChoices(
            "PLANTREPORT_GEMINI_API_KEY", "GEMINI_API_KEY", "gemini_api_key"
        ),
    )
    gemini_model: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model used for analysis",
    )
    analysis_prompt: str = Field(
        default=DEFAULT_ANALYSIS_PROMPT,
        description="Instruction sent with every image",
    )
    analysis_timeout_seconds: float = Field(
        default=60.0,
        description="Deadline for a single analysis call",
        gt=0,
    )
    discard_failed_uploads: bool = Field(
        default=False,
        description="Delete the stored image when analysis fails",
    )

    # Server settings
    server_host: str = Field(
        default="0.0.0.0",
        description="Server bind address",
    )
    server_port: int = Field(
        default=5000,
        description="Server port",
        ge=1,
        le=65535,
        validation_alias=AliasChoices("PLANTREPORT_SERVER_PORT", "PORT", "server_port"),
    )
    max_upload_bytes: int = Field(
        default=20 * 1024 * 1024,
        description="Maximum accepted upload size in bytes",
        ge=1,
    )
    static_dir: Path = Field(
        default=Path("public"),
        description="Frontend directory served at / when it exists",
    )
    log_level: str = Field(
        default="INFO",
        description="Logging level",
    )


# Global configuration instance, loaded once at import time.
config = PlantReportConfig()
