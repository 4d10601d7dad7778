# core/config.py
from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field
from typing import Optional


class Settings(BaseSettings):
    """
    Centralized application configuration.
    Grouped logically for readability.
    """

    # ------------------------------------------------------------
    # Project / Runtime
    # ------------------------------------------------------------
    PROJECT_NAME: str = "mediaflow"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"
    LOG_FILE: Optional[str] = Field(
        default=None,
        description="Also write the run log to this file when set"
    )

    # ------------------------------------------------------------
    # AWS Core
    # ------------------------------------------------------------
    AWS_REGION: str = "us-east-1"
    AWS_ACCESS_KEY_ID: Optional[str] = None
    AWS_SECRET_ACCESS_KEY: Optional[str] = None
    AWS_SESSION_TOKEN: Optional[str] = None
    AWS_CONNECT_TIMEOUT: int = 60
    AWS_READ_TIMEOUT: int = 300
    AWS_MAX_ATTEMPTS: int = 3

    # ------------------------------------------------------------
    # Scratch directories
    # ------------------------------------------------------------

    """
    Relative to the working directory. Their existence blocks the next run,
    so each must be removed (or replaced explicitly) between runs.
    """
    DOWNLOAD_DIR: str = "read_images"
    ARTIFACT_DIR: str = "face_details_images"
    CELEBRITY_DOWNLOAD_DIR: str = "DownloadedImages"
    STAGING_DIR: str = "modified"
    TRANSCRIBE_OUTPUT_DIR: str = "TranscribeOutputs"

    # ------------------------------------------------------------
    # Image normalization / annotation
    # ------------------------------------------------------------
    TARGET_IMAGE_WIDTH: int = 800
    TARGET_IMAGE_HEIGHT: int = 600
    COMPRESSION_QUALITY: int = Field(
        default=70,
        ge=1,
        le=95,
        description="JPEG quality used when compressing annotated images"
    )
    ANNOTATION_FONT_PATH: Optional[str] = Field(
        default=None,
        description="TrueType font for annotation labels; Pillow's default font when unset"
    )
    ANNOTATION_FONT_SIZE: int = 30
    ANNOTATION_LINE_SPACING: int = 50

    # ------------------------------------------------------------
    # Batch processing
    # ------------------------------------------------------------
    BATCH_MAX_WORKERS: int = Field(
        default=1,
        ge=1,
        description="Worker threads for the per-object loop (1 = sequential)"
    )

    # ------------------------------------------------------------
    # Reports
    # ------------------------------------------------------------
    REPORT_PREVIEW_LIMIT: int = Field(
        default=3,
        ge=0,
        description="Records shown on the console before pointing at the saved report"
    )
    FACE_REPORT_TEXT: str = "Face_details.txt"
    FACE_REPORT_TABLE: str = "face_details.xlsx"
    TEXT_REPORT_TEXT: str = "Text_details.txt"
    TEXT_REPORT_TABLE: str = "text_details.xlsx"
    VIDEO_FACE_REPORT_TEXT: str = "face_detection_results.txt"
    VIDEO_FACE_REPORT_TABLE: str = "face_detection_results.xlsx"
    VIDEO_TEXT_REPORT_TEXT: str = "text_detection_results.txt"
    VIDEO_TEXT_REPORT_TABLE: str = "text_detection_results.xlsx"
    VOICE_REPORT_TEXT: str = "voices_info.txt"
    VOICE_REPORT_TABLE: str = "voices_info.xlsx"
    CELEBRITY_REPORT_TEXT: str = "celebrity_details.txt"
    CELEBRITY_REPORT_TABLE: str = "celebrity_details.xlsx"
    AUDIO_URI_FILE: str = "audio_uri.txt"
    TRANSCRIPT_FILE: str = "transcript.txt"

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


settings = Settings()
