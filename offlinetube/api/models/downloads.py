"""
Download executor Pydantic models.

Field names follow the executor's JSON contract (camelCase).
"""

from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class StartDownloadRequest(BaseModel):
    """
    Request to launch one download.

    Fields are optional here so that missing values reach the executor's own
    validation and produce its 400 message.
    """
    model_config = ConfigDict(populate_by_name=True)

    videoId: Optional[str] = None
    videoTitle: Optional[str] = None
    quality: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("quality", "selectedQuality")
    )


class StartDownloadResponse(BaseModel):
    success: bool = True
    message: str = "Download initiated successfully."
    videoId: str
    downloadUrl: str
    filename: str


class DownloadStatusResponse(BaseModel):
    success: bool = True
    filename: str
    state: str
    progress: float = 0.0
    message: Optional[str] = None


class ZipRequest(BaseModel):
    filenames: Any = None
