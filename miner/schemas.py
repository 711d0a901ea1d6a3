"""
Pydantic models for API request bodies.

Field aliases follow the camelCase JSON the front end sends; snake_case names
are accepted too.
"""
from __future__ import annotations

from typing import Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class RequestModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class UrlRequest(RequestModel):
    url: str = Field(min_length=1)


class MineRequest(UrlRequest):
    sources: Optional[Union[Dict[str, bool], List[str]]] = None


class SoraRequest(RequestModel):
    url: Optional[str] = None
    action: Optional[Literal["extract", "download"]] = None
    video_url: Optional[str] = Field(default=None, alias="videoUrl")

    @model_validator(mode="after")
    def _check_target(self) -> "SoraRequest":
        if self.action == "download":
            if not self.video_url:
                raise ValueError("videoUrl is required for download")
        elif not self.url:
            raise ValueError("url is required")
        return self


class SeedanceCreateRequest(RequestModel):
    prompt: str = Field(min_length=1)
    aspect_ratio: str = Field(default="16:9", alias="aspectRatio")
    duration: int = Field(default=5, ge=1, le=30)
    mode: Literal["Fast", "Standard"] = "Fast"
    media_files: List[str] = Field(default_factory=list, alias="mediaFiles")


class SeedanceQueryRequest(RequestModel):
    task_id: str = Field(min_length=1, alias="taskId")


class VideoCaptionRequest(RequestModel):
    product_title: Optional[str] = Field(default=None, alias="productTitle")
    video_title: Optional[str] = Field(default=None, alias="videoTitle")
    platform: str = "pinterest"
    rewrite_title: bool = Field(default=False, alias="rewriteTitle")
    original_title: Optional[str] = Field(default=None, alias="originalTitle")
    rewrite_caption: bool = Field(default=False, alias="rewriteCaption")
    original_caption: Optional[str] = Field(default=None, alias="originalCaption")

    @field_validator("platform", mode="before")
    @classmethod
    def _lower_platform(cls, value: Optional[str]) -> str:
        return (value or "pinterest").strip().lower()

    @model_validator(mode="after")
    def _check_inputs(self) -> "VideoCaptionRequest":
        if self.rewrite_title and self.original_title:
            return self
        if self.rewrite_caption and self.original_caption:
            return self
        if not self.product_title:
            raise ValueError("productTitle is required")
        return self


class PinCaptionRequest(RequestModel):
    product_title: str = Field(min_length=1, alias="productTitle")
    scene_description: Optional[str] = Field(default=None, alias="sceneDescription")


class PinImageRequest(RequestModel):
    product_title: str = Field(min_length=1, alias="productTitle")
    image_url: Optional[str] = Field(default=None, alias="imageUrl")
    custom_prompt: Optional[str] = Field(default=None, alias="customPrompt")
    scene_index: Optional[int] = Field(default=None, alias="sceneIndex")


class PinterestCallbackRequest(RequestModel):
    code: str = Field(min_length=1)
    redirect_uri: Optional[str] = Field(default=None, alias="redirectUri")


class PinterestBoardsRequest(RequestModel):
    access_token: Optional[str] = Field(default=None, alias="accessToken")


class PinterestPinRequest(PinterestBoardsRequest):
    board_id: str = Field(min_length=1, alias="boardId")
    image_base64: str = Field(min_length=1, alias="imageBase64")
    title: Optional[str] = None
    description: Optional[str] = None
    link: Optional[str] = None
