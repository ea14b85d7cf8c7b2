#!/usr/bin/env python
"""
Pydantic models for yt-dlp ``--dump-json`` probe output.

yt-dlp may print warnings before the JSON document, so the first balanced
JSON object is extracted from stdout before validation. API responses use
camelCase keys.
"""

from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError
from pydantic.alias_generators import to_camel

from ..errors import ParseError

_decoder = json.JSONDecoder()


def extract_json_object(text: str) -> Dict[str, Any]:
    """Return the first balanced JSON object embedded in ``text``."""
    start = text.find("{")
    while start != -1:
        try:
            value, _ = _decoder.raw_decode(text, start)
        except ValueError:
            value = None
        if isinstance(value, dict):
            return value
        start = text.find("{", start + 1)
    raise ParseError("No valid JSON found in yt-dlp output")


class _ApiModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class FormatInfo(_ApiModel):
    format_id: Optional[str] = None
    ext: Optional[str] = None
    quality: Optional[float] = None
    format_note: Optional[str] = None
    filesize: Optional[int] = None
    resolution: Optional[str] = None
    fps: Optional[float] = None
    vcodec: Optional[str] = None
    acodec: Optional[str] = None


class VideoMetadata(_ApiModel):
    title: Optional[str] = None
    description: Optional[str] = None
    duration: Optional[float] = None
    uploader: Optional[str] = None
    upload_date: Optional[str] = None
    thumbnail: Optional[str] = None
    view_count: Optional[int] = None
    like_count: Optional[int] = None
    formats: List[FormatInfo] = Field(default_factory=list)

    def to_response(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True)


def _format_from_raw(raw: Dict[str, Any]) -> FormatInfo:
    # yt-dlp keys are snake_case; map explicitly so unknown keys are dropped
    return FormatInfo(
        format_id=_as_str(raw.get("format_id")),
        ext=raw.get("ext"),
        quality=raw.get("quality"),
        format_note=raw.get("format_note"),
        filesize=raw.get("filesize"),
        resolution=raw.get("resolution"),
        fps=raw.get("fps"),
        vcodec=raw.get("vcodec"),
        acodec=raw.get("acodec"),
    )


def _as_str(value: Union[str, int, None]) -> Optional[str]:
    return None if value is None else str(value)


def parse_probe_output(stdout: str) -> VideoMetadata:
    """Parse probe stdout into VideoMetadata; raises ParseError on bad input."""
    raw = extract_json_object(stdout)
    try:
        return VideoMetadata(
            title=raw.get("title"),
            description=raw.get("description"),
            duration=raw.get("duration"),
            uploader=raw.get("uploader"),
            upload_date=raw.get("upload_date"),
            thumbnail=raw.get("thumbnail"),
            view_count=raw.get("view_count"),
            like_count=raw.get("like_count"),
            formats=[_format_from_raw(f) for f in raw.get("formats") or [] if isinstance(f, dict)],
        )
    except ValidationError as exc:
        raise ParseError(f"Unexpected yt-dlp metadata: {exc.error_count()} invalid field(s)") from exc


__all__ = ["FormatInfo", "VideoMetadata", "extract_json_object", "parse_probe_output"]
