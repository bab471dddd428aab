"""Pydantic schemas for API request/response validation.

Request payloads for updates are dumped with ``exclude_unset=True`` so the
service can tell an absent field (keep) from an explicit null (clear).
"""

from typing import Literal

from pydantic import BaseModel, ConfigDict


class _Payload(BaseModel):
    """Base for request bodies; unknown fields are ignored."""

    model_config = ConfigDict(extra="ignore")


class _Record(BaseModel):
    """Base for stored records; fields the schema does not name are passed through."""

    model_config = ConfigDict(extra="allow")


# ============ Master Data Schemas ============

class LabeledLink(BaseModel):
    id: str | None = None
    label: str | None = None
    url: str | None = None


class NodeOverride(BaseModel):
    """Per-group/generation/lineup alias and photos of one actress."""
    alias: str | None = None
    profilePicture: str | None = None
    photos: list[str] | None = None


class MasterDataPayload(_Payload):
    """Create/update body for every master data type.

    Which fields are kept depends on the type; the rest are dropped.
    """
    name: str | None = None
    titleEn: str | None = None
    titleJp: str | None = None
    jpname: str | None = None
    kanjiName: str | None = None
    kanaName: str | None = None
    birthdate: str | None = None
    alias: str | None = None
    tags: str | None = None
    links: list[LabeledLink] | str | None = None
    takulinks: str | None = None
    profilePicture: str | None = None
    photo: list[str] | None = None
    seriesLinks: str | None = None
    studioLinks: str | None = None
    labelLinks: str | None = None
    # Group fields
    website: str | None = None
    description: str | None = None
    category: str | None = None
    gallery: list[str] | None = None
    # Membership and hierarchy references
    groupId: str | None = None
    groupName: str | None = None
    selectedGroups: list[str] | None = None
    groupData: dict[str, NodeOverride | None] | None = None
    generationData: dict[str, NodeOverride | None] | None = None
    lineupData: dict[str, NodeOverride | None] | None = None
    estimatedYears: str | None = None
    startDate: str | None = None
    endDate: str | None = None
    generationId: str | None = None
    generationName: str | None = None
    lineupType: str | None = None
    lineupOrder: int | None = None


class MasterDataItem(_Record):
    id: str
    type: str
    name: str | None = None
    titleEn: str | None = None
    titleJp: str | None = None
    jpname: str | None = None
    kanjiName: str | None = None
    kanaName: str | None = None
    createdAt: str | None = None
    updatedAt: str | None = None


class MasterDataResponse(BaseModel):
    data: MasterDataItem


class MasterDataListResponse(BaseModel):
    data: list[MasterDataItem]


class SyncResult(BaseModel):
    moviesUpdated: int = 0
    scMoviesUpdated: int = 0


class MasterDataUpdateResponse(BaseModel):
    data: MasterDataItem
    sync: SyncResult | None = None


class DeleteResponse(BaseModel):
    message: str
    data: dict


# ============ Hierarchy Schemas ============

class MemberOverrideRequest(_Payload):
    alias: str | None = None
    photos: list[str] | None = None
    profilePicture: str | None = None


# ============ Photobook Schemas ============

class ImageTag(BaseModel):
    url: str
    actresses: list[str] = []
    imageIndex: int | None = None


class LinkedTo(BaseModel):
    groupId: str | None = None
    generationId: str | None = None
    lineupId: str | None = None
    memberId: str | None = None


class PhotobookPayload(_Payload):
    titleEn: str | None = None
    titleJp: str | None = None
    link: str | None = None
    cover: str | None = None
    releaseDate: str | None = None
    actress: str | None = None
    imageLinks: str | None = None
    imageTags: list[ImageTag] | None = None
    linkedTo: LinkedTo | None = None


class Photobook(_Record):
    id: str
    titleEn: str | None = None
    titleJp: str | None = None
    linkedTo: LinkedTo | None = None
    createdAt: str | None = None
    updatedAt: str | None = None


class LinkRequest(_Payload):
    targetType: str | None = None
    targetId: str | None = None


class UnlinkRequest(_Payload):
    targetType: str | None = None


# ============ Translation Schemas ============

class MovieContext(BaseModel):
    actors: list[str] | None = None
    actresses: list[str] | None = None
    directors: list[str] | None = None
    studio: str | None = None
    series: str | None = None
    dmcode: str | None = None


class TranslationRequest(_Payload):
    text: str
    context: Literal[
        "movie_title", "actor_name", "actress_name", "studio_name", "series_name", "general"
    ] = "general"
    movieContext: MovieContext | None = None


class TranslationResponse(BaseModel):
    translatedText: str
    translationMethod: Literal["ai", "fallback", "original"]


# ============ Error Schemas ============

class ErrorResponse(BaseModel):
    error: str
    code: str
    details: str | None = None


class ConflictResponse(ErrorResponse):
    existing: dict | None = None
