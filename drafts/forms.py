"""Draft payloads of the artwork and project editors."""

from typing import List, Optional, TypedDict

from drafts.manager import DraftManager
from drafts.storage import DraftStorage


ARTWORK_DRAFTS = "artwork_drafts"
PROJECT_DRAFTS = "project_drafts"


class ArtworkDraftData(TypedDict):
    title: str
    description: str
    categoryIds: List[int]
    type: str  # "portfolio" or "scratch"
    imagePreview: Optional[str]


class ProjectDraftData(TypedDict):
    title: str
    description: str
    categoryIds: List[int]
    type: str
    imagePreviews: List[str]


def artwork_drafts(storage: Optional[DraftStorage] = None) -> "DraftManager[ArtworkDraftData]":
    return DraftManager(ARTWORK_DRAFTS, storage)


def project_drafts(storage: Optional[DraftStorage] = None) -> "DraftManager[ProjectDraftData]":
    return DraftManager(PROJECT_DRAFTS, storage)
