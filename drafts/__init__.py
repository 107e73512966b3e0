from drafts.manager import Draft, DraftManager
from drafts.storage import BlobStorage, DraftStorage, FileStorage, MemoryStorage, get_draft_storage

__all__ = [
    "BlobStorage",
    "Draft",
    "DraftManager",
    "DraftStorage",
    "FileStorage",
    "MemoryStorage",
    "get_draft_storage",
]
