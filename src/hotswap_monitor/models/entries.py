"""
Value types returned by the filesystem abstraction.
"""

from pydantic import BaseModel, ConfigDict, Field


class DirEntry(BaseModel):
    """One child of a directory listing."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Base name of the entry")
    path: str = Field(..., min_length=1, description="Absolute path of the entry")
    is_dir: bool = Field(default=False, description="Whether the entry is a directory to descend into")


class ArchiveEntry(BaseModel):
    """One member of an archive, as enumerated from its directory."""

    model_config = ConfigDict(frozen=True)

    name: str = Field(..., min_length=1, description="Entry name inside the archive")
    timestamp: int = Field(..., description="Stored modification time in milliseconds since the epoch")
