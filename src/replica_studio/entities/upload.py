"""FileUpload - raw bytes bound for a signed upload URL."""

import mimetypes
from dataclasses import dataclass
from pathlib import Path

DEFAULT_CONTENT_TYPE = "application/octet-stream"


@dataclass(frozen=True)
class FileUpload:
    filename: str
    content: bytes
    content_type: str = DEFAULT_CONTENT_TYPE

    @classmethod
    def from_path(cls, path: Path, content_type: str | None = None) -> "FileUpload":
        """Read a local file, guessing its MIME type from the name."""
        guessed, _ = mimetypes.guess_type(path.name)
        return cls(
            filename=path.name,
            content=path.read_bytes(),
            content_type=content_type or guessed or DEFAULT_CONTENT_TYPE,
        )

    @property
    def size(self) -> int:
        return len(self.content)
