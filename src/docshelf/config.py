"""Application configuration defaults."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

from docshelf.embedding.encoder import DEFAULT_MODEL

_LOCAL_DATA = Path("data")
_USER_DATA = Path.home() / "Documents" / "DocShelf"


def _get_default_data_dir() -> Path:
    """Prefer a local data/ folder when running from a checkout."""
    if _LOCAL_DATA.exists():
        return _LOCAL_DATA
    return _USER_DATA


@dataclass(slots=True)
class DuplicateThresholds:
    """Knobs for the duplicate scan tiers."""

    content_chars: int = 2000
    min_content_chars: int = 100
    title_size_tier: bool = True
    size_bucket_bytes: int = 1024
    title_distance: float = 0.6
    title_edit_similarity: float = 0.60


@dataclass(slots=True)
class AppConfig:
    db_path: Path | None = None
    library_dir: Path | None = None
    model_name: str = DEFAULT_MODEL

    # persistent index windows
    index_window: int = 250
    index_overlap: int = 50

    # document comparison windows
    compare_window: int = 250
    compare_overlap: int = 100
    compare_min_chars: int = 50
    compare_max_chunks: int = 5
    compare_match_threshold: float = 0.85

    preview_chars: int = 3000
    primary_pages: int = 3
    fallback_pages: int = 2

    use_classifier: bool = True
    ollama_url: str = "http://localhost:11434"
    ollama_model: str = "llama3.2:3b"
    classify_timeout: float = 120.0

    duplicates: DuplicateThresholds = field(default_factory=DuplicateThresholds)

    def __post_init__(self) -> None:
        if self.db_path is None:
            self.db_path = _get_default_data_dir() / "docshelf.db"
        if self.library_dir is None:
            self.library_dir = _get_default_data_dir() / "files"

    def resolve_db_path(self, base_dir: Path | None = None) -> Path:
        if self.db_path is None:
            self.db_path = _get_default_data_dir() / "docshelf.db"
        if Path(self.db_path).is_absolute() or base_dir is None:
            return Path(self.db_path)
        return base_dir / self.db_path

    def resolve_library_dir(self, base_dir: Path | None = None) -> Path:
        if self.library_dir is None:
            self.library_dir = _get_default_data_dir() / "files"
        if Path(self.library_dir).is_absolute() or base_dir is None:
            return Path(self.library_dir)
        return base_dir / self.library_dir
