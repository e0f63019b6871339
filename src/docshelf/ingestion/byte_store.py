"""Library-owned file storage."""

from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path
from typing import List, Tuple

from docshelf.models import OperationResult

LOGGER = logging.getLogger(__name__)


class LibraryFileStore:
    """Keeps copies of ingested documents under a single folder.

    Files are stored as ``<uuid>.pdf`` so the stored name carries the
    document identity until the user renames it.
    """

    def __init__(self, root: Path) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def copy(self, source: Path) -> Tuple[str, Path]:
        doc_id = str(uuid.uuid4())
        destination = self.root / f"{doc_id}{source.suffix.lower() or '.pdf'}"
        shutil.copy2(source, destination)
        return doc_id, destination

    def move(self, path: Path, new_name: str) -> Path:
        target = path.with_name(new_name)
        if target.exists():
            raise FileExistsError(target)
        path.rename(target)
        return target

    def delete(self, path: Path) -> OperationResult:
        try:
            Path(path).unlink()
        except FileNotFoundError:
            return OperationResult.failure(f"already missing: {path}")
        except OSError as exc:
            LOGGER.warning("Could not delete %s: %s", path, exc)
            return OperationResult.failure(str(exc))
        return OperationResult.success(path)

    def list_directory(self) -> List[Path]:
        """List stored files. Raises ``OSError`` if the folder is unreadable."""
        return sorted(child for child in self.root.iterdir() if child.is_file())
