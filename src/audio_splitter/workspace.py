"""Per-request working directories under a shared storage root."""

from __future__ import annotations

import logging
import shutil
from dataclasses import dataclass
from pathlib import Path
from uuid import uuid4

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Workspace:
    id: str
    work_dir: Path
    out_dir: Path


class WorkspaceManager:
    """Allocates isolated workspaces named only by a generated identifier."""

    def __init__(self, root: str | Path, output_dir_name: str = "out") -> None:
        self.root = Path(root)
        self.output_dir_name = output_dir_name

    def ensure_root(self) -> Path:
        self.root.mkdir(parents=True, exist_ok=True)
        return self.root

    def allocate(self) -> Workspace:
        workspace_id = str(uuid4())
        work_dir = self.root / workspace_id
        out_dir = work_dir / self.output_dir_name
        out_dir.mkdir(parents=True, exist_ok=False)
        logger.info("Allocated workspace %s", work_dir)
        return Workspace(id=workspace_id, work_dir=work_dir, out_dir=out_dir)

    def release(self, work_dir: str | Path) -> bool:
        """Remove a workspace tree. Failures are logged and reported as ``False``."""

        path = Path(work_dir)
        try:
            shutil.rmtree(path)
        except FileNotFoundError:
            logger.info("Workspace already removed: %s", path)
            return True
        except OSError as exc:
            logger.error("Failed to clean up %s: %s", path, exc)
            return False
        logger.info("Cleaned up: %s", path)
        return True
