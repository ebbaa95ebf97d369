from __future__ import annotations

import logging
from pathlib import Path

from vehicle_reports.core.errors import NotFoundError

logger = logging.getLogger(__name__)

REPORT_SUFFIX = ".csv"


class ReportStore:
    """Directorio plano de informes CSV; sin índice ni metadatos."""

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def save(self, data: bytes, filename: str) -> Path:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / filename
        path.write_bytes(data)
        logger.info("Report stored at %s (%d bytes)", path, len(data))
        return path

    def list(self) -> list[str]:
        if not self.directory.is_dir():
            return []
        return sorted(
            p.name for p in self.directory.iterdir()
            if p.is_file() and p.name.endswith(REPORT_SUFFIX)
        )

    def path_for(self, filename: str) -> Path:
        # Solo nombres simples *.csv: nada de rutas ni '..'
        if (
            not filename
            or Path(filename).name != filename
            or filename.startswith(".")
            or not filename.endswith(REPORT_SUFFIX)
        ):
            raise NotFoundError("Report file not found")
        path = self.directory / filename
        if not path.is_file():
            raise NotFoundError("Report file not found")
        return path
