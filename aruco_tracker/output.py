from __future__ import annotations

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Optional

from .services.csv_writer import CsvWriter


class OutputSink(ABC):
    @abstractmethod
    def open(self, session_dir: Path) -> None: ...

    @abstractmethod
    def write_result(self, result, image_path: Optional[str]) -> None: ...

    @abstractmethod
    def close(self) -> None: ...


class CsvOutput(OutputSink):
    """One CSV row per detected marker; markers without a pose get NaN pose columns."""

    def __init__(self, filename: str = "detections.csv"):
        self.filename = filename
        self._writer: Optional[CsvWriter] = None

    def open(self, session_dir: Path) -> None:
        path = session_dir / self.filename
        self._writer = CsvWriter(str(path))
        self._writer.open()

    def write_result(self, result, image_path: Optional[str]) -> None:
        if self._writer is None:
            return
        for est in result.estimates:
            self._writer.append(result.frame, est, image_path)

    def close(self) -> None:
        if self._writer is not None:
            self._writer.close()
            self._writer = None


class NullOutput(OutputSink):
    def open(self, session_dir: Path) -> None:
        return None

    def write_result(self, result, image_path: Optional[str]) -> None:
        return None

    def close(self) -> None:
        return None
