"""Milestone ingestion from CSV exports of a status sheet."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import IO, Iterable

import pandas as pd
from pydantic import ValidationError

from .schemas import Milestone, Project

logger = logging.getLogger(__name__)


def _records(df: pd.DataFrame) -> list[dict]:
    # Empty cells arrive as NaN; the schemas expect None.
    cleaned = df.astype(object).where(pd.notna(df), None)
    return cleaned.to_dict(orient="records")


class CSVIngestor:
    """Load project milestones from CSV files."""

    def __init__(self, source: Path | IO[str]) -> None:
        self.source = source if hasattr(source, "read") else Path(source)

    def read_milestones(self) -> Iterable[Milestone]:
        df = pd.read_csv(self.source, dtype=str)
        for line, row in enumerate(_records(df), start=2):
            try:
                yield Milestone.model_validate(row)
            except ValidationError as exc:
                logger.warning("Skipping invalid milestone on line %s: %s", line, exc.errors()[0]["msg"])

    def read_project(self, title: str, **fields) -> Project:
        return Project(title=title, milestones=list(self.read_milestones()), **fields)
