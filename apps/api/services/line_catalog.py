from __future__ import annotations

import logging
from pathlib import Path

import pandas as pd

from .gacha_constants import LINE_CATALOG_FILE

logger = logging.getLogger(__name__)

CATALOG_COLUMNS = ["prefecture", "line"]


class LineCatalog:
    """Offline prefecture -> line names table built by tools/dump_prefecture_lines.py.

    A missing file yields an empty catalog; callers then fall back to the
    live station directory.
    """

    def __init__(self, lines_by_prefecture: dict[str, tuple[str, ...]] | None = None) -> None:
        self._lines = dict(lines_by_prefecture or {})

    @classmethod
    def from_csv(cls, path: Path | None = None) -> LineCatalog:
        path = Path(path) if path else LINE_CATALOG_FILE
        if not path.exists():
            logger.debug("Line catalog %s not found; using live lookups only.", path)
            return cls()
        df = pd.read_csv(path, dtype=str)
        missing = [col for col in CATALOG_COLUMNS if col not in df.columns]
        if missing:
            raise ValueError(f"{path} is missing columns: {', '.join(missing)}")
        df = df.dropna(subset=CATALOG_COLUMNS)
        df["prefecture"] = df["prefecture"].str.strip()
        df["line"] = df["line"].str.strip()
        df = df[(df["prefecture"] != "") & (df["line"] != "")]
        df = df.drop_duplicates(subset=CATALOG_COLUMNS, keep="first")
        lines = {
            prefecture: tuple(group["line"].tolist())
            for prefecture, group in df.groupby("prefecture", sort=False)
        }
        logger.info("Loaded line catalog for %d prefectures from %s", len(lines), path)
        return cls(lines)

    def lines_for(self, prefecture: str | None) -> tuple[str, ...]:
        if not prefecture:
            return ()
        return self._lines.get(prefecture, ())

    @staticmethod
    def to_frame(lines_by_prefecture: dict[str, list[str]]) -> pd.DataFrame:
        rows = [
            {"prefecture": prefecture, "line": line}
            for prefecture, lines in lines_by_prefecture.items()
            for line in lines
        ]
        return pd.DataFrame(rows, columns=CATALOG_COLUMNS)


__all__ = ["CATALOG_COLUMNS", "LineCatalog"]
