from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Iterable

import yaml

from .gacha_constants import (
    CAPITAL_ALL,
    CAPITAL_INNER,
    CAPITAL_INNER_POSTAL_RE,
    CAPITAL_LABELS,
    CAPITAL_OUTER,
    CAPITAL_PREFECTURE,
    NATIONWIDE,
    PREFECTURES_FILE,
)
from .gacha_models import Region, Station

logger = logging.getLogger(__name__)


def load_yaml(path: Path) -> dict:
    """读取YAML文件并返回字典 / YAMLファイルを読み込み辞書を返す。"""
    if not path.exists():
        raise FileNotFoundError(f"{path} not found")
    with path.open(encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"{path} is not a YAML mapping")
    return data


@lru_cache(maxsize=4)
def load_regions(path: Path = PREFECTURES_FILE) -> tuple[Region, ...]:
    """读取都道府县代表坐标 / 都道府県の代表座標を読み込む。"""
    data = load_yaml(path)
    regions: list[Region] = []
    for row in data.get("prefectures") or []:
        try:
            regions.append(
                Region(
                    code=int(row["code"]),
                    name=str(row["name"]),
                    lat=float(row["lat"]),
                    lon=float(row["lon"]),
                )
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ValueError(f"invalid prefecture row in {path}: {row!r}") from exc
    logger.debug("Loaded %d prefectures from %s", len(regions), path)
    return tuple(regions)


def prefecture_names(regions: Iterable[Region] | None = None) -> list[str]:
    return [region.name for region in (regions if regions is not None else load_regions())]


def prefecture_code(name: str) -> int | None:
    """Map a prefecture name (or a capital sub-region label) to its JIS code."""
    if name in CAPITAL_LABELS:
        name = CAPITAL_PREFECTURE
    for region in load_regions():
        if region.name == name:
            return region.code
    return None


def is_capital_inner_ward(postal_code: str | None) -> bool:
    """23区内かどうかを郵便番号の先頭で判定する。"""
    return bool(postal_code and CAPITAL_INNER_POSTAL_RE.match(postal_code.strip()))


class RegionKind(str, Enum):
    NATIONWIDE = "nationwide"
    PREFECTURE = "prefecture"
    CAPITAL_ALL = "capital_all"
    CAPITAL_INNER = "capital_inner"
    CAPITAL_OUTER = "capital_outer"


@dataclass(frozen=True)
class RegionFilter:
    kind: RegionKind
    label: str
    prefecture: str | None = None

    @classmethod
    def from_label(cls, label: str | None) -> RegionFilter:
        """Parse a UI region label such as "全国", "大阪府" or "東京都(23区内)"."""
        text = (label or "").strip()
        if not text or text == NATIONWIDE:
            return cls(RegionKind.NATIONWIDE, NATIONWIDE)
        if text in (CAPITAL_ALL, CAPITAL_PREFECTURE):
            return cls(RegionKind.CAPITAL_ALL, CAPITAL_ALL, CAPITAL_PREFECTURE)
        if text == CAPITAL_INNER:
            return cls(RegionKind.CAPITAL_INNER, CAPITAL_INNER, CAPITAL_PREFECTURE)
        if text == CAPITAL_OUTER:
            return cls(RegionKind.CAPITAL_OUTER, CAPITAL_OUTER, CAPITAL_PREFECTURE)
        if text in prefecture_names():
            return cls(RegionKind.PREFECTURE, text, text)
        raise ValueError(f"unknown region: {label!r}")

    @property
    def nationwide(self) -> bool:
        return self.kind is RegionKind.NATIONWIDE

    @property
    def lookup_prefecture(self) -> str | None:
        """Prefecture name to send to the line lookup (capital sub-regions collapse)."""
        return self.prefecture

    def matches(self, station: Station) -> bool:
        if self.kind is RegionKind.NATIONWIDE:
            return True
        if station.prefecture != self.prefecture:
            return False
        if self.kind is RegionKind.CAPITAL_INNER:
            return is_capital_inner_ward(station.postal_code)
        if self.kind is RegionKind.CAPITAL_OUTER:
            return not is_capital_inner_ward(station.postal_code)
        return True


def selectable_region_labels(names: Iterable[str]) -> list[str]:
    """Region menu labels: the capital is offered as its three sub-regions."""
    labels: list[str] = []
    for name in names:
        if name == CAPITAL_PREFECTURE:
            labels.extend(CAPITAL_LABELS)
        else:
            labels.append(name)
    return labels


__all__ = [
    "RegionFilter",
    "RegionKind",
    "is_capital_inner_ward",
    "load_regions",
    "load_yaml",
    "prefecture_code",
    "prefecture_names",
    "selectable_region_labels",
]
