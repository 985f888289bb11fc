from __future__ import annotations

import re
from pathlib import Path

DATA_DIR = Path(__file__).resolve().parents[1] / "data"  # 静的データ置き場
PREFECTURES_FILE = DATA_DIR / "prefectures.yaml"  # 都道府県の代表座標
LINE_CATALOG_FILE = DATA_DIR / "prefecture_lines.csv"  # 都道府県→路線のキャッシュ

EARTH_RADIUS_KM = 6371.0
SPEED_KMH = 40  # 平均移動速度の仮定
DISTANCE_MARGIN_KM = 80  # 代表座標と実際の到達点のずれを吸収する余白
MAX_ATTEMPTS = 100  # 1回のガチャで路線APIを叩く上限
UNLIMITED_MINUTES = 0  # 「むせいげん」
DEBOUNCE_SECONDS = 0.5  # 駅名サジェストの待ち時間
DEFAULT_REQUEST_TIMEOUT_SECONDS = 10.0
DEFAULT_GACHA_TIMEOUT_SECONDS = 60

NATIONWIDE = "全国"
ANY_LINE = "すべて"
CAPITAL_PREFECTURE = "東京都"
CAPITAL_ALL = "東京都(全域)"
CAPITAL_INNER = "東京都(23区内)"
CAPITAL_OUTER = "東京都(23区外)"
CAPITAL_LABELS = (CAPITAL_ALL, CAPITAL_INNER, CAPITAL_OUTER)
CAPITAL_INNER_POSTAL_RE = re.compile(r"^1[0-5]")  # 100-159 は23区

MESSAGE_SEARCHING = "行き先を うらなっています..."
MESSAGE_PROGRESS = "目的地を さがしています...({attempt}/{limit})"
MESSAGE_DEPARTURE_NOT_FOUND = "その地点は 地図にのっていないようです。"
MESSAGE_NO_LINE_DATA = "路線データが見つかりませんでした。"
MESSAGE_NOT_FOUND = "条件に合う目的地が 見つかりませんでした。"
MESSAGE_COMMUNICATION_ERROR = "通信エラーが発生しました。"
MESSAGE_CANCELLED = ""

__all__ = [
    "DATA_DIR",
    "PREFECTURES_FILE",
    "LINE_CATALOG_FILE",
    "EARTH_RADIUS_KM",
    "SPEED_KMH",
    "DISTANCE_MARGIN_KM",
    "MAX_ATTEMPTS",
    "UNLIMITED_MINUTES",
    "DEBOUNCE_SECONDS",
    "DEFAULT_REQUEST_TIMEOUT_SECONDS",
    "DEFAULT_GACHA_TIMEOUT_SECONDS",
    "NATIONWIDE",
    "ANY_LINE",
    "CAPITAL_PREFECTURE",
    "CAPITAL_ALL",
    "CAPITAL_INNER",
    "CAPITAL_OUTER",
    "CAPITAL_LABELS",
    "CAPITAL_INNER_POSTAL_RE",
    "MESSAGE_SEARCHING",
    "MESSAGE_PROGRESS",
    "MESSAGE_DEPARTURE_NOT_FOUND",
    "MESSAGE_NO_LINE_DATA",
    "MESSAGE_NOT_FOUND",
    "MESSAGE_COMMUNICATION_ERROR",
    "MESSAGE_CANCELLED",
]
