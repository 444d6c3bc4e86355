"""
Stock List Manager - 수집 대상 종목 목록
=========================================

집중도 수집 대상 종목코드를 가져온다
- JSON 파일: {"entries": [{"stockID": "2330", "name": "台積電"}, ...]}
- PostgreSQL: 삭제되지 않은 종목 (asyncpg)
"""

import json
import logging
from pathlib import Path
from typing import Optional

import asyncpg

from marketfeed.common.kafka_config import get_config, PostgresConfig

logger = logging.getLogger(__name__)

ACTIVE_STOCKS_QUERY = "SELECT id FROM stocks WHERE deleted_at IS NULL"


def load_stock_ids_from_file(file_path: str) -> list[str]:
    """
    JSON 파일에서 종목코드 목록 로드

    Raises:
        ValueError: entries 형식이 아님
    """
    data = json.loads(Path(file_path).read_text(encoding='utf-8'))

    entries = data.get("entries") if isinstance(data, dict) else None
    if not isinstance(entries, list):
        raise ValueError(f"Invalid stock list (missing 'entries'): {file_path}")

    stock_ids = [str(entry["stockID"]) for entry in entries if entry.get("stockID")]
    logger.info(f"Loaded {len(stock_ids):,} stock ids from {file_path}")
    return stock_ids


async def fetch_active_stock_ids(config: Optional[PostgresConfig] = None) -> list[str]:
    """PostgreSQL에서 활성 종목코드 조회"""
    config = config or get_config().postgres

    conn = await asyncpg.connect(dsn=config.dsn)
    try:
        rows = await conn.fetch(ACTIVE_STOCKS_QUERY)
    finally:
        await conn.close()

    stock_ids = [str(row["id"]) for row in rows]
    logger.info(f"Loaded {len(stock_ids):,} active stock ids from {config.host}/{config.database}")
    return stock_ids
