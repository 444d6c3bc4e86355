"""
Stock List 테스트
=================

Usage:
    pytest tests/test_stock_list.py -v
"""

import json

import pytest

from marketfeed.common.kafka_config import PostgresConfig
from marketfeed.managers import stock_list
from marketfeed.managers.stock_list import (
    ACTIVE_STOCKS_QUERY,
    fetch_active_stock_ids,
    load_stock_ids_from_file,
)


class TestLoadFromFile:
    """JSON 파일 로드 테스트"""

    def test_entries(self, tmp_path):
        path = tmp_path / "stocks.json"
        path.write_text(json.dumps({
            "entries": [
                {"stockID": "2330", "name": "台積電"},
                {"stockID": "2317", "name": "鴻海"},
                {"name": "no id"},
            ]
        }, ensure_ascii=False), encoding="utf-8")

        assert load_stock_ids_from_file(str(path)) == ["2330", "2317"]

    @pytest.mark.parametrize("payload", [[], {"items": []}, {"entries": "2330"}])
    def test_invalid_format(self, tmp_path, payload):
        path = tmp_path / "stocks.json"
        path.write_text(json.dumps(payload), encoding="utf-8")

        with pytest.raises(ValueError):
            load_stock_ids_from_file(str(path))


class FakeConnection:
    def __init__(self, rows):
        self.rows = rows
        self.queries = []
        self.closed = False

    async def fetch(self, query):
        self.queries.append(query)
        return self.rows

    async def close(self):
        self.closed = True


class TestFetchActive:
    """PostgreSQL 조회 테스트 (asyncpg.connect 대체)"""

    @pytest.mark.asyncio
    async def test_fetch(self, monkeypatch):
        conn = FakeConnection([{"id": "2330"}, {"id": 2317}])
        dsns = []

        async def fake_connect(dsn):
            dsns.append(dsn)
            return conn

        monkeypatch.setattr(stock_list.asyncpg, "connect", fake_connect)
        config = PostgresConfig(host="db", port=5432, database="stocks", user="reader", password="secret")

        assert await fetch_active_stock_ids(config) == ["2330", "2317"]
        assert dsns == ["postgresql://reader:secret@db:5432/stocks"]
        assert conn.queries == [ACTIVE_STOCKS_QUERY]
        assert conn.closed

    @pytest.mark.asyncio
    async def test_connection_closed_on_error(self, monkeypatch):
        class FailingConnection(FakeConnection):
            async def fetch(self, query):
                raise RuntimeError("relation does not exist")

        conn = FailingConnection([])

        async def fake_connect(dsn):
            return conn

        monkeypatch.setattr(stock_list.asyncpg, "connect", fake_connect)

        with pytest.raises(RuntimeError):
            await fetch_active_stock_ids(PostgresConfig(password=""))

        assert conn.closed
