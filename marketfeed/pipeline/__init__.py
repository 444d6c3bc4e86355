"""
Pipeline Module - Orchestration & Aggregation
=============================================

Components:
- jobs: 레코드 유형별 작업(URL) 생성, 휴장일 달력
- orchestrator: bounded 큐 + 워커 풀 기반 수집/파싱 실행기
- aggregator: 종목별 집중도 조각 병합 후 전송
"""

from .jobs import (
    IngestJob,
    MARKET_HOLIDAYS,
    concentration_job,
    daily_close_job,
    three_primary_job,
    is_market_holiday,
    twse_date,
    tpex_date,
)
from .aggregator import Aggregator, AggregationState, AggregatorStats, END_OF_RESULTS
from .orchestrator import IngestPipeline, PipelineState, PipelineStats, Fetcher

__all__ = [
    "IngestJob",
    "MARKET_HOLIDAYS",
    "concentration_job",
    "daily_close_job",
    "three_primary_job",
    "is_market_holiday",
    "twse_date",
    "tpex_date",
    "Aggregator",
    "AggregationState",
    "AggregatorStats",
    "END_OF_RESULTS",
    "IngestPipeline",
    "PipelineState",
    "PipelineStats",
    "Fetcher",
]
