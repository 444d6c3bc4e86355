"""
Ingest Jobs - 실행 단위 정의
============================

레코드 유형별 작업(URL) 생성과 휴장일 달력
- 집중도: 종목 x 5 페이지 (토큰 1,2,3,4,6)
- 일일 종가 / 삼대법인: 거래소별 CSV 1건씩 (TWSE, TPEx)
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from marketfeed.common.kafka_config import get_config
from marketfeed.parser import (
    CONCENTRATION_PAGES,
    ConcentrationStrategy,
    RecordFamily,
)

logger = logging.getLogger(__name__)


CONCENTRATION_URL = "https://fubon-ebrokerdj.fbs.com.tw/z/zc/zco/zco_{stock_id}_{token}.djhtm"

DAILY_CLOSE_URLS = (
    "https://www.twse.com.tw/exchangeReport/MI_INDEX?response=csv&date={twse_date}&type=ALLBUT0999",
    "https://www.tpex.org.tw/web/stock/aftertrading/daily_close_quotes/stk_quote_download.php"
    "?l=zh-tw&d={tpex_date}&s=0,asc,0",
)

THREE_PRIMARY_URLS = (
    "https://www.twse.com.tw/rwd/zh/fund/T86?response=csv&date={twse_date}&selectType=ALLBUT0999",
    "https://www.tpex.org.tw/web/stock/3insti/daily_trade/3itrade_hedge_result.php"
    "?l=zh-tw&o=csv&se=EW&t=D&d={tpex_date}",
)

# 집중도 수집을 건너뛰는 휴장일
MARKET_HOLIDAYS = frozenset({
    "20240101",
    "20240206", "20240207", "20240208", "20240209",
    "20240212", "20240213", "20240214",
    "20240228",
    "20240404", "20240405",
    "20240501",
    "20240610",
    "20240917",
    "20241010",
})

# 민국 기원 (TPEx 날짜 표기)
ROC_YEAR_OFFSET = 1911


def twse_date(day: date) -> str:
    """YYYYMMDD"""
    return day.strftime("%Y%m%d")


def tpex_date(day: date) -> str:
    """민국년/MM/DD (예: 2024-01-02 -> 113/01/02)"""
    return f"{day.year - ROC_YEAR_OFFSET}/{day.month:02d}/{day.day:02d}"


def is_market_holiday(day: date) -> bool:
    return twse_date(day) in MARKET_HOLIDAYS


@dataclass(frozen=True)
class IngestJob:
    """
    파이프라인 1회 실행 단위

    Attributes:
        family: 레코드 유형 (사용할 전략 결정)
        topic: 완성 레코드를 보낼 Kafka 토픽
        work_items: 수집할 주소 목록
        run_date: 실행일 (콘텐츠에 observed_date 로 주입)
        max_concurrency: 동시 수집 상한
        skip: 휴장일 등으로 실행하지 않음
    """
    family: RecordFamily
    topic: str
    work_items: tuple[str, ...]
    run_date: date
    max_concurrency: int
    skip: bool = False

    @property
    def observed_date(self) -> str:
        return twse_date(self.run_date)

    @property
    def capacity(self) -> int:
        return len(self.work_items)


def concentration_urls(stock_ids: list[str]) -> list[str]:
    """종목마다 5개 페이지 주소 (40일 대신 60일)"""
    return [
        CONCENTRATION_URL.format(
            stock_id=stock_id,
            token=ConcentrationStrategy.token_for_slot(slot),
        )
        for stock_id in stock_ids
        for slot in range(CONCENTRATION_PAGES)
    ]


def concentration_job(
    stock_ids: list[str],
    run_date: date,
    max_concurrency: Optional[int] = None,
) -> IngestJob:
    config = get_config()
    skip = is_market_holiday(run_date)
    if skip:
        logger.info(f"Skipped date: {twse_date(run_date)} (market holiday)")

    return IngestJob(
        family=RecordFamily.CONCENTRATION,
        topic=config.topics.concentration,
        work_items=() if skip else tuple(concentration_urls(stock_ids)),
        run_date=run_date,
        max_concurrency=max_concurrency or config.fetcher.max_concurrent_requests,
        skip=skip,
    )


def _exchange_urls(templates: tuple[str, ...], run_date: date) -> tuple[str, ...]:
    return tuple(
        template.format(twse_date=twse_date(run_date), tpex_date=tpex_date(run_date))
        for template in templates
    )


def daily_close_job(run_date: date, max_concurrency: Optional[int] = None) -> IngestJob:
    config = get_config()
    return IngestJob(
        family=RecordFamily.DAILY_CLOSE,
        topic=config.topics.daily_close,
        work_items=_exchange_urls(DAILY_CLOSE_URLS, run_date),
        run_date=run_date,
        max_concurrency=max_concurrency or config.pipeline.csv_concurrency,
    )


def three_primary_job(run_date: date, max_concurrency: Optional[int] = None) -> IngestJob:
    config = get_config()
    return IngestJob(
        family=RecordFamily.THREE_PRIMARY,
        topic=config.topics.three_primary,
        work_items=_exchange_urls(THREE_PRIMARY_URLS, run_date),
        run_date=run_date,
        max_concurrency=max_concurrency or config.pipeline.csv_concurrency,
    )
