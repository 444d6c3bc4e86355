"""
Aggregator - 종목별 부분 결과 병합
==================================

결과 큐를 단일 태스크가 순차 소비
- 일일 종가 / 삼대법인: 바로 전송
- 집중도 조각: 종목별 상태에 슬롯 기록, 5개 모이면 전송 후 상태 해제
- 같은 슬롯 중복 기록은 거부 (경고 로그, 카운트 제외)
"""

import asyncio
import time
import logging
from dataclasses import dataclass, field
from typing import Optional

from marketfeed.common.errors import PublishError
from marketfeed.ingestor.kafka_producer import Publisher
from marketfeed.parser.models import (
    CONCENTRATION_PAGES,
    ConcentrationFragment,
    ConcentrationRecord,
    ParsedRecord,
)

logger = logging.getLogger(__name__)

# 결과 큐 종료 신호
END_OF_RESULTS = object()


@dataclass
class AggregationState:
    """종목 하나의 집중도 집계 상태"""
    entity_id: str
    slots: list = field(default_factory=lambda: [None] * CONCENTRATION_PAGES)
    sum_buy_shares: int = 0
    sum_sell_shares: int = 0
    avg_buy_price: float = 0.0
    avg_sell_price: float = 0.0
    received: int = 0

    @property
    def is_complete(self) -> bool:
        return self.received == CONCENTRATION_PAGES

    def write(self, fragment: ConcentrationFragment) -> bool:
        """
        조각 기록

        Returns:
            기록 여부 (이미 채워진 슬롯이면 False)
        """
        if self.slots[fragment.page_index] is not None:
            return False

        self.slots[fragment.page_index] = fragment.net_shares

        # 합계/평균은 1일 페이지(슬롯 0) 값만 사용
        if fragment.page_index == 0:
            self.sum_buy_shares = fragment.total_buy
            self.sum_sell_shares = fragment.total_sell
            self.avg_buy_price = fragment.avg_buy_price
            self.avg_sell_price = fragment.avg_sell_price

        self.received += 1
        return True

    def freeze(self, exchange_date: str) -> ConcentrationRecord:
        return ConcentrationRecord(
            entity_id=self.entity_id,
            exchange_date=exchange_date,
            diff=tuple(self.slots),
            sum_buy_shares=self.sum_buy_shares,
            sum_sell_shares=self.sum_sell_shares,
            avg_buy_price=self.avg_buy_price,
            avg_sell_price=self.avg_sell_price,
        )


@dataclass
class AggregatorStats:
    """Aggregator 통계"""
    records_received: int = 0
    fragments_rejected: int = 0
    records_published: int = 0
    publish_failures: int = 0
    incomplete_entities: int = 0
    start_time: float = field(default_factory=time.time)

    def __str__(self) -> str:
        return (
            f"AggregatorStats("
            f"received={self.records_received:,}, "
            f"rejected={self.fragments_rejected:,}, "
            f"published={self.records_published:,}, "
            f"publish_failed={self.publish_failures:,}, "
            f"incomplete={self.incomplete_entities:,})"
        )


class Aggregator:
    """
    집계 단계 (종목별 상태 맵의 유일한 소유자)

    맵은 이 태스크 안에서만 변경되므로 락이 필요 없음
    """

    def __init__(
        self,
        publisher: Publisher,
        topic: str,
        exchange_date: str,
    ):
        """
        Args:
            publisher: 완성 레코드 전송기
            topic: 전송 토픽
            exchange_date: 집중도 레코드에 기록할 거래일 (YYYYMMDD)
        """
        self.publisher = publisher
        self.topic = topic
        self.exchange_date = exchange_date

        self._states: dict[str, AggregationState] = {}
        self._completed: set[str] = set()
        self.stats = AggregatorStats()

    @property
    def pending_entities(self) -> list[str]:
        return sorted(self._states)

    async def run(self, results: asyncio.Queue) -> AggregatorStats:
        """
        종료 신호까지 결과 큐 소비

        Args:
            results: ParsedRecord 또는 END_OF_RESULTS 가 들어오는 큐
        """
        while True:
            item = await results.get()
            try:
                if item is END_OF_RESULTS:
                    break
                await self.handle(item)
            except Exception as e:
                # 큐 소비가 멈추면 워커가 막히므로 레코드 하나만 버림
                logger.error(f"Error aggregating record: {e}", exc_info=True)
            finally:
                results.task_done()

        self.finish()
        return self.stats

    async def handle(self, record: ParsedRecord) -> None:
        """레코드 하나 처리"""
        self.stats.records_received += 1

        if not isinstance(record, ConcentrationFragment):
            await self._publish(record.entity_id, record.to_json())
            return

        completed = self._merge(record)
        if completed is not None:
            await self._publish(completed.entity_id, completed.to_json())

    def _merge(self, fragment: ConcentrationFragment) -> Optional[ConcentrationRecord]:
        entity_id = fragment.entity_id

        if entity_id in self._completed:
            self.stats.fragments_rejected += 1
            logger.warning(
                f"Fragment for already completed entity {entity_id} "
                f"(slot {fragment.page_index}) rejected"
            )
            return None

        state = self._states.get(entity_id)
        if state is None:
            state = self._states[entity_id] = AggregationState(entity_id=entity_id)

        if not state.write(fragment):
            self.stats.fragments_rejected += 1
            logger.warning(
                f"Duplicate fragment for {entity_id} slot {fragment.page_index} rejected"
            )
            return None

        if not state.is_complete:
            return None

        del self._states[entity_id]
        self._completed.add(entity_id)
        return state.freeze(self.exchange_date)

    async def _publish(self, entity_id: str, message: str) -> None:
        try:
            await self.publisher.publish(self.topic, message)
        except PublishError as e:
            self.stats.publish_failures += 1
            logger.error(f"Failed to publish {entity_id} to {self.topic}: {e}")
            return

        self.stats.records_published += 1
        logger.debug(f"Published {entity_id} to {self.topic}: {message}")

    def finish(self) -> None:
        """입력 종료 후 미완성 종목 보고"""
        self.stats.incomplete_entities = len(self._states)
        if self._states:
            logger.warning(
                f"{len(self._states)} entities incomplete at drain: "
                f"{', '.join(self.pending_entities[:20])}"
            )
        logger.info(f"Aggregation finished. {self.stats}")
