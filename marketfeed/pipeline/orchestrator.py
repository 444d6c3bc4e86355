"""
Ingest Pipeline - Orchestrator
==============================

작업 생성 -> 제한된 동시 수집 -> 파싱 -> 집계 -> 전송
- 작업 큐 / 결과 큐 모두 bounded (가득 차면 생산자 대기)
- 고정 크기 워커 풀로 동시 수집 수 제한
- 작업 하나의 실패는 로그 후 버림 (배치는 계속)
- 생성기, 워커, 집계기 모두 끝나야 반환
"""

import asyncio
import time
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Protocol

from marketfeed.common.errors import FetchError, ParseError, PipelineError
from marketfeed.common.kafka_config import get_config, PipelineConfig
from marketfeed.ingestor.kafka_producer import Publisher
from marketfeed.ingestor.source_client import FetchedContent
from marketfeed.parser import Parser, strategy_for
from .aggregator import Aggregator, AggregatorStats, END_OF_RESULTS
from .jobs import IngestJob

logger = logging.getLogger(__name__)

# 워커 종료 신호
_STOP = object()


class Fetcher(Protocol):
    """fetch(address) -> FetchedContent, 실패 시 FetchError"""

    async def fetch(self, address: str) -> FetchedContent:
        ...


class PipelineState(Enum):
    """실행 상태"""
    IDLE = "idle"
    GENERATING = "generating"
    FETCHING_AND_PARSING = "fetching_and_parsing"
    DRAINING = "draining"
    DONE = "done"


@dataclass
class PipelineStats:
    """파이프라인 1회 실행 통계"""
    work_items: int = 0
    fetched: int = 0
    fetch_failed: int = 0
    parsed_records: int = 0
    parse_failed: int = 0
    skipped: bool = False
    aggregator: Optional[AggregatorStats] = None
    start_time: float = field(default_factory=time.time)
    end_time: Optional[float] = None

    @property
    def elapsed(self) -> float:
        end = self.end_time or time.time()
        return end - self.start_time

    def __str__(self) -> str:
        return (
            f"PipelineStats("
            f"items={self.work_items:,}, "
            f"fetched={self.fetched:,}, "
            f"fetch_failed={self.fetch_failed:,}, "
            f"records={self.parsed_records:,}, "
            f"parse_failed={self.parse_failed:,}, "
            f"elapsed={self.elapsed:.1f}s)"
        )


class IngestPipeline:
    """
    수집 파이프라인

    특징:
    - Fetcher / Publisher 는 외부에서 생성해 주입 (가짜 객체로 테스트 가능)
    - 집계 상태는 Aggregator 태스크 하나가 소유
    """

    def __init__(
        self,
        fetcher: Fetcher,
        publisher: Publisher,
        config: Optional[PipelineConfig] = None,
    ):
        """
        Args:
            fetcher: 콘텐츠 수집기 (SourceClient)
            publisher: 레코드 전송기 (KafkaRecordPublisher)
            config: 파이프라인 설정 (없으면 기본값 사용)
        """
        self.fetcher = fetcher
        self.publisher = publisher
        self.config = config or get_config().pipeline

        self.state = PipelineState.IDLE
        self.stats = PipelineStats()

    async def run(self, job: IngestJob) -> PipelineStats:
        """
        작업 하나를 끝까지 실행

        Args:
            job: 실행할 IngestJob

        Returns:
            PipelineStats

        Raises:
            PipelineError: 큐를 만들 수 없음 (시작 불가)
        """
        self.stats = PipelineStats(work_items=job.capacity)

        if job.skip or not job.work_items:
            self.stats.skipped = True
            self.stats.end_time = time.time()
            self.state = PipelineState.DONE
            logger.info(f"Nothing to do for {job.family.value} on {job.observed_date}")
            return self.stats

        work_queue, result_queue = self._build_queues(job)
        parser = Parser(strategy_for(job.family))
        aggregator = Aggregator(self.publisher, job.topic, job.observed_date)

        logger.info(
            f"Pipeline started: family={job.family.value}, "
            f"items={job.capacity:,}, "
            f"concurrency={job.max_concurrency}, "
            f"date={job.observed_date}"
        )

        self.state = PipelineState.GENERATING
        aggregate_task = asyncio.create_task(aggregator.run(result_queue))
        workers = [
            asyncio.create_task(self._worker(i, job, parser, work_queue, result_queue))
            for i in range(job.max_concurrency)
        ]

        await self._generate(job, work_queue)
        self.state = PipelineState.FETCHING_AND_PARSING

        await asyncio.gather(*workers)

        self.state = PipelineState.DRAINING
        await result_queue.put(END_OF_RESULTS)
        self.stats.aggregator = await aggregate_task

        self.stats.end_time = time.time()
        self.state = PipelineState.DONE
        logger.info(f"Pipeline finished: {self.stats} {self.stats.aggregator}")
        return self.stats

    def _build_queues(self, job: IngestJob) -> tuple[asyncio.Queue, asyncio.Queue]:
        if job.max_concurrency < 1:
            raise PipelineError(f"Invalid concurrency: {job.max_concurrency}")
        if job.capacity < 1:
            raise PipelineError(f"Invalid queue capacity: {job.capacity}")

        return asyncio.Queue(maxsize=job.capacity), asyncio.Queue(maxsize=job.capacity)

    async def _generate(self, job: IngestJob, work_queue: asyncio.Queue) -> None:
        """작업 큐 적재 (pace_every 개마다 잠깐 대기)"""
        for count, address in enumerate(job.work_items, start=1):
            await work_queue.put(address)

            if self.config.pace_every > 0 and count % self.config.pace_every == 0:
                await asyncio.sleep(self.config.pace_delay)

        for _ in range(job.max_concurrency):
            await work_queue.put(_STOP)

        logger.debug(f"Generated {job.capacity:,} work items")

    async def _worker(
        self,
        worker_id: int,
        job: IngestJob,
        parser: Parser,
        work_queue: asyncio.Queue,
        result_queue: asyncio.Queue,
    ) -> None:
        """작업 큐가 빌 때까지 수집 + 파싱"""
        while True:
            address = await work_queue.get()
            try:
                if address is _STOP:
                    return
                await self._process(job, parser, address, result_queue)
            except Exception as e:
                logger.error(f"Worker {worker_id}: unexpected error on {address}: {e}", exc_info=True)
            finally:
                work_queue.task_done()

    async def _process(
        self,
        job: IngestJob,
        parser: Parser,
        address: str,
        result_queue: asyncio.Queue,
    ) -> None:
        try:
            content = await self.fetcher.fetch(address)
        except FetchError as e:
            self.stats.fetch_failed += 1
            logger.warning(f"Failed to fetch content for {address}: {e}")
            return

        self.stats.fetched += 1

        try:
            records = parser.parse(content.with_date(job.observed_date))
        except ParseError as e:
            self.stats.parse_failed += 1
            logger.warning(f"Failed to parse content for {address}: {e}")
            return

        for record in records:
            await result_queue.put(record)
        self.stats.parsed_records += len(records)
