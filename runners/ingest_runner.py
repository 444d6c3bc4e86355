#!/usr/bin/env python3
"""
Ingest Runner - 수집 파이프라인 실행기
======================================

레코드 유형 하나를 지정 날짜로 수집하여 Kafka로 전송

Usage:
    # 오늘자 일일 종가
    python runners/ingest_runner.py --target daily_close

    # 특정 날짜 삼대법인
    python runners/ingest_runner.py --target three_primary --date 20240102

    # 집중도 (종목 파일 지정, 없으면 DB 조회)
    python runners/ingest_runner.py --target concentration --stock-file stocks.json

    # Kafka 서버 지정
    python runners/ingest_runner.py --target daily_close --kafka-servers desktop:9092
"""

import asyncio
import argparse
import logging
import sys
from datetime import date, datetime
from typing import Optional

from dotenv import load_dotenv

from marketfeed.common.kafka_config import get_config
from marketfeed.ingestor.source_client import SourceClient
from marketfeed.ingestor.kafka_producer import KafkaRecordPublisher
from marketfeed.managers.stock_list import load_stock_ids_from_file, fetch_active_stock_ids
from marketfeed.pipeline import (
    IngestJob,
    IngestPipeline,
    PipelineStats,
    concentration_job,
    daily_close_job,
    three_primary_job,
)

logger = logging.getLogger(__name__)

TARGETS = ("concentration", "daily_close", "three_primary")


def parse_date(value: str) -> date:
    """YYYYMMDD -> date"""
    try:
        return datetime.strptime(value, "%Y%m%d").date()
    except ValueError:
        raise argparse.ArgumentTypeError(f"Invalid date (expected YYYYMMDD): {value}")


def parse_args(argv: Optional[list[str]] = None):
    """명령줄 인자 파싱"""
    parser = argparse.ArgumentParser(
        description='Exchange market-data ingest pipeline',
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )

    parser.add_argument(
        '-t', '--target',
        choices=TARGETS,
        required=True,
        help='수집할 레코드 유형',
    )
    parser.add_argument(
        '-d', '--date',
        type=parse_date,
        default=None,
        help='거래일 YYYYMMDD (기본: 오늘)',
    )

    # 입력 소스
    parser.add_argument(
        '--stock-file',
        type=str,
        default=None,
        help='집중도 대상 종목 JSON 파일 (없으면 DB 조회)',
    )

    # Kafka 설정
    parser.add_argument(
        '--kafka-servers',
        type=str,
        default=None,
        help='Kafka 브로커 주소 (예: localhost:9092)',
    )

    # 성능 설정
    parser.add_argument(
        '--max-concurrent',
        type=int,
        default=None,
        help='최대 동시 요청 수 (기본: 유형별 설정값)',
    )

    # 로깅
    parser.add_argument(
        '--debug',
        action='store_true',
        help='디버그 로깅 활성화',
    )

    return parser.parse_args(argv)


async def build_job(args) -> IngestJob:
    """인자로부터 IngestJob 생성"""
    run_date = args.date or date.today()

    if args.target == "daily_close":
        return daily_close_job(run_date, args.max_concurrent)
    if args.target == "three_primary":
        return three_primary_job(run_date, args.max_concurrent)

    if args.stock_file:
        stock_ids = load_stock_ids_from_file(args.stock_file)
    else:
        stock_ids = await fetch_active_stock_ids()
    return concentration_job(stock_ids, run_date, args.max_concurrent)


async def run(args) -> PipelineStats:
    """클라이언트를 한 번만 만들어 파이프라인에 주입"""
    config = get_config()
    job = await build_job(args)

    logger.info(f"Connecting to Kafka: {args.kafka_servers or config.kafka.bootstrap_servers}")

    async with SourceClient() as fetcher:
        async with KafkaRecordPublisher(bootstrap_servers=args.kafka_servers) as publisher:
            pipeline = IngestPipeline(fetcher, publisher)
            stats = await pipeline.run(job)

    logger.info("=" * 60)
    logger.info(f"Ingest completed: {args.target} ({job.observed_date})")
    logger.info(f"Pipeline stats: {stats}")
    if stats.aggregator:
        logger.info(f"Aggregator stats: {stats.aggregator}")
    logger.info("=" * 60)
    return stats


def main(argv: Optional[list[str]] = None) -> int:
    """메인 함수"""
    load_dotenv()
    args = parse_args(argv)

    # 로깅 설정
    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s [%(levelname)s] %(name)s: %(message)s',
        datefmt='%Y-%m-%d %H:%M:%S',
    )

    # 디버그 로깅
    if args.debug:
        logging.getLogger().setLevel(logging.DEBUG)
        logging.getLogger('httpx').setLevel(logging.DEBUG)
        logging.getLogger('aiokafka').setLevel(logging.DEBUG)

    try:
        asyncio.run(run(args))
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 130
    except Exception as e:
        logger.error(f"Ingest failed: {e}", exc_info=True)
        return 1
    return 0


if __name__ == '__main__':
    sys.exit(main())
