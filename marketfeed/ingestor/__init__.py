"""
Ingestor Module - Fetch & Publish
=================================

수집 파이프라인의 양 끝단
- source_client: 주소 하나를 가져와 정규화된 텍스트로 반환 (httpx)
- kafka_producer: 완성된 레코드를 Kafka 토픽으로 전송 (aiokafka, 재시도)
"""

from .source_client import (
    SourceClient,
    SourceClientStats,
    FetchedContent,
    uses_direct_route,
    select_charset,
)
from .kafka_producer import KafkaRecordPublisher, Publisher, ProducerStats

__all__ = [
    "SourceClient",
    "SourceClientStats",
    "FetchedContent",
    "uses_direct_route",
    "select_charset",
    "KafkaRecordPublisher",
    "Publisher",
    "ProducerStats",
]
