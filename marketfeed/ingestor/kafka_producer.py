"""
Kafka Producer for Ingest Pipeline
==================================

완성된 레코드(JSON)를 Kafka 토픽으로 전송하는 비동기 프로듀서
- aiokafka 기반 비동기 전송
- 메시지 단위 send_and_wait (ack 확인)
- 고정 횟수/고정 간격 재시도 후 PublishError
"""

import asyncio
import json
import time
import logging
from typing import Optional, Protocol
from dataclasses import dataclass, field

from aiokafka import AIOKafkaProducer
from aiokafka.errors import KafkaError, KafkaConnectionError

from marketfeed.common.errors import PublishError
from marketfeed.common.kafka_config import get_config, ProducerConfig

logger = logging.getLogger(__name__)


class Publisher(Protocol):
    """publish(topic, message) -> None, 실패 시 PublishError"""

    async def publish(self, topic: str, message: str) -> None:
        ...


@dataclass
class ProducerStats:
    """프로듀서 통계"""
    messages_sent: int = 0
    messages_failed: int = 0
    retries: int = 0
    bytes_sent: int = 0
    start_time: float = field(default_factory=time.time)

    @property
    def success_rate(self) -> float:
        total = self.messages_sent + self.messages_failed
        return self.messages_sent / total if total > 0 else 0

    def __str__(self) -> str:
        return (
            f"ProducerStats(sent={self.messages_sent:,}, "
            f"failed={self.messages_failed:,}, "
            f"retries={self.retries:,}, "
            f"bytes={self.bytes_sent:,}, "
            f"success={self.success_rate:.1%})"
        )


def message_key(message: str) -> Optional[str]:
    """JSON 메시지의 stockId 를 파티션 키로 사용"""
    try:
        value = json.loads(message)
    except ValueError:
        return None
    if isinstance(value, dict) and value.get("stockId"):
        return str(value["stockId"])
    return None


class KafkaRecordPublisher:
    """
    레코드를 Kafka로 전송하는 프로듀서

    특징:
    - 비동기 전송 (aiokafka)
    - JSON 문자열 그대로 UTF-8 전송
    - 총 max_attempts 회 시도, 시도 사이 retry_delay 초 대기
    """

    def __init__(
        self,
        bootstrap_servers: Optional[str] = None,
        producer_config: Optional[ProducerConfig] = None,
        producer: Optional[AIOKafkaProducer] = None,
    ):
        """
        Args:
            bootstrap_servers: Kafka 브로커 주소 (예: "localhost:9092")
            producer_config: Producer 설정 (없으면 기본값 사용)
            producer: 미리 생성된 AIOKafkaProducer (테스트용)
        """
        config = get_config()

        self.bootstrap_servers = bootstrap_servers or config.kafka.bootstrap_servers
        self.producer_config = producer_config or config.producer

        self._producer: Optional[AIOKafkaProducer] = producer
        self._started = False
        self.stats = ProducerStats()

        logger.info(f"KafkaRecordPublisher initialized: {self.bootstrap_servers}")

    async def start(self) -> None:
        """프로듀서 시작"""
        if self._started:
            logger.warning("Producer already started")
            return

        if self._producer is None:
            self._producer = AIOKafkaProducer(
                bootstrap_servers=self.bootstrap_servers,
                value_serializer=lambda v: v.encode('utf-8'),
                key_serializer=lambda k: k.encode('utf-8') if k else None,
                acks=self._acks(),
                request_timeout_ms=self.producer_config.request_timeout_ms,
            )

        try:
            await self._producer.start()
        except KafkaConnectionError as e:
            logger.error(f"Failed to connect to Kafka: {e}")
            raise

        self._started = True
        self.stats = ProducerStats()
        logger.info("Kafka producer started successfully")

    async def stop(self) -> None:
        """프로듀서 중지"""
        if self._producer and self._started:
            try:
                # 버퍼에 남은 메시지 전송
                await self._producer.flush()
                await self._producer.stop()
            except KafkaError as e:
                logger.error(f"Error stopping producer: {e}")
            finally:
                self._started = False
            logger.info(f"Kafka producer stopped. {self.stats}")

    async def __aenter__(self) -> "KafkaRecordPublisher":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.stop()

    def _acks(self):
        acks = self.producer_config.acks
        return acks if acks == "all" else int(acks)

    async def publish(self, topic: str, message: str) -> None:
        """
        메시지 전송 (재시도 포함)

        Args:
            topic: Kafka 토픽
            message: JSON 문자열

        Raises:
            PublishError: 모든 시도 실패
        """
        if not self._started or not self._producer:
            raise PublishError(topic, 0, "Producer not started")

        attempts = max(1, self.producer_config.max_attempts)
        key = message_key(message)
        last_error: Optional[Exception] = None

        for attempt in range(1, attempts + 1):
            try:
                metadata = await self._producer.send_and_wait(
                    topic=topic,
                    value=message,
                    key=key,
                )
            except KafkaError as e:
                last_error = e
                logger.warning(
                    f"Kafka error sending to {topic} "
                    f"(attempt {attempt}/{attempts}): {e}"
                )
                if attempt < attempts:
                    self.stats.retries += 1
                    await asyncio.sleep(self.producer_config.retry_delay)
                continue

            self.stats.messages_sent += 1
            self.stats.bytes_sent += len(message.encode('utf-8'))
            logger.debug(
                f"Sent to {topic}: partition={metadata.partition}, "
                f"offset={metadata.offset}"
            )
            return

        self.stats.messages_failed += 1
        raise PublishError(
            topic, attempts, f"Failed to publish to {topic} after {attempts} attempts: {last_error}"
        )

