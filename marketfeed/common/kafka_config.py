"""
Kafka / Fetcher Configuration for Ingest Pipeline
==================================================

환경변수로 설정 가능한 수집 파이프라인 관련 설정들
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import quote


@dataclass
class KafkaConfig:
    """Kafka 연결 설정"""

    # Connection
    bootstrap_servers: str = field(
        default_factory=lambda: os.getenv("KAFKA_BOOTSTRAP_SERVERS", "localhost:9092")
    )


@dataclass
class TopicConfig:
    """Kafka 토픽 이름 설정"""

    concentration: str = field(
        default_factory=lambda: os.getenv("TOPIC_CONCENTRATION", "stakeconcentration-v1")
    )
    daily_close: str = field(
        default_factory=lambda: os.getenv("TOPIC_DAILY_CLOSE", "dailycloses-v1")
    )
    three_primary: str = field(
        default_factory=lambda: os.getenv("TOPIC_THREE_PRIMARY", "threeprimary-v1")
    )


@dataclass
class ProducerConfig:
    """Kafka Producer 설정"""

    # Reliability
    acks: str = field(
        default_factory=lambda: os.getenv("KAFKA_PRODUCER_ACKS", "1")
    )

    # Timeout
    request_timeout_ms: int = field(
        default_factory=lambda: int(os.getenv("KAFKA_PRODUCER_TIMEOUT_MS", "5000"))
    )

    # 애플리케이션 레벨 재시도 (총 시도 횟수 / 시도 간 대기)
    max_attempts: int = field(
        default_factory=lambda: int(os.getenv("PUBLISH_MAX_ATTEMPTS", "3"))
    )
    retry_delay: float = field(
        default_factory=lambda: float(os.getenv("PUBLISH_RETRY_DELAY", "1.0"))
    )


@dataclass
class ProxyConfig:
    """아웃바운드 프록시 설정 (비밀번호는 환경변수로만)"""

    host: Optional[str] = field(
        default_factory=lambda: os.getenv("PROXY_HOST")
    )
    port: str = field(
        default_factory=lambda: os.getenv("PROXY_PORT", "3128")
    )
    username: Optional[str] = field(
        default_factory=lambda: os.getenv("PROXY_USERNAME")
    )
    password: Optional[str] = field(
        default_factory=lambda: os.getenv("PROXY_PASSWD")
    )

    @property
    def url(self) -> Optional[str]:
        if not self.host:
            return None
        if self.username:
            auth = quote(self.username, safe="")
            if self.password:
                auth += ":" + quote(self.password, safe="")
            return f"http://{auth}@{self.host}:{self.port}"
        return f"http://{self.host}:{self.port}"


@dataclass
class PostgresConfig:
    """PostgreSQL 설정 (종목 목록 조회용)"""

    host: str = field(
        default_factory=lambda: os.getenv("POSTGRES_HOST", "localhost")
    )
    port: int = field(
        default_factory=lambda: int(os.getenv("POSTGRES_PORT", "5432"))
    )
    database: str = field(
        default_factory=lambda: os.getenv("POSTGRES_DB", "stocks")
    )
    user: str = field(
        default_factory=lambda: os.getenv("POSTGRES_USER", "postgres")
    )
    password: str = field(
        default_factory=lambda: os.getenv("DB_PASSWD", "")
    )

    @property
    def dsn(self) -> str:
        return f"postgresql://{self.user}:{self.password}@{self.host}:{self.port}/{self.database}"


@dataclass
class FetcherConfig:
    """Source Client 설정"""

    request_timeout: float = field(
        default_factory=lambda: float(os.getenv("FETCH_TIMEOUT", "60.0"))
    )
    max_concurrent_requests: int = field(
        default_factory=lambda: int(os.getenv("FETCH_MAX_CONCURRENT", "50"))
    )


@dataclass
class PipelineConfig:
    """Orchestrator 설정"""

    # N개 작업마다 잠깐 쉬어서 업스트림에 버스트를 주지 않음
    pace_every: int = field(
        default_factory=lambda: int(os.getenv("PIPELINE_PACE_EVERY", "25"))
    )
    pace_delay: float = field(
        default_factory=lambda: float(os.getenv("PIPELINE_PACE_DELAY", "1.0"))
    )

    # CSV 일괄 다운로드는 거래소당 1건
    csv_concurrency: int = 2


@dataclass
class MarketFeedConfig:
    """전체 파이프라인 통합 설정"""

    kafka: KafkaConfig = field(default_factory=KafkaConfig)
    topics: TopicConfig = field(default_factory=TopicConfig)
    producer: ProducerConfig = field(default_factory=ProducerConfig)
    proxy: ProxyConfig = field(default_factory=ProxyConfig)
    postgres: PostgresConfig = field(default_factory=PostgresConfig)
    fetcher: FetcherConfig = field(default_factory=FetcherConfig)
    pipeline: PipelineConfig = field(default_factory=PipelineConfig)


# Singleton instance
_config: Optional[MarketFeedConfig] = None


def get_config() -> MarketFeedConfig:
    """설정 인스턴스 반환"""
    global _config
    if _config is None:
        _config = MarketFeedConfig()
    return _config


def reset_config() -> None:
    """설정 초기화 (환경변수 재로딩, 테스트용)"""
    global _config
    _config = None
