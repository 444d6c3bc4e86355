"""
marketfeed - Exchange market-data ingest pipeline
==================================================

거래소 페이지(HTML/CSV) 수집 -> 파싱 -> 종목별 집계 -> Kafka 전송

Layers:
- ingestor: SourceClient (httpx), KafkaRecordPublisher (aiokafka)
- parser: 레코드 유형별 파싱 전략
- pipeline: 작업 생성, 워커 풀, 집계
- managers: 수집 대상 종목 목록
"""

__version__ = "0.1.0"
