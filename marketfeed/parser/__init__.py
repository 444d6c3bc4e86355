"""
Parser Module - Strategy Set
============================

레코드 유형별 파싱 전략 (고정된 집합)
- ConcentrationStrategy: 브로커 집중도 HTML (BeautifulSoup + lxml)
- DailyCloseStrategy: 일일 종가 CSV (거래소별 레이아웃)
- ThreePrimaryStrategy: 삼대법인 매매 CSV (거래소별 레이아웃)
"""

from .base import RecordFamily, ParseStrategy, Parser, CsvStrategy, parse_number
from .models import (
    CONCENTRATION_PAGES,
    ConcentrationFragment,
    ConcentrationRecord,
    DailyCloseRecord,
    ThreePrimaryRecord,
    ParsedRecord,
)
from .concentration import ConcentrationStrategy
from .daily_close import DailyCloseStrategy
from .three_primary import ThreePrimaryStrategy

STRATEGIES = {
    RecordFamily.CONCENTRATION: ConcentrationStrategy,
    RecordFamily.DAILY_CLOSE: DailyCloseStrategy,
    RecordFamily.THREE_PRIMARY: ThreePrimaryStrategy,
}


def strategy_for(family: RecordFamily) -> ParseStrategy:
    """레코드 유형에 해당하는 전략 인스턴스 반환"""
    return STRATEGIES[family]()


__all__ = [
    "RecordFamily",
    "ParseStrategy",
    "Parser",
    "CsvStrategy",
    "parse_number",
    "CONCENTRATION_PAGES",
    "ConcentrationFragment",
    "ConcentrationRecord",
    "DailyCloseRecord",
    "ThreePrimaryRecord",
    "ParsedRecord",
    "ConcentrationStrategy",
    "DailyCloseStrategy",
    "ThreePrimaryStrategy",
    "STRATEGIES",
    "strategy_for",
]
