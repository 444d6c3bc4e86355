"""
Record Models
=============

파서 출력 레코드와 Kafka 전송용 JSON 직렬화
- DailyCloseRecord / ThreePrimaryRecord: CSV 한 행 = 완성 레코드
- ConcentrationFragment: 5개 페이지 중 하나 (집계 필요)
- ConcentrationRecord: 5개 조각을 합친 완성 레코드
"""

import json
from dataclasses import dataclass
from typing import Union

# 종목당 집중도 페이지 수 (1/2/3/5/60일)
CONCENTRATION_PAGES = 5


@dataclass(frozen=True)
class ConcentrationFragment:
    """집중도 페이지 하나의 파싱 결과"""
    entity_id: str
    page_index: int
    net_shares: int
    total_buy: int
    total_sell: int
    avg_buy_price: float
    avg_sell_price: float


@dataclass(frozen=True)
class ConcentrationRecord:
    """집계 완료된 집중도 레코드"""
    entity_id: str
    exchange_date: str
    diff: tuple[int, ...]
    sum_buy_shares: int
    sum_sell_shares: int
    avg_buy_price: float
    avg_sell_price: float

    def to_dict(self) -> dict:
        return {
            'stockId': self.entity_id,
            'exchangeDate': self.exchange_date,
            'diff': list(self.diff),
            'sumBuyShares': self.sum_buy_shares,
            'sumSellShares': self.sum_sell_shares,
            'avgBuyPrice': self.avg_buy_price,
            'avgSellPrice': self.avg_sell_price,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


@dataclass(frozen=True)
class DailyCloseRecord:
    """일일 종가 레코드"""
    entity_id: str
    date: str
    trade_shares: int
    transactions: int
    turnover: int
    open: float
    high: float
    low: float
    close: float
    price_diff: float

    def to_dict(self) -> dict:
        return {
            'stockId': self.entity_id,
            'date': self.date,
            'tradeShares': self.trade_shares,
            'transactions': self.transactions,
            'turnover': self.turnover,
            'open': self.open,
            'close': self.close,
            'high': self.high,
            'low': self.low,
            'priceDiff': self.price_diff,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


@dataclass(frozen=True)
class ThreePrimaryRecord:
    """삼대법인(외국인/투신/자영상) 매매 레코드"""
    entity_id: str
    date: str
    foreign_shares: int
    trust_shares: int
    dealer_shares: int
    hedging_shares: int

    def to_dict(self) -> dict:
        return {
            'stockId': self.entity_id,
            'date': self.date,
            'foreignTradeShares': self.foreign_shares,
            'trustTradeShares': self.trust_shares,
            'dealerTradeShares': self.dealer_shares,
            'hedgingTradeShares': self.hedging_shares,
        }

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)


ParsedRecord = Union[ConcentrationFragment, DailyCloseRecord, ThreePrimaryRecord]
