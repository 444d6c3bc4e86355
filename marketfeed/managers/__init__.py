"""
Managers Module - 입력 목록 관리
"""

from .stock_list import load_stock_ids_from_file, fetch_active_stock_ids

__all__ = [
    "load_stock_ids_from_file",
    "fetch_active_stock_ids",
]
