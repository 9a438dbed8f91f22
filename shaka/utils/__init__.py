# shaka/utils/__init__.py
"""공통 시간 처리 유틸리티"""

from .datetime_utils import DateTimeUtils

__all__ = ['DateTimeUtils']
