"""
时间规范化工具

全系统唯一进行日期/时间换算的地方。

规则：日期一律按客户端提交的日历日期原样保存和比较（YYYY-MM-DD），
绝不经过带时区的对象重新解释，避免写入与读取之间出现日期漂移。
时间只保留 HH:MM:SS 部分。
"""
import re
from datetime import date, datetime, time, timedelta
from typing import Iterator, Union

from medimates.domain.errors import ValidationError

DateLike = Union[str, date, datetime]
TimeLike = Union[str, time, datetime]

# YYYY-MM-DD，可选带时间部分（T 或空格分隔，可选小数秒、Z 或时区偏移）
_DATE_PATTERN = re.compile(
    r"^(?P<year>\d{4})-(?P<month>\d{2})-(?P<day>\d{2})"
    r"(?:[T ](?P<hour>\d{2}):(?P<minute>\d{2})(?::(?P<second>\d{2})(?:\.\d+)?)?"
    r"(?:Z|[+-]\d{2}:?\d{2})?)?$"
)
_TIME_PATTERN = re.compile(
    r"^(?P<hour>\d{1,2}):(?P<minute>\d{2})(?::(?P<second>\d{2})(?:\.\d+)?)?$"
)


def _to_date(value: str) -> date:
    """将规范日期字符串转换为 date（仅用于日历运算）"""
    return date.fromisoformat(normalize_date(value))


def normalize_date(value: DateLike) -> str:
    """
    将客户端提交的日期规范化为 YYYY-MM-DD

    Args:
        value: 日期字符串（YYYY-MM-DD 或 ISO 日期时间）、date 或 datetime

    Returns:
        规范日期字符串；带时区的输入只截取日期部分，不做任何时区换算

    Raises:
        ValidationError: 输入为空、格式错误或日期不存在（如 2025-02-30）
    """
    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("日期不能为空", {"value": value})

    match = _DATE_PATTERN.match(value.strip())
    if not match:
        raise ValidationError(f"日期格式不正确: {value}", {"value": value})

    try:
        parsed = date(int(match["year"]), int(match["month"]), int(match["day"]))
    except ValueError:
        raise ValidationError(f"日期不存在: {value}", {"value": value})
    return parsed.isoformat()


def normalize_time(value: TimeLike) -> str:
    """
    从时间值中提取 HH:MM:SS

    Args:
        value: "HH:MM"、"HH:MM:SS"、完整时间戳字符串、time 或 datetime

    Returns:
        HH:MM:SS 字符串

    Raises:
        ValidationError: 输入为空或格式错误
    """
    if isinstance(value, datetime):
        return value.strftime("%H:%M:%S")
    if isinstance(value, time):
        return value.strftime("%H:%M:%S")
    if not isinstance(value, str) or not value.strip():
        raise ValidationError("时间不能为空", {"value": value})

    text = value.strip()
    match = _TIME_PATTERN.match(text)
    if not match:
        match = _DATE_PATTERN.match(text)
        if not match or match["hour"] is None:
            raise ValidationError(f"时间格式不正确: {value}", {"value": value})

    try:
        parsed = time(int(match["hour"]), int(match["minute"]), int(match["second"] or 0))
    except ValueError:
        raise ValidationError(f"时间不存在: {value}", {"value": value})
    return parsed.strftime("%H:%M:%S")


def format_date(value: DateLike) -> str:
    """将 date 或规范日期字符串格式化为对外输出的 YYYY-MM-DD"""
    return normalize_date(value)


def today() -> str:
    """服务器本地日历的今天"""
    return date.today().isoformat()


def days_between(start: str, end: str) -> int:
    """两个规范日期之间相差的天数（end - start）"""
    return (_to_date(end) - _to_date(start)).days


def day_of_month(value: str) -> int:
    return _to_date(value).day


def iter_dates(start: str, end: str) -> Iterator[str]:
    """
    按天遍历闭区间 [start, end] 内的规范日期

    Raises:
        ValidationError: end 早于 start
    """
    current = _to_date(start)
    last = _to_date(end)
    if last < current:
        raise ValidationError(f"结束日期不能早于开始日期: {start} > {end}")
    while current <= last:
        yield current.isoformat()
        current += timedelta(days=1)


def shift_date(value: str, days: int) -> str:
    """规范日期前后平移若干天"""
    return (_to_date(value) + timedelta(days=days)).isoformat()
