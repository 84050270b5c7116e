"""ユーザーバケット割り当て"""

from __future__ import annotations

import threading
from collections import OrderedDict

BUCKET_COUNT = 100
DEFAULT_MEMO_SIZE = 10_000

_INT32_MASK = 0xFFFFFFFF
_INT32_SIGN = 0x80000000


def _to_int32(value: int) -> int:
    value &= _INT32_MASK
    return value - (1 << 32) if value & _INT32_SIGN else value


def _utf16_units(text: str) -> list[int]:
    raw = text.encode("utf-16-le", "surrogatepass")
    return [int.from_bytes(raw[i : i + 2], "little") for i in range(0, len(raw), 2)]


def bucket(user_id: str, flag_name: str) -> int:
    """ユーザーとフラグの組に対して 0〜99 のバケットを返す。

    ``"{user_id}:{flag_name}"`` の UTF-16 コードユニット列に対して
    ``h = int32(h * 31 + c)`` を累積し、``abs(h) % 100`` を返す。
    このハッシュを変えると部分ロールアウト中の全ユーザーが再割り当て
    されるため、アルゴリズムは固定。
    """
    h = 0
    for unit in _utf16_units(f"{user_id}:{flag_name}"):
        h = _to_int32((h << 5) - h + unit)
    return abs(h) % BUCKET_COUNT


class BucketAssigner:
    """バケット計算結果をメモ化する割り当て器。

    メモはあくまで性能用で、clear しても結果は変わらない。
    max_entries を超えると最も古く使われたエントリから破棄する。
    """

    def __init__(self, memoize: bool = True, max_entries: int = DEFAULT_MEMO_SIZE) -> None:
        if max_entries < 1:
            raise ValueError("max_entries must be >= 1")
        self._memoize = memoize
        self._max_entries = max_entries
        self._memo: OrderedDict[tuple[str, str], int] = OrderedDict()
        self._lock = threading.Lock()

    def assign(self, user_id: str, flag_name: str) -> int:
        if not self._memoize:
            return bucket(user_id, flag_name)
        key = (user_id, flag_name)
        with self._lock:
            cached = self._memo.get(key)
            if cached is not None:
                self._memo.move_to_end(key)
                return cached
        value = bucket(user_id, flag_name)
        with self._lock:
            self._memo[key] = value
            while len(self._memo) > self._max_entries:
                self._memo.popitem(last=False)
        return value

    def clear(self) -> None:
        with self._lock:
            self._memo.clear()

    def __len__(self) -> int:
        return len(self._memo)
