"""バケット割り当てのユニットテスト"""

import pytest
from k1s0_rollout import BucketAssigner, bucket


def test_bucket_known_values() -> None:
    """固定ハッシュの既知の値。"""
    assert bucket("u1", "f") == 36
    assert bucket("", "") == 58


def test_bucket_is_deterministic() -> None:
    """同じ入力は常に同じバケット。"""
    first = [bucket(f"user-{i}", "new_checkout") for i in range(200)]
    second = [bucket(f"user-{i}", "new_checkout") for i in range(200)]
    assert first == second


def test_bucket_range() -> None:
    """バケットは 0〜99 の範囲。"""
    for i in range(2000):
        value = bucket(f"user-{i}", "flag-a")
        assert 0 <= value < 100


def test_bucket_handles_unusual_strings() -> None:
    """空文字・非 ASCII・長い文字列でも例外にならないこと。"""
    for user_id in ["", "ユーザー", "\U0001d518\U0001d51e", "x" * 10_000, "a:b:c"]:
        value = bucket(user_id, "flag")
        assert 0 <= value < 100


def test_bucket_depends_on_flag_name() -> None:
    """フラグ名が変わるとバケットが再シャッフルされること。"""
    a = [bucket(f"user-{i}", "flag-a") for i in range(100)]
    b = [bucket(f"user-{i}", "flag-b") for i in range(100)]
    assert a != b


def test_assigner_matches_pure_function() -> None:
    """メモ化しても純粋関数と同じ結果。"""
    assigner = BucketAssigner()
    for i in range(50):
        assert assigner.assign(f"user-{i}", "flag") == bucket(f"user-{i}", "flag")
    assert len(assigner) == 50


def test_assigner_clear_keeps_assignments() -> None:
    """メモを消去しても割り当ては変わらないこと。"""
    assigner = BucketAssigner()
    before = assigner.assign("user-1", "flag")
    assigner.clear()
    assert len(assigner) == 0
    assert assigner.assign("user-1", "flag") == before


def test_assigner_without_memo() -> None:
    """memoize=False ではメモを保持しない。"""
    assigner = BucketAssigner(memoize=False)
    assert assigner.assign("user-1", "flag") == bucket("user-1", "flag")
    assert len(assigner) == 0


def test_assigner_memo_is_bounded() -> None:
    """メモは上限件数を超えて増えないこと。"""
    assigner = BucketAssigner(max_entries=100)
    for i in range(1000):
        assert assigner.assign(f"user-{i}", "flag") == bucket(f"user-{i}", "flag")
    assert len(assigner) == 100


def test_assigner_memo_evicts_least_recently_used() -> None:
    """最も古く使われたエントリから破棄されること。"""
    assigner = BucketAssigner(max_entries=2)
    assigner.assign("a", "flag")
    assigner.assign("b", "flag")
    assigner.assign("a", "flag")
    assigner.assign("c", "flag")
    assert set(assigner._memo) == {("a", "flag"), ("c", "flag")}


def test_assigner_rejects_invalid_size() -> None:
    """max_entries は 1 以上。"""
    with pytest.raises(ValueError):
        BucketAssigner(max_entries=0)
