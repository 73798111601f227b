"""缓存路径映射、条目扫描与写入守卫测试"""

from __future__ import annotations

import threading
import time
from pathlib import Path

from conftest import seed_cache

from fastinstall.core.dep.cache import CacheStore, KeyedLockGuard, OptimisticGuard
from fastinstall.core.dep.models import CacheKey


class TestKeyMapping:
    def test_key_for_is_deterministic(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path)
        a = store.path_for(store.key_for("chalk", "2.4.2", "x64", "108"))
        b = store.path_for(store.key_for("chalk", "2.4.2", "x64", "108"))
        assert a == b

    def test_layout(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path)
        key = store.key_for("chalk", "2.4.2", "arm64", "115")
        assert store.path_for(key) == tmp_path / "chalk" / "2.4.2" / "arm64" / "115"

    def test_distinct_keys_distinct_paths(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path)
        keys = [
            store.key_for("chalk", "2.4.2", "x64", "108"),
            store.key_for("chalk", "2.4.1", "x64", "108"),
            store.key_for("chalk", "2.4.2", "arm64", "108"),
            store.key_for("chalk", "2.4.2", "x64", "115"),
            store.key_for("lodash", "2.4.2", "x64", "108"),
        ]
        assert len({store.path_for(k) for k in keys}) == len(keys)

    def test_scoped_package_nests(self, tmp_path: Path) -> None:
        store = CacheStore(tmp_path)
        path = store.path_for(store.key_for("@babel/core", "7.0.0", "x64", "108"))
        assert path == tmp_path / "@babel" / "core" / "7.0.0" / "x64" / "108"

    def test_exists(self, cache_store: CacheStore) -> None:
        key = cache_store.key_for("left-pad", "1.0.0", "x64", "108")
        assert not cache_store.exists(key)
        seed_cache(cache_store, "left-pad", "1.0.0")
        assert cache_store.exists(key)


class TestListEntries:
    def test_missing_root(self, tmp_path: Path) -> None:
        assert CacheStore(tmp_path / "nope").list_entries() == []

    def test_lists_all_levels(self, cache_store: CacheStore) -> None:
        seed_cache(cache_store, "chalk", "2.4.2")
        seed_cache(cache_store, "chalk", "2.4.2", arch="arm64", abi="115")
        seed_cache(cache_store, "@babel/core", "7.0.0")

        keys = cache_store.list_entries()
        assert keys == [
            CacheKey("@babel/core", "7.0.0", "x64", "108"),
            CacheKey("chalk", "2.4.2", "arm64", "115"),
            CacheKey("chalk", "2.4.2", "x64", "108"),
        ]

    def test_filter_by_name(self, cache_store: CacheStore) -> None:
        seed_cache(cache_store, "chalk", "2.4.2")
        seed_cache(cache_store, "lodash", "4.17.21")
        keys = cache_store.list_entries(name="lodash")
        assert [k.name for k in keys] == ["lodash"]

    def test_ignores_hidden_dirs(self, cache_store: CacheStore) -> None:
        (cache_store.root / ".tmp" / "x" / "y" / "z").mkdir(parents=True)
        assert cache_store.list_entries() == []


class TestGuards:
    def test_optimistic_guard_is_noop(self) -> None:
        with OptimisticGuard().hold(CacheKey("a", "1.0.0", "x64", "108")):
            pass

    def test_keyed_lock_serializes_same_key(self) -> None:
        guard = KeyedLockGuard()
        key = CacheKey("a", "1.0.0", "x64", "108")
        active = 0
        peak = 0
        counter_lock = threading.Lock()

        def work() -> None:
            nonlocal active, peak
            with guard.hold(key):
                with counter_lock:
                    active += 1
                    peak = max(peak, active)
                time.sleep(0.02)
                with counter_lock:
                    active -= 1

        threads = [threading.Thread(target=work) for _ in range(4)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        assert peak == 1

    def test_keyed_lock_independent_keys(self) -> None:
        guard = KeyedLockGuard()
        k1 = CacheKey("a", "1.0.0", "x64", "108")
        k2 = CacheKey("b", "1.0.0", "x64", "108")
        with guard.hold(k1):
            # 不同键互不阻塞，否则这里会死锁
            with guard.hold(k2):
                pass
