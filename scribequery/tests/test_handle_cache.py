import threading
import time

from scribequery.vector.cache import HandleCache


def test_get_or_create_resolves_once_per_key():
    cache = HandleCache()
    calls = []

    def factory(key):
        calls.append(key)
        return f"handle:{key}"

    assert cache.get_or_create("a", factory) == "handle:a"
    assert cache.get_or_create("a", factory) == "handle:a"
    assert cache.get_or_create("b", factory) == "handle:b"
    assert calls == ["a", "b"]
    assert len(cache) == 2


def test_concurrent_first_use_runs_factory_once():
    cache = HandleCache()
    calls = []
    start = threading.Barrier(8)

    def factory(key):
        calls.append(key)
        time.sleep(0.05)
        return object()

    results = []

    def worker():
        start.wait()
        results.append(cache.get_or_create("docs", factory))

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert calls == ["docs"]
    assert len({id(r) for r in results}) == 1


def test_invalidate_forces_new_resolution():
    cache = HandleCache()
    counter = iter(range(10))
    first = cache.get_or_create("docs", lambda key: next(counter))
    cache.invalidate("docs")
    assert "docs" not in cache
    second = cache.get_or_create("docs", lambda key: next(counter))
    assert (first, second) == (0, 1)
