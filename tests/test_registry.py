import threading
from pathlib import Path

import pytest

from shareio.registry import ShareRegistry, ShareEntry, RegistryFullError


class ScriptedRandom:
    """Returns codes from a fixed script."""

    def __init__(self, *codes):
        self.codes = list(codes)

    def randint(self, a, b):
        return self.codes.pop(0)


def test_lookup_returns_offered_path(tmp_path):
    registry = ShareRegistry()
    paths = [tmp_path / f"file{i}.txt" for i in range(20)]

    codes = [registry.offer(p) for p in paths]

    for code, path in zip(codes, paths):
        entry = registry.lookup(code)
        assert entry.file_path == path
        assert entry.code == code
        assert registry.code_min <= code <= registry.code_max


def test_codes_are_unique_in_small_range():
    registry = ShareRegistry(code_min=50000, code_max=50009)

    codes = [registry.offer(f"/tmp/f{i}") for i in range(10)]

    assert sorted(codes) == list(range(50000, 50010))


def test_collision_draws_again():
    registry = ShareRegistry(code_min=50000, code_max=50001,
                             rng=ScriptedRandom(50000, 50000, 50000, 50001))

    assert registry.offer('/tmp/a') == 50000
    assert registry.offer('/tmp/b') == 50001
    assert registry.lookup(50000).file_path == Path('/tmp/a')


def test_full_range_raises():
    registry = ShareRegistry(code_min=50000, code_max=50000)
    registry.offer('/tmp/a')

    with pytest.raises(RegistryFullError):
        registry.offer('/tmp/b')


def test_password_accessor():
    registry = ShareRegistry()
    protected = registry.offer('/tmp/a', 'secret')
    open_code = registry.offer('/tmp/b')
    blank = registry.offer('/tmp/c', '')

    assert registry.password(protected) == 'secret'
    assert registry.password(open_code) is None
    assert registry.password(blank) is None
    assert registry.password(1) is None
    assert registry.lookup(protected).requires_password
    assert not registry.lookup(blank).requires_password


def test_lookup_does_not_consume():
    registry = ShareRegistry()
    code = registry.offer('/tmp/a')

    assert registry.lookup(code) == registry.lookup(code)
    assert code in registry
    assert len(registry) == 1


def test_unknown_code():
    assert ShareRegistry().lookup(12345) is None


def test_discard_frees_code():
    registry = ShareRegistry(code_min=50000, code_max=50000)
    code = registry.offer('/tmp/a')

    assert registry.discard(code).file_path == Path('/tmp/a')
    assert registry.lookup(code) is None
    assert registry.discard(code) is None
    assert registry.offer('/tmp/b') == code


def test_entry_filename():
    entry = ShareEntry(code=50000, file_path=Path('/srv/uploads/abc_report.pdf'))
    assert entry.filename == 'abc_report.pdf'


@pytest.mark.parametrize('low, high', [(0, 10), (60000, 50000), (50000, 70000)])
def test_invalid_range(low, high):
    with pytest.raises(ValueError):
        ShareRegistry(code_min=low, code_max=high)


def test_concurrent_offers_are_unique():
    registry = ShareRegistry(code_min=50000, code_max=50999)
    results = []
    lock = threading.Lock()

    def worker(n):
        codes = [registry.offer(f"/tmp/{n}-{i}") for i in range(50)]
        with lock:
            results.extend(codes)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert len(results) == 400
    assert len(set(results)) == 400
    assert len(registry) == 400


def test_stats():
    registry = ShareRegistry(code_min=50000, code_max=50100)
    registry.offer('/tmp/a', 'pw')
    registry.offer('/tmp/b')

    stats = registry.get_stats()

    assert stats['active_shares'] == 2
    assert stats['password_protected'] == 1
    assert stats['code_range'] == [50000, 50100]
