import logging
import os
import textwrap
import threading
from pathlib import Path

import pytest

from routefinder.config import Settings
from routefinder.errors import IndexBuildError
from routefinder.extractors.spring.parser import SpringEndpointParser
from routefinder.orchestrator.index_manager import IndexManager, IndexState
from routefinder.store.file_cache import FileCache


def write(p: Path, s: str) -> None:
    p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(textwrap.dedent(s), encoding="utf-8")


def controller(name: str, path: str) -> str:
    return f"""
    @RestController
    @RequestMapping("/api")
    public class {name} {{
        @GetMapping("{path}")
        public String handle() {{ return "ok"; }}
    }}
    """


def bump_mtime(p: Path, seconds: int = 5) -> None:
    st = p.stat()
    os.utime(p, ns=(st.st_atime_ns, st.st_mtime_ns + seconds * 1_000_000_000))


class CountingParser(SpringEndpointParser):
    def __init__(self):
        super().__init__()
        self.parsed: list[str] = []

    def parse_file(self, path):
        self.parsed.append(Path(path).name)
        return super().parse_file(path)


@pytest.fixture()
def repo(tmp_path: Path) -> Path:
    root = tmp_path / "repo"
    write(root / "src" / "main" / "java" / "Users.java", controller("Users", "/users"))
    write(root / "src" / "main" / "java" / "Orders.java", controller("Orders", "/orders"))
    write(root / "src" / "main" / "java" / "Plain.java", "public class Plain {}\n")
    return root


@pytest.fixture()
def settings(tmp_path: Path) -> Settings:
    return Settings(cache_dir=tmp_path / "cache")


def test_build_indexes_all_java_files(repo: Path, settings: Settings):
    manager = IndexManager(repo, settings=settings)
    result = manager.build_index()

    assert result.files_total == 3
    assert result.files_parsed == 3
    assert result.total_endpoints == 2
    assert result.indexed_files == 2
    assert not result.cancelled and not result.skipped
    assert manager.state is IndexState.IDLE

    users = manager.get_endpoints_for_file(repo / "src" / "main" / "java" / "Users.java")
    assert [e.full_path for e in users] == ["/api/users"]
    assert manager.get_endpoints_for_file(repo / "src" / "main" / "java" / "Plain.java") is None
    assert sorted(e.full_path for e in manager.get_all_endpoints()) == ["/api/orders", "/api/users"]
    assert manager.get_total_endpoints_count() == 2
    assert (settings.cache_dir / settings.cache_file_name).exists()


def test_unchanged_files_are_served_from_cache(repo: Path, settings: Settings):
    IndexManager(repo, settings=settings).build_index()

    parser = CountingParser()
    manager = IndexManager(repo, settings=settings, parser=parser)
    # restored at construction, before any build
    assert manager.get_total_endpoints_count() == 2

    result = manager.build_index()
    assert parser.parsed == []
    assert result.files_cached == 3

    users = repo / "src" / "main" / "java" / "Users.java"
    write(users, controller("Users", "/people"))
    bump_mtime(users)

    parser = CountingParser()
    manager = IndexManager(repo, settings=settings, parser=parser)
    result = manager.build_index()
    assert parser.parsed == ["Users.java"]
    assert result.files_parsed == 1
    assert result.files_cached == 2
    assert sorted(e.full_path for e in manager.get_all_endpoints()) == ["/api/orders", "/api/people"]


def test_disabled_cache_parses_every_time_and_persists_nothing(repo: Path, tmp_path: Path):
    settings = Settings(cache_dir=tmp_path / "cache", enable_cache=False)
    parser = CountingParser()
    manager = IndexManager(repo, settings=settings, parser=parser)

    manager.build_index()
    manager.build_index()

    assert len(parser.parsed) == 6
    assert not (tmp_path / "cache").exists()


def test_update_file_reparses_and_drops_empty_files(repo: Path, settings: Settings):
    manager = IndexManager(repo, settings=settings)
    manager.build_index()
    counts: list[int] = []
    manager.on_index_changed(counts.append)

    users = repo / "src" / "main" / "java" / "Users.java"
    write(users, "public class Users {}\n")

    assert manager.update_file(users) == 0
    assert manager.get_endpoints_for_file(users) is None
    assert counts == [1]

    write(users, controller("Users", "/users/{id}"))
    assert manager.update_file(str(users)) == 1
    assert [e.full_path for e in manager.get_endpoints_for_file(users)] == ["/api/users/{id}"]
    assert counts == [1, 2]


def test_remove_file_reports_whether_anything_was_indexed(repo: Path, settings: Settings):
    manager = IndexManager(repo, settings=settings)
    manager.build_index()
    counts: list[int] = []
    manager.on_index_changed(counts.append)

    orders = repo / "src" / "main" / "java" / "Orders.java"
    assert manager.remove_file(orders) is True
    assert manager.remove_file(orders) is False
    assert counts == [1]
    assert manager.get_endpoints_for_file(orders) is None


def test_missing_files_are_dropped_and_duplicates_processed_once(repo: Path, settings: Settings):
    parser = CountingParser()
    manager = IndexManager(repo, settings=settings, parser=parser)
    users = repo / "src" / "main" / "java" / "Users.java"

    result = manager.build_index(files=[str(users), str(users), str(repo / "Gone.java")])

    assert result.files_total == 2
    assert result.files_parsed == 1
    assert result.files_removed == 1
    assert parser.parsed == ["Users.java"]

    users.unlink()
    result = manager.build_index(files=[str(users)])
    assert result.files_removed == 1
    assert manager.get_total_endpoints_count() == 0


def test_empty_file_set_builds_an_empty_index(tmp_path: Path, settings: Settings):
    manager = IndexManager(tmp_path, settings=settings, file_provider=lambda: [])
    result = manager.build_index()

    assert result.files_total == 0
    assert result.total_endpoints == 0


def test_cancel_token_is_checked_between_batches(repo: Path, tmp_path: Path):
    settings = Settings(cache_dir=tmp_path / "cache", concurrency_limit=1, concurrency_multiplier=1)
    assert settings.batch_size == 1

    token = threading.Event()

    class CancellingParser(SpringEndpointParser):
        def parse_file(self, path):
            token.set()
            return super().parse_file(path)

    manager = IndexManager(repo, settings=settings, parser=CancellingParser())
    result = manager.build_index(cancel_token=token)

    assert result.cancelled is True
    assert result.files_parsed == 1
    assert manager.state is IndexState.IDLE
    # partial progress is persisted
    assert (tmp_path / "cache" / settings.cache_file_name).exists()


def test_already_cancelled_token_processes_nothing(repo: Path, settings: Settings):
    token = threading.Event()
    token.set()
    manager = IndexManager(repo, settings=settings)

    result = manager.build_index(cancel_token=token)

    assert result.cancelled is True
    assert result.files_total == 3
    assert result.files_parsed == 0
    assert manager.get_total_endpoints_count() == 0


def test_reentrant_build_and_updates_are_rejected_while_building(repo: Path, settings: Settings):
    inner: list[tuple] = []

    class ReentrantParser(SpringEndpointParser):
        manager = None

        def parse_file(self, path):
            if not inner:
                inner.append(
                    (
                        self.manager.build_index(),
                        self.manager.update_file(path),
                        self.manager.remove_file(path),
                        self.manager.state,
                    )
                )
            return super().parse_file(path)

    parser = ReentrantParser()
    manager = IndexManager(repo, settings=settings, parser=parser)
    parser.manager = manager

    result = manager.build_index()

    (nested_build, nested_update, nested_remove, state) = inner[0]
    assert nested_build.skipped is True
    assert nested_update is None
    assert nested_remove is False
    assert state is IndexState.BUILDING
    assert result.total_endpoints == 2
    assert manager.state is IndexState.IDLE


def test_failing_listener_does_not_block_others(repo: Path, settings: Settings):
    manager = IndexManager(repo, settings=settings)
    seen: list[int] = []

    def broken(count: int) -> None:
        raise RuntimeError("listener failed")

    manager.on_index_changed(broken)
    manager.on_index_changed(seen.append)
    manager.build_index()
    assert seen == [2]

    manager.remove_index_listener(seen.append)
    manager.remove_index_listener(seen.append)
    manager.build_index()
    assert seen == [2]


def test_clear_cache_and_rebuild_reparses_everything(repo: Path, settings: Settings):
    IndexManager(repo, settings=settings).build_index()

    parser = CountingParser()
    manager = IndexManager(repo, settings=settings, parser=parser)
    result = manager.clear_cache_and_rebuild()

    assert sorted(parser.parsed) == ["Orders.java", "Plain.java", "Users.java"]
    assert result.files_parsed == 3
    assert result.total_endpoints == 2
    assert manager.cache_path.exists()


def test_provider_failure_raises_index_build_error_and_resets_state(tmp_path: Path, settings: Settings):
    def provider():
        raise RuntimeError("walk failed")

    manager = IndexManager(tmp_path, settings=settings, file_provider=provider)

    with pytest.raises(IndexBuildError):
        manager.build_index()
    assert manager.state is IndexState.IDLE
    assert manager.build_index(files=[]).skipped is False


def test_zero_endpoints_logs_a_warning(tmp_path: Path, settings: Settings, caplog):
    plain = tmp_path / "Plain.java"
    write(plain, "public class Plain {}\n")
    manager = IndexManager(tmp_path, settings=settings)

    with caplog.at_level(logging.WARNING, logger="routefinder"):
        manager.build_index(files=[str(plain)])

    assert any("No endpoints found" in r.getMessage() for r in caplog.records)


def test_search_reads_the_current_index(repo: Path, settings: Settings):
    manager = IndexManager(repo, settings=settings)
    manager.build_index()

    assert [e.class_name for e in manager.search("orders")] == ["Orders"]
    assert manager.search("   ") == []


def test_files_deleted_between_runs_are_dropped(repo: Path, settings: Settings):
    IndexManager(repo, settings=settings).build_index()
    users = repo / "src" / "main" / "java" / "Users.java"
    users.unlink()

    manager = IndexManager(repo, settings=settings)
    result = manager.build_index()

    assert result.files_total == 2
    assert result.files_removed == 1
    assert result.total_endpoints == 1
    assert manager.get_endpoints_for_file(users) is None
    assert manager.search("users") == []

    # the saved artifact no longer carries the deleted file either
    assert IndexManager(repo, settings=settings).get_total_endpoints_count() == 1


def test_explicit_file_builds_keep_other_entries(repo: Path, settings: Settings):
    manager = IndexManager(repo, settings=settings)
    manager.build_index()

    orders = repo / "src" / "main" / "java" / "Orders.java"
    result = manager.build_index(files=[str(orders)])

    assert result.files_removed == 0
    assert manager.get_total_endpoints_count() == 2


def test_injected_empty_cache_is_used(repo: Path, tmp_path: Path, settings: Settings):
    cache_path = tmp_path / "elsewhere" / "c.json"
    cache = FileCache(cache_path)
    manager = IndexManager(repo, settings=settings, cache=cache)

    assert manager.cache_path == cache_path
    manager.build_index()

    assert len(cache) == 3
    assert cache_path.exists()
    assert not (settings.cache_dir / settings.cache_file_name).exists()


def test_cache_is_saved_before_the_build_gate_opens(repo: Path, tmp_path: Path, settings: Settings):
    users = repo / "src" / "main" / "java" / "Users.java"
    seen: list[tuple] = []

    class ObservingCache(FileCache):
        manager = None

        def save(self):
            if self.manager is not None:
                seen.append((self.manager.state, self.manager.update_file(users)))
            super().save()

    cache = ObservingCache(tmp_path / "cache" / "c.json")
    manager = IndexManager(repo, settings=settings, cache=cache)
    cache.manager = manager

    manager.build_index()

    assert seen == [(IndexState.BUILDING, None)]
    assert manager.state is IndexState.IDLE


def test_build_is_rejected_while_a_removal_is_committing(repo: Path, tmp_path: Path, settings: Settings):
    nested: list[tuple] = []

    class ReentrantCache(FileCache):
        manager = None

        def remove(self, file_path):
            if self.manager is not None:
                nested.append((self.manager.state, self.manager.build_index().skipped))
            return super().remove(file_path)

    cache = ReentrantCache(tmp_path / "cache" / "c.json")
    manager = IndexManager(repo, settings=settings, cache=cache)
    manager.build_index()
    cache.manager = manager

    assert manager.remove_file(repo / "src" / "main" / "java" / "Orders.java") is True
    assert nested == [(IndexState.UPDATING_FILE, True)]
    assert manager.state is IndexState.IDLE
