from pathlib import Path
from types import SimpleNamespace

from mshelf_backend.features.ingest import watcher as w


class _FakeLoop:
    def __init__(self, closed: bool = False):
        self.calls = []
        self._closed = closed

    def is_closed(self):
        return self._closed

    def call_soon_threadsafe(self, fn, *args):
        self.calls.append((fn, args))


class _FakeObserver:
    def __init__(self):
        self.started = False
        self.stopped = False
        self.joined = False
        self.scheduled = []

    def schedule(self, handler, path, recursive=True):
        self.scheduled.append({"handler": handler, "path": path, "recursive": recursive})

    def start(self):
        self.started = True

    def stop(self):
        self.stopped = True

    def join(self, timeout=0):
        self.joined = True


def _event(path, is_directory=False, dest_path=None):
    return SimpleNamespace(src_path=str(path), is_directory=is_directory, dest_path=dest_path)


def test_handler_forwards_new_files(tmp_path: Path) -> None:
    loop = _FakeLoop()
    arrivals = []
    handler = w.InputEventHandler(tmp_path, loop, arrivals.append)

    handler.on_created(_event(tmp_path / "sub" / "clip.mov"))
    handler.on_moved(_event(tmp_path / "tmp.part", dest_path=str(tmp_path / "photo.jpg")))

    assert [args for _, args in loop.calls] == [("clip.mov",), ("photo.jpg",)]
    assert all(fn == arrivals.append for fn, _ in loop.calls)


def test_handler_ignores_dirs_hidden_and_foreign_paths(tmp_path: Path) -> None:
    loop = _FakeLoop()
    handler = w.InputEventHandler(tmp_path, loop, lambda name: None)

    handler.on_created(_event(tmp_path / "album", is_directory=True))
    handler.on_created(_event(tmp_path / ".metadata.json"))
    handler.on_modified(_event(tmp_path / ".cache" / "x.jpg"))
    handler.on_created(_event(tmp_path.parent / "elsewhere.jpg"))

    assert loop.calls == []


def test_handler_skips_closed_loop(tmp_path: Path) -> None:
    loop = _FakeLoop(closed=True)
    handler = w.InputEventHandler(tmp_path, loop, lambda name: None)
    handler.on_created(_event(tmp_path / "x.jpg"))
    assert loop.calls == []


def test_watcher_start_and_stop(monkeypatch, tmp_path: Path) -> None:
    observer = _FakeObserver()
    monkeypatch.setattr(w, "Observer", lambda: observer)
    watcher = w.InputWatcher(tmp_path, lambda name: None)

    assert watcher.start(_FakeLoop()) is True
    assert watcher.is_running
    assert observer.started
    assert observer.scheduled[0]["path"] == str(tmp_path)
    assert observer.scheduled[0]["recursive"] is True

    watcher.stop()
    assert observer.stopped and observer.joined
    assert watcher.is_running is False


def test_watcher_requires_directory(tmp_path: Path) -> None:
    watcher = w.InputWatcher(tmp_path / "missing", lambda name: None)
    assert watcher.start(_FakeLoop()) is False
    assert watcher.is_running is False
