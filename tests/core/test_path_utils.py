from pathlib import Path

from mshelf_backend import path_utils


def test_normalize_logical_path_variants() -> None:
    assert path_utils.normalize_logical_path(None) == ""
    assert path_utils.normalize_logical_path("") == ""
    assert path_utils.normalize_logical_path("/") == ""
    assert path_utils.normalize_logical_path("/a/b/") == "a/b"
    assert path_utils.normalize_logical_path("a//./b") == "a/b"
    assert path_utils.normalize_logical_path("a\\b") == "a/b"


def test_normalize_logical_path_rejects_unsafe_inputs() -> None:
    assert path_utils.normalize_logical_path("../x") is None
    assert path_utils.normalize_logical_path("a/../../b") is None
    assert path_utils.normalize_logical_path("C:/abs/path") is None
    assert path_utils.normalize_logical_path("abc\x00def") is None


def test_cache_key_and_parent() -> None:
    assert path_utils.cache_key("") == "/"
    assert path_utils.cache_key("a/b") == "/a/b"
    assert path_utils.parent_logical("a/b") == "a"
    assert path_utils.parent_logical("a") == ""
    assert path_utils.join_logical("", "x.jpg") == "x.jpg"
    assert path_utils.join_logical("a", "x.jpg") == "a/x.jpg"


def test_safe_item_name() -> None:
    assert path_utils.safe_item_name("clip.mp4") == "clip.mp4"
    assert path_utils.safe_item_name(" clip.mp4 ") == "clip.mp4"
    for bad in (None, "", ".", "..", ".metadata.json", "a/b", "a\\b", "x\x00y"):
        assert path_utils.safe_item_name(bad) is None


def test_resolve_under_and_is_within_root(tmp_path: Path) -> None:
    root = tmp_path / "root"
    child = path_utils.resolve_under(root, "a/b")
    assert child == root / "a" / "b"
    assert path_utils.resolve_under(root, "") == root
    assert path_utils.is_within_root(child, root)
    assert path_utils.is_within_root(root, root)
    assert not path_utils.is_within_root(tmp_path / "outside.txt", root)
    assert not path_utils.is_within_root(root / ".." / "escape", root)
