# tests/test_json_store.py

from __future__ import annotations

import os
from pathlib import Path

import pytest

from pocket_pilot.storage.json_store import JsonDocumentStore


def test_missing_document_returns_default(tmp_path: Path) -> None:
    store = JsonDocumentStore(tmp_path)
    assert store.read("nothing", {"x": 1}) == {"x": 1}


def test_write_then_read(tmp_path: Path) -> None:
    store = JsonDocumentStore(tmp_path / "nested")
    store.write("doc", {"packages": ["com.a", "com.b"], "n": 2})

    assert store.read("doc", None) == {"packages": ["com.a", "com.b"], "n": 2}
    assert not store.path_for("doc").with_suffix(".tmp").exists()


def test_corrupt_document_returns_default(tmp_path: Path) -> None:
    store = JsonDocumentStore(tmp_path)
    store.path_for("broken").write_text("{not json", "utf-8")

    assert store.read("broken", []) == []


def test_write_replaces_previous_content(tmp_path: Path) -> None:
    store = JsonDocumentStore(tmp_path)
    store.write("doc", [1, 2, 3])
    store.write("doc", [])
    assert store.read("doc", None) == []


def test_failed_replace_removes_tmp_and_keeps_old_content(tmp_path: Path, monkeypatch) -> None:
    store = JsonDocumentStore(tmp_path)
    store.write("doc", {"v": 1})

    def refuse(src, dst):
        raise OSError(28, "No space left on device")

    monkeypatch.setattr(os, "replace", refuse)

    with pytest.raises(OSError):
        store.write("doc", {"v": 2})

    assert not store.path_for("doc").with_suffix(".tmp").exists()
    assert store.read("doc", None) == {"v": 1}


def test_unserializable_data_leaves_no_tmp(tmp_path: Path) -> None:
    store = JsonDocumentStore(tmp_path)

    with pytest.raises(TypeError):
        store.write("doc", {"v": object()})

    assert list(tmp_path.iterdir()) == []
