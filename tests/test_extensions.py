"""Unit tests for tern.extensions."""

import json

from tern.extensions import load_extensions


def _install(root, dirname, manifest) -> None:
    ext_dir = root / dirname
    ext_dir.mkdir(parents=True)
    (ext_dir / "tern-extension.json").write_text(json.dumps(manifest), encoding="utf-8")


def test_discovers_valid_extensions_in_order(tmp_path) -> None:
    _install(tmp_path, "b-ext", {"name": "beta"})
    _install(tmp_path, "a-ext", {"name": "alpha", "version": "1.2.0"})
    (tmp_path / "not-an-extension").mkdir()

    names = [ext.config.name for ext in load_extensions(None, tmp_path)]

    assert names == ["alpha", "beta"]


def test_enabled_list_filters_and_accepts_commas(tmp_path) -> None:
    _install(tmp_path, "a", {"name": "alpha"})
    _install(tmp_path, "b", {"name": "beta"})
    _install(tmp_path, "c", {"name": "gamma"})

    names = [ext.config.name for ext in load_extensions(["alpha,gamma"], tmp_path)]

    assert names == ["alpha", "gamma"]


def test_none_disables_every_extension(tmp_path) -> None:
    _install(tmp_path, "a", {"name": "alpha"})

    assert load_extensions(["none"], tmp_path) == []


def test_invalid_manifest_is_skipped_with_warning(tmp_path, caplog) -> None:
    bad = tmp_path / "bad"
    bad.mkdir()
    (bad / "tern-extension.json").write_text("{}", encoding="utf-8")

    assert load_extensions(None, tmp_path) == []
    assert "skipping extension" in caplog.text


def test_missing_directory_has_no_extensions(tmp_path) -> None:
    assert load_extensions(None, tmp_path / "missing") == []
