"""Tests for want-list loading and per-backend line parsing."""

import tempfile
from pathlib import Path

import pytest

from applists.backends.appstore import MacAppStore
from applists.backends.node import NpmGlobal, strip_version
from applists.backends.pip import PipUser, strip_pin
from applists.backends.reports import ArcExtensions
from applists.errors import ListFileError
from applists.lists.store import ListStore, strip_inline_comment


def _write(tmpdir: str, name: str, content: str) -> Path:
    path = Path(tmpdir) / name
    path.write_text(content)
    return path


def test_missing_file_is_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        store = ListStore(tmpdir)
        assert store.load_list("nope.txt") == frozenset()
        assert not store.exists("nope.txt")


def test_empty_file_is_empty():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write(tmpdir, "brew-casks.txt", "")
        store = ListStore(tmpdir)
        assert store.exists("brew-casks.txt")
        assert store.load_list("brew-casks.txt") == frozenset()


def test_undecodable_file_raises_list_file_error():
    with tempfile.TemporaryDirectory() as tmpdir:
        (Path(tmpdir) / "npm-global.txt").write_bytes(b"lodash\n\xff\xfe\n")
        with pytest.raises(ListFileError) as exc_info:
            ListStore(tmpdir).load_list("npm-global.txt")
        assert exc_info.value.path.endswith("npm-global.txt")


def test_trims_drops_comments_and_dedupes():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write(
            tmpdir,
            "brew-formulae.txt",
            "# my formulae\n  git  \n\nwget\ngit\n\t# indented comment\nGit\n",
        )
        store = ListStore(tmpdir)
        assert store.load_list("brew-formulae.txt") == {"git", "wget", "Git"}


def test_strip_inline_comment():
    assert strip_inline_comment("497799835 # Xcode") == "497799835"
    assert strip_inline_comment("  123  ") == "123"


def test_appstore_lines_keep_numeric_ids_only():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write(
            tmpdir,
            "appstore-apps.txt",
            "497799835 # Xcode\n  409183694   # Keynote (13.1)\nnot-an-id # bad\n12ab # bad\n",
        )
        adapter = MacAppStore()
        ids = ListStore(tmpdir).load_list(adapter.list_file, adapter.parse_line)
        assert ids == {"497799835", "409183694"}


def test_arc_extension_lines_require_sixteen_lowercase_letters():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write(
            tmpdir,
            "arc-extensions.txt",
            "cjpalhdlnbpafiamejdnhcphjbkeiagm # uBlock Origin\n"
            "abcdefghijklmnop\n"
            "short # too short\n"
            "ABCDEFGHIJKLMNOPQRST # uppercase\n",
        )
        adapter = ArcExtensions(arc_dirs=[])
        ids = ListStore(tmpdir).load_list(adapter.list_file, adapter.parse_line)
        assert ids == {"cjpalhdlnbpafiamejdnhcphjbkeiagm", "abcdefghijklmnop"}


def test_npm_lines_drop_versions_keep_scope():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write(tmpdir, "npm-global.txt", "lodash@4.17.21\n@babel/core@7.0.0\n@angular/cli\ntypescript\n")
        adapter = NpmGlobal()
        ids = ListStore(tmpdir).load_list(adapter.list_file, adapter.parse_line)
        assert ids == {"lodash", "@babel/core", "@angular/cli", "typescript"}


def test_pip_lines_drop_pins():
    with tempfile.TemporaryDirectory() as tmpdir:
        _write(tmpdir, "pip-user.txt", "requests==2.31.0\nrich\n# comment\nhttpx == 0.27\n")
        adapter = PipUser(command="pip3")
        ids = ListStore(tmpdir).load_list(adapter.list_file, adapter.parse_line)
        assert ids == {"requests", "rich", "httpx"}


def test_strip_version():
    assert strip_version("lodash@4.17.21") == "lodash"
    assert strip_version("@babel/core@7.0.0") == "@babel/core"
    assert strip_version("@babel/core") == "@babel/core"
    assert strip_version("typescript") == "typescript"


def test_strip_pin():
    assert strip_pin("requests==2.31.0") == "requests"
    assert strip_pin("requests") == "requests"
