from __future__ import annotations

from pathlib import Path

import pytest

from adb.shared_prefs import (
    FilePrefsStore,
    MemoryPrefsStore,
    PrefsFormatError,
    parse_prefs_xml,
    render_prefs_xml,
)

ANDROID_WRITTEN = """<?xml version='1.0' encoding='utf-8' standalone='yes' ?>
<map>
    <boolean name="flutter.showUrlBar" value="false" />
    <long name="flutter.currentIndex" value="10000" />
    <int name="flutter.legacyCounter" value="3" />
    <string name="flutter.selectedWebspaceId">__all_webspace__</string>
    <set name="flutter.webspaces">
        <string>{&quot;id&quot;:&quot;a&quot;}</string>
        <string>{"id":"b"}</string>
    </set>
    <float name="flutter.zoom" value="1.5" />
</map>
"""


def test_parse_android_file_keeps_kinds() -> None:
    entries = parse_prefs_xml(ANDROID_WRITTEN)
    assert entries["flutter.showUrlBar"] == ("boolean", False)
    assert entries["flutter.currentIndex"] == ("long", 10000)
    assert entries["flutter.legacyCounter"] == ("int", 3)
    assert entries["flutter.selectedWebspaceId"] == ("string", "__all_webspace__")
    assert entries["flutter.webspaces"] == ("set", frozenset({'{"id":"a"}', '{"id":"b"}'}))
    assert entries["flutter.zoom"] == ("float", 1.5)


def test_render_then_parse_is_stable() -> None:
    entries = parse_prefs_xml(ANDROID_WRITTEN)
    assert parse_prefs_xml(render_prefs_xml(entries)) == entries


def test_render_escapes_markup_in_strings() -> None:
    xml = render_prefs_xml({"k": ("string", "<a & b>")})
    assert "&lt;a &amp; b&gt;" in xml
    assert parse_prefs_xml(xml)["k"] == ("string", "<a & b>")


def test_empty_set_renders_self_closing() -> None:
    xml = render_prefs_xml({"k": ("set", frozenset())})
    assert '<set name="k" />' in xml
    assert parse_prefs_xml(xml)["k"] == ("set", frozenset())


def test_blank_file_is_empty_store() -> None:
    assert parse_prefs_xml("") == {}


@pytest.mark.parametrize("xml", ["<map><string>no name</string></map>", "<prefs/>", "<map><"])
def test_malformed_file_raises(xml: str) -> None:
    with pytest.raises(PrefsFormatError):
        parse_prefs_xml(xml)


def test_editor_commits_all_changes_at_once() -> None:
    store = MemoryPrefsStore({"old": ("string", "x"), "keep": ("long", 1)})
    editor = store.edit().put_string("new", "y").remove("old").put_boolean("flag", True)
    assert store.contains("old")
    assert not store.contains("new")

    assert editor.commit() is True
    assert store.commits == 1
    assert store.keys() == ["flag", "keep", "new"]
    assert store.kind("flag") == "boolean"


def test_rejected_commit_leaves_store_untouched() -> None:
    store = MemoryPrefsStore({"a": ("string", "1")}, reject_writes=True)
    assert store.edit().put_string("a", "2").put_string("b", "3").commit() is False
    assert store.get("a") == "1"
    assert not store.contains("b")


def test_file_store_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "shared_prefs" / "FlutterSharedPreferences.xml"
    store = FilePrefsStore(path)
    assert store.entries() == {}

    assert store.edit().put_string_set("s", ["b", "a"]).put_long("n", 7).commit()
    assert path.exists()
    assert not path.with_name(path.name + ".tmp").exists()

    reopened = FilePrefsStore(path)
    assert reopened.get("s") == frozenset({"a", "b"})
    assert reopened.kind("n") == "long"
