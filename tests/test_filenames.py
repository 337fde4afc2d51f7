from __future__ import annotations

import re

from streamnotes_backend.filenames import (
    build_attachment_storage_key,
    random_token,
    sanitize_filename,
)

_KEY_RE = re.compile(r"^\d+_[a-z0-9]+_a_b\.txt$")


def test_sanitize_filename_collapses_whitespace():
    assert sanitize_filename("a b.txt") == "a_b.txt"
    assert sanitize_filename("  lecture   notes\t1.pdf ") == "lecture_notes_1.pdf"


def test_sanitize_filename_strips_paths_and_control_chars():
    assert sanitize_filename("../../etc/passwd") == "passwd"
    assert sanitize_filename("C:\\Users\\me\\photo.png") == "photo.png"
    assert sanitize_filename("a\r\nb.png") == "a_b.png"
    assert sanitize_filename("a\x00b\x7f.png") == "ab.png"


def test_sanitize_filename_fallback():
    assert sanitize_filename(None) == "file"
    assert sanitize_filename("   ") == "file"
    assert sanitize_filename("dir/") == "file"


def test_storage_key_shape():
    key = build_attachment_storage_key("a b.txt")
    assert _KEY_RE.match(key), key


def test_storage_keys_unique_for_same_name_and_millisecond():
    keys = {build_attachment_storage_key("a b.txt", now_ms=1700000000000) for _ in range(200)}
    assert len(keys) == 200
    assert all(k.startswith("1700000000000_") for k in keys)


def test_random_token_alphabet():
    token = random_token()
    assert len(token) == 11
    assert re.fullmatch(r"[a-z0-9]+", token)
