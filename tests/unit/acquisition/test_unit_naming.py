# tests/unit/acquisition/test_unit_naming.py — v1
"""Tests for acquisition/naming.py — key sanitization and collisions."""

from __future__ import annotations

from datetime import datetime, timezone

import pytest

from imgacquire.acquisition.naming import MAX_STEM_LENGTH, check_collision, sanitize_key
from imgacquire.cache.models import CacheEntry
from imgacquire.core.errors import InvalidKeyError


def _entry(key: str, local_path: str, folder: str = "photos") -> CacheEntry:
    return CacheEntry(
        acquisition_key=key,
        folder=folder,
        local_path=local_path,
        remote_id="r",
        provider="fake",
        query="q",
        width=1,
        height=1,
        score=0.5,
        sha256="0" * 64,
        created_at=datetime(2026, 1, 1, tzinfo=timezone.utc),
    )


class TestSanitizeKey:
    @pytest.mark.parametrize("key,expected", [
        ("hero", "hero"),
        ("Hero Image", "hero-image"),
        ("team/photo#1", "team-photo-1"),
        ("  --about_us--  ", "about_us"),
        ("café", "caf"),
    ])
    def test_sanitize(self, key, expected):
        assert sanitize_key(key) == expected

    @pytest.mark.parametrize("key", ["", "   ", "///", "日本"])
    def test_unusable(self, key):
        with pytest.raises(InvalidKeyError):
            sanitize_key(key)

    def test_truncated(self):
        stem = sanitize_key("a" * 200)
        assert len(stem) == MAX_STEM_LENGTH


class TestCheckCollision:
    def test_no_entries(self, tmp_path):
        check_collision("hero", "hero", "photos", tmp_path, {})

    def test_other_key_same_stem(self, tmp_path):
        entries = {"Hero": _entry("Hero", "img/photos/hero.jpg")}
        with pytest.raises(InvalidKeyError, match="collides"):
            check_collision("hero", "hero", "photos", tmp_path, entries)

    def test_same_stem_other_folder_ok(self, tmp_path):
        entries = {"Hero": _entry("Hero", "img/team/hero.jpg", folder="team")}
        check_collision("hero", "hero", "photos", tmp_path, entries)

    def test_own_entry_ok(self, tmp_path):
        (tmp_path / "hero.jpg").write_bytes(b"x")
        entries = {"hero": _entry("hero", "img/photos/hero.jpg")}
        check_collision("hero", "hero", "photos", tmp_path, entries)

    def test_unmanaged_file(self, tmp_path):
        (tmp_path / "hero.png").write_bytes(b"x")
        with pytest.raises(InvalidKeyError, match="unmanaged"):
            check_collision("hero", "hero", "photos", tmp_path, {})

    def test_unmanaged_allowed_with_force(self, tmp_path):
        (tmp_path / "hero.png").write_bytes(b"x")
        check_collision("hero", "hero", "photos", tmp_path, {}, allow_unmanaged=True)

    def test_hidden_and_non_image_ignored(self, tmp_path):
        (tmp_path / "hero.txt").write_bytes(b"x")
        (tmp_path / ".hero.jpg.part").write_bytes(b"x")
        check_collision("hero", "hero", "photos", tmp_path, {})

    def test_same_name_in_other_folder_does_not_own_local_file(self, tmp_path):
        (tmp_path / "hero.jpg").write_bytes(b"user file")
        entries = {"hero": _entry("hero", "img/team/hero.jpg", folder="team")}
        with pytest.raises(InvalidKeyError, match="unmanaged"):
            check_collision("HERO", "hero", "photos", tmp_path, entries)

    def test_own_entry_in_other_folder_does_not_own_local_file(self, tmp_path):
        (tmp_path / "hero.jpg").write_bytes(b"user file")
        entries = {"hero": _entry("hero", "img/team/hero.jpg", folder="team")}
        with pytest.raises(InvalidKeyError, match="unmanaged"):
            check_collision("hero", "hero", "photos", tmp_path, entries)
