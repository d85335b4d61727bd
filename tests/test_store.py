"""Tests for the font file store and the JSON group store."""

import asyncio
import json

import pytest

from fontshelf.errors import (
    DuplicateIdentityError,
    FontTooLargeError,
    GroupNotFoundError,
    GroupValidationError,
    InvalidFormatError,
)
from fontshelf.store import FontStore, GroupStore
from tests.conftest import make_font_bytes


class TestFontStore:
    def test_creates_fonts_dir(self, tmp_path):
        store = FontStore(tmp_path / "data")
        assert store.fonts_dir.is_dir()
        assert store.fonts_dir == tmp_path / "data" / "uploads" / "fonts"

    def test_save_font(self, font_store, font_bytes):
        record = font_store.save_font("My Font (Bold).TTF", font_bytes)
        assert record.id == "MyFontBold"
        assert record.filename == "MyFontBold.ttf"
        assert record.display_name == "MyFontBold"
        assert record.storage_path == "/uploads/fonts/MyFontBold.ttf"
        assert (font_store.fonts_dir / "MyFontBold.ttf").read_bytes() == font_bytes

    def test_invalid_bytes_not_stored(self, font_store):
        with pytest.raises(InvalidFormatError):
            font_store.save_font("Broken.ttf", b"not a font at all")
        assert font_store.list_fonts() == []

    def test_too_large_not_stored(self, font_store, monkeypatch):
        monkeypatch.setattr("fontshelf.validator.MAX_FONT_BYTES", 200)
        with pytest.raises(FontTooLargeError):
            font_store.save_font("Big.ttf", b"OTTO" + b"\x00" * 300)
        assert font_store.list_fonts() == []

    def test_duplicate_rejected_original_untouched(self, font_store, font_bytes):
        font_store.save_font("Roboto.ttf", font_bytes)
        other = make_font_bytes(family="Other")
        with pytest.raises(DuplicateIdentityError, match="Roboto.ttf"):
            font_store.save_font("Roboto.ttf", other)
        assert font_store.read_bytes("Roboto.ttf") == font_bytes

    def test_duplicate_stem_with_other_extension(self, font_store, font_bytes):
        font_store.save_font("Roboto.ttf", font_bytes)
        with pytest.raises(DuplicateIdentityError):
            font_store.save_font("Roboto.otf", font_bytes)

    def test_list_fonts_sorted_and_filtered(self, font_store, font_bytes):
        font_store.save_font("Zilla.ttf", font_bytes)
        font_store.save_font("Arvo.otf", font_bytes)
        (font_store.fonts_dir / "notes.txt").write_text("hello")
        assert [r.filename for r in font_store.list_fonts()] == ["Arvo.otf", "Zilla.ttf"]

    def test_get_font_by_id_or_filename(self, font_store, font_bytes):
        font_store.save_font("Inter.ttf", font_bytes)
        assert font_store.get_font("Inter").filename == "Inter.ttf"
        assert font_store.get_font("Inter.ttf").id == "Inter"
        assert font_store.get_font("Lato") is None

    def test_delete_font(self, font_store, font_bytes):
        font_store.save_font("Inter.ttf", font_bytes)
        assert font_store.delete_font("Inter.ttf")
        assert font_store.list_fonts() == []
        assert not font_store.delete_font("Inter.ttf")

    @pytest.mark.parametrize("name", ["../groups.json", "..", "", ".hidden.ttf", "a\\b.ttf", "x.txt"])
    def test_delete_rejects_unsafe_names(self, font_store, name):
        assert not font_store.delete_font(name)

    def test_read_bytes_rejects_traversal(self, font_store):
        with pytest.raises(FileNotFoundError):
            font_store.read_bytes("../../secret.ttf")

    def test_fetch_bytes(self, font_store, font_bytes):
        record = font_store.save_font("Inter.ttf", font_bytes)
        assert asyncio.run(font_store.fetch_bytes(record)) == font_bytes


class TestGroupStore:
    def test_creates_empty_file(self, tmp_path):
        store = GroupStore.in_data_dir(tmp_path)
        assert store.path == tmp_path / "data" / "groups.json"
        assert json.loads(store.path.read_text()) == []

    def test_create_group(self, group_store, sample_group_data):
        group = group_store.create_group(sample_group_data)
        assert group.id.isdigit()
        assert group.title == "Headings"
        assert len(group.fonts) == 2
        assert group.updated_at is None

        stored = json.loads(group_store.path.read_text())
        assert stored[0]["id"] == group.id
        assert stored[0]["fonts"][1] == {"name": "Body", "selectedFont": "Roboto-Regular"}
        assert "createdAt" in stored[0]
        assert "updatedAt" not in stored[0]

    def test_single_font_rejected(self, group_store, sample_group_data):
        sample_group_data["fonts"].pop()
        with pytest.raises(GroupValidationError, match="at least two fonts"):
            group_store.create_group(sample_group_data)
        assert group_store.list_groups() == []

    def test_ids_are_unique(self, group_store, sample_group_data):
        ids = {group_store.create_group(sample_group_data).id for _ in range(5)}
        assert len(ids) == 5

    def test_get_group(self, group_store, sample_group_data):
        group = group_store.create_group(sample_group_data)
        assert group_store.get_group(group.id) == group
        assert group_store.get_group("missing") is None

    def test_update_group(self, group_store, sample_group_data):
        group = group_store.create_group(sample_group_data)
        sample_group_data["title"] = "Renamed"
        updated = group_store.update_group(group.id, sample_group_data)

        assert updated.id == group.id
        assert updated.title == "Renamed"
        assert updated.created_at == group.created_at
        assert updated.updated_at is not None
        assert group_store.get_group(group.id).title == "Renamed"
        assert "updatedAt" in json.loads(group_store.path.read_text())[0]

    def test_update_validates(self, group_store, sample_group_data):
        group = group_store.create_group(sample_group_data)
        with pytest.raises(GroupValidationError, match="title is required"):
            group_store.update_group(group.id, {**sample_group_data, "title": ""})
        assert group_store.get_group(group.id).title == "Headings"

    def test_update_missing(self, group_store, sample_group_data):
        with pytest.raises(GroupNotFoundError, match="Group not found: nope"):
            group_store.update_group("nope", sample_group_data)

    def test_delete_group(self, group_store, sample_group_data):
        keep = group_store.create_group(sample_group_data)
        drop = group_store.create_group(sample_group_data)
        assert group_store.delete_group(drop.id)
        assert [g.id for g in group_store.list_groups()] == [keep.id]
        assert not group_store.delete_group(drop.id)

    def test_corrupt_file_reads_as_empty(self, group_store):
        group_store.path.write_text("{not json")
        assert group_store.list_groups() == []

    def test_non_array_reads_as_empty(self, group_store):
        group_store.path.write_text('{"id": "1"}')
        assert group_store.list_groups() == []

    def test_invalid_entries_skipped(self, group_store, sample_group_data):
        good = group_store.create_group(sample_group_data)
        data = json.loads(group_store.path.read_text())
        data.append({"id": "2", "title": "Broken"})
        group_store.path.write_text(json.dumps(data))
        assert [g.id for g in group_store.list_groups()] == [good.id]

    def test_no_temp_files_left(self, group_store, sample_group_data):
        group_store.create_group(sample_group_data)
        leftovers = [p.name for p in group_store.path.parent.iterdir() if p.suffix == ".tmp"]
        assert leftovers == []
