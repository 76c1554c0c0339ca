"""
Tests for the OOXML package stripper.

Covers:
- Removal of core and extended properties parts
- Byte-identical copies of every other part
- Relationship / content-type rewriting
- Rejection of packages that are not of the expected kind
"""
import xml.etree.ElementTree as ET
import zipfile

import pytest

from builders import APP_REL, CORE_REL, build_package, read_entries
from metaclean.errors import InputNotFoundError, PackageOpenError
from metaclean.ooxml import (
    CONTENT_TYPES_NS,
    RELATIONSHIPS_NS,
    PackageKind,
    rels_name_for,
    resolve_target,
    strip_package_metadata,
)

METADATA_PARTS = {"docProps/core.xml", "docProps/app.xml"}


def _root_rel_types(entries):
    root = ET.fromstring(entries["_rels/.rels"])
    return {rel.get("Type") for rel in root.findall(f"{{{RELATIONSHIPS_NS}}}Relationship")}


def _override_names(entries):
    root = ET.fromstring(entries["[Content_Types].xml"])
    return {o.get("PartName") for o in root.findall(f"{{{CONTENT_TYPES_NS}}}Override")}


class TestPartNames:
    def test_rels_name_for_root(self):
        assert rels_name_for("") == "_rels/.rels"

    def test_rels_name_for_part(self):
        assert rels_name_for("word/document.xml") == "word/_rels/document.xml.rels"

    @pytest.mark.parametrize("source,target,expected", [
        ("word/document.xml", "media/image1.png", "word/media/image1.png"),
        ("word/document.xml", "../customXml/item1.xml", "customXml/item1.xml"),
        ("", "word/document.xml", "word/document.xml"),
        ("xl/workbook.xml", "/xl/styles.xml", "xl/styles.xml"),
        ("word/document.xml", "media/my%20picture.png", "word/media/my picture.png"),
    ])
    def test_resolve_target(self, source, target, expected):
        assert resolve_target(source, target) == expected

    def test_resolve_target_outside_package(self):
        assert resolve_target("", "../outside.xml") is None
        assert resolve_target("word/document.xml", "") is None


class TestStripPackageMetadata:
    @pytest.mark.parametrize("ext,kind", [
        ("docx", PackageKind.WORD_PROCESSING),
        ("xlsx", PackageKind.SPREADSHEET),
        ("pptx", PackageKind.PRESENTATION),
    ])
    def test_removes_both_metadata_parts(self, tmp_path, ext, kind):
        """Core and extended properties disappear, everything else survives unchanged."""
        src = tmp_path / f"in.{ext}"
        dst = tmp_path / f"out.{ext}"
        original = build_package(src, ext)

        strip_package_metadata(src, dst, kind)

        cleaned = read_entries(dst)
        assert METADATA_PARTS.isdisjoint(cleaned)
        for name, data in original.items():
            if name in METADATA_PARTS or name in ("_rels/.rels", "[Content_Types].xml"):
                continue
            assert cleaned[name] == data, name

    def test_relationships_and_content_types_rewritten(self, docx_file, tmp_path):
        dst = tmp_path / "out.docx"
        strip_package_metadata(docx_file, dst, PackageKind.WORD_PROCESSING)

        cleaned = read_entries(dst)
        types = _root_rel_types(cleaned)
        assert CORE_REL not in types
        assert APP_REL not in types
        assert len(types) == 1
        overrides = _override_names(cleaned)
        assert "/docProps/core.xml" not in overrides
        assert "/docProps/app.xml" not in overrides
        assert "/word/document.xml" in overrides

    @pytest.mark.parametrize("ext,kind", [
        ("docx", PackageKind.WORD_PROCESSING),
        ("pptx", PackageKind.PRESENTATION),
    ])
    def test_rewritten_parts_keep_default_namespace(self, tmp_path, ext, kind):
        """Re-serialized rels and content types use an unprefixed default namespace."""
        src = tmp_path / f"in.{ext}"
        dst = tmp_path / f"out.{ext}"
        build_package(src, ext)

        strip_package_metadata(src, dst, kind)

        cleaned = read_entries(dst)
        rels = cleaned["_rels/.rels"]
        content_types = cleaned["[Content_Types].xml"]
        assert rels.startswith(b"<?xml")
        assert f'<Relationships xmlns="{RELATIONSHIPS_NS}"'.encode() in rels
        assert f'<Types xmlns="{CONTENT_TYPES_NS}"'.encode() in content_types
        assert b"ns0:" not in rels
        assert b"ns0:" not in content_types

    def test_no_metadata_parts_is_not_an_error(self, tmp_path):
        """Packages without metadata parts are copied verbatim."""
        src = tmp_path / "bare.docx"
        dst = tmp_path / "out.docx"
        original = build_package(src, "docx", core=False, app=False)

        strip_package_metadata(src, dst, PackageKind.WORD_PROCESSING)

        assert read_entries(dst) == original

    def test_only_core_properties_present(self, tmp_path):
        src = tmp_path / "core_only.docx"
        dst = tmp_path / "out.docx"
        build_package(src, "docx", core=True, app=False)

        strip_package_metadata(src, dst, PackageKind.WORD_PROCESSING)

        cleaned = read_entries(dst)
        assert "docProps/core.xml" not in cleaned
        assert CORE_REL not in _root_rel_types(cleaned)

    def test_cleaning_twice_is_stable(self, docx_file, tmp_path):
        first = tmp_path / "first.docx"
        second = tmp_path / "second.docx"
        strip_package_metadata(docx_file, first, PackageKind.WORD_PROCESSING)
        strip_package_metadata(first, second, PackageKind.WORD_PROCESSING)
        assert read_entries(first) == read_entries(second)

    def test_compression_method_preserved(self, docx_file, tmp_path):
        dst = tmp_path / "out.docx"
        strip_package_metadata(docx_file, dst, PackageKind.WORD_PROCESSING)
        with zipfile.ZipFile(docx_file) as zin, zipfile.ZipFile(dst) as zout:
            for info in zout.infolist():
                assert info.compress_type == zin.getinfo(info.filename).compress_type

    def test_unreferenced_parts_are_not_copied(self, tmp_path):
        src = tmp_path / "orphan.docx"
        dst = tmp_path / "out.docx"
        build_package(src, "docx", orphan=True)

        strip_package_metadata(src, dst, PackageKind.WORD_PROCESSING)

        assert "customXml/orphan.xml" not in read_entries(dst)

    def test_source_is_not_modified(self, docx_file, tmp_path):
        before = docx_file.read_bytes()
        strip_package_metadata(docx_file, tmp_path / "out.docx", PackageKind.WORD_PROCESSING)
        assert docx_file.read_bytes() == before

    def test_existing_output_is_overwritten(self, docx_file, tmp_path):
        dst = tmp_path / "out.docx"
        dst.write_bytes(b"stale content")
        strip_package_metadata(docx_file, dst, PackageKind.WORD_PROCESSING)
        assert zipfile.is_zipfile(dst)

    def test_creates_missing_output_directory(self, docx_file, tmp_path):
        dst = tmp_path / "nested" / "deeper" / "out.docx"
        strip_package_metadata(docx_file, dst, PackageKind.WORD_PROCESSING)
        assert dst.is_file()


class TestInvalidPackages:
    def test_wrong_kind_rejected(self, docx_file, tmp_path):
        dst = tmp_path / "out.xlsx"
        with pytest.raises(PackageOpenError) as exc_info:
            strip_package_metadata(docx_file, dst, PackageKind.SPREADSHEET)
        assert "spreadsheet" in str(exc_info.value)
        assert not dst.exists()

    def test_not_a_zip(self, tmp_path):
        src = tmp_path / "fake.docx"
        src.write_bytes(b"this is plain text, not a package")
        with pytest.raises(PackageOpenError):
            strip_package_metadata(src, tmp_path / "out.docx", PackageKind.WORD_PROCESSING)

    def test_zip_without_content_types(self, tmp_path):
        src = tmp_path / "plain.docx"
        with zipfile.ZipFile(src, "w") as zf:
            zf.writestr("hello.txt", "hi")
        with pytest.raises(PackageOpenError):
            strip_package_metadata(src, tmp_path / "out.docx", PackageKind.WORD_PROCESSING)

    def test_malformed_relationships(self, tmp_path):
        src = tmp_path / "broken.docx"
        entries = build_package(src, "docx")
        entries["_rels/.rels"] = b"<Relationships><unclosed>"
        with zipfile.ZipFile(src, "w") as zf:
            for name, data in entries.items():
                zf.writestr(name, data)
        with pytest.raises(PackageOpenError) as exc_info:
            strip_package_metadata(src, tmp_path / "out.docx", PackageKind.WORD_PROCESSING)
        assert exc_info.value.input_path == str(src)

    def test_missing_input(self, tmp_path):
        with pytest.raises(InputNotFoundError):
            strip_package_metadata(tmp_path / "nope.docx", tmp_path / "out.docx",
                                   PackageKind.WORD_PROCESSING)
