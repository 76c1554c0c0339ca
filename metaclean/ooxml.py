"""
OOXML (docx/xlsx/pptx) cleaning.

A package is rebuilt part by part: every part reachable from the package root
through its relationships is copied with its original bytes, except the core
properties part (docProps/core.xml: author, dates, revision, title...) and the
extended properties part (docProps/app.xml: application, company, template,
edit-time statistics). The source file is never modified.
"""
import copy
import enum
import logging
import posixpath
import zipfile
import zlib
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Set
from urllib.parse import unquote

from metaclean.errors import (
    InputNotFoundError,
    MetaCleanError,
    PackageOpenError,
    UnexpectedError,
)

log = logging.getLogger(__name__)

CONTENT_TYPES_NS = "http://schemas.openxmlformats.org/package/2006/content-types"
RELATIONSHIPS_NS = "http://schemas.openxmlformats.org/package/2006/relationships"

CONTENT_TYPES_PART = "[Content_Types].xml"
ROOT_RELS_PART = "_rels/.rels"

OFFICE_DOCUMENT_RELS = frozenset({
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/officeDocument",
    "http://purl.oclc.org/ooxml/officeDocument/relationships/officeDocument",
})
CORE_PROPERTIES_RELS = frozenset({
    "http://schemas.openxmlformats.org/package/2006/relationships/metadata/core-properties",
    "http://schemas.openxmlformats.org/officedocument/2006/relationships/metadata/core-properties",
})
EXTENDED_PROPERTIES_RELS = frozenset({
    "http://schemas.openxmlformats.org/officeDocument/2006/relationships/extended-properties",
    "http://purl.oclc.org/ooxml/officeDocument/relationships/extendedProperties",
})
METADATA_RELS = CORE_PROPERTIES_RELS | EXTENDED_PROPERTIES_RELS


class PackageKind(enum.Enum):
    """The three package flavours, keyed by the content types their main part may carry."""

    WORD_PROCESSING = ("word-processing document", frozenset({
        "application/vnd.openxmlformats-officedocument.wordprocessingml.document.main+xml",
        "application/vnd.openxmlformats-officedocument.wordprocessingml.template.main+xml",
        "application/vnd.ms-word.document.macroEnabled.main+xml",
        "application/vnd.ms-word.template.macroEnabledTemplate.main+xml",
    }))
    SPREADSHEET = ("spreadsheet", frozenset({
        "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet.main+xml",
        "application/vnd.openxmlformats-officedocument.spreadsheetml.template.main+xml",
        "application/vnd.ms-excel.sheet.macroEnabled.main+xml",
        "application/vnd.ms-excel.template.macroEnabled.main+xml",
        "application/vnd.ms-excel.addin.macroEnabled.main+xml",
    }))
    PRESENTATION = ("presentation", frozenset({
        "application/vnd.openxmlformats-officedocument.presentationml.presentation.main+xml",
        "application/vnd.openxmlformats-officedocument.presentationml.template.main+xml",
        "application/vnd.openxmlformats-officedocument.presentationml.slideshow.main+xml",
        "application/vnd.ms-powerpoint.presentation.macroEnabled.main+xml",
        "application/vnd.ms-powerpoint.slideshow.macroEnabled.main+xml",
        "application/vnd.ms-powerpoint.template.macroEnabled.main+xml",
    }))

    def __init__(self, label, main_content_types):
        self.label = label
        self.main_content_types = main_content_types


@dataclass
class _CopyPlan:
    keep: Set[str] = field(default_factory=set)
    rewritten: Dict[str, bytes] = field(default_factory=dict)
    dropped_metadata: List[str] = field(default_factory=list)


# ----------------------------
# Part names and relationships
# ----------------------------
def rels_name_for(part_name: str) -> str:
    """Name of the relationships part belonging to ``part_name`` ("" is the package root)."""
    if not part_name:
        return ROOT_RELS_PART
    folder, name = posixpath.split(part_name)
    return posixpath.join(folder, "_rels", name + ".rels")


def resolve_target(source_part: str, target: str) -> Optional[str]:
    """Turn a relationship target into a zip entry name, or None when it escapes the package."""
    target = unquote(target.split("#", 1)[0])
    if not target:
        return None
    if target.startswith("/"):
        joined = target.lstrip("/")
    else:
        joined = posixpath.join(posixpath.dirname(source_part), target)
    resolved = posixpath.normpath(joined)
    if resolved == "." or resolved.startswith(".."):
        return None
    return resolved


def _parse_xml(zin: zipfile.ZipFile, name: str, input_path) -> ET.Element:
    try:
        return ET.fromstring(zin.read(name))
    except ET.ParseError as e:
        raise PackageOpenError(f"Malformed XML in {name} of {input_path}: {e}", input_path=input_path) from e


def _relationships(root: ET.Element):
    for rel in root.findall(f"{{{RELATIONSHIPS_NS}}}Relationship"):
        yield rel.attrib


def _content_type_of(part_name: str, ct_root: ET.Element) -> Optional[str]:
    wanted = "/" + part_name.lower()
    for override in ct_root.findall(f"{{{CONTENT_TYPES_NS}}}Override"):
        if unquote(override.get("PartName", "")).lower() == wanted:
            return override.get("ContentType")
    ext = posixpath.splitext(part_name)[1].lstrip(".").lower()
    for default in ct_root.findall(f"{{{CONTENT_TYPES_NS}}}Default"):
        if default.get("Extension", "").lower() == ext:
            return default.get("ContentType")
    return None


def _serialize(root: ET.Element, namespace: str) -> bytes:
    # one default-namespace registration at a time; register_namespace replaces the previous "" mapping
    ET.register_namespace("", namespace)
    return ET.tostring(root, encoding="UTF-8", xml_declaration=True)


# ----------------------------
# Planning
# ----------------------------
def _plan_copy(zin: zipfile.ZipFile, kind: PackageKind, input_path) -> _CopyPlan:
    entries = {n.lower(): n for n in zin.namelist() if not n.endswith("/")}
    ct_name = entries.get(CONTENT_TYPES_PART.lower())
    root_rels_name = entries.get(ROOT_RELS_PART)
    if ct_name is None or root_rels_name is None:
        raise PackageOpenError(
            f"{input_path} is not an Office Open XML package (missing {CONTENT_TYPES_PART} or {ROOT_RELS_PART})",
            input_path=input_path,
        )
    ct_root = _parse_xml(zin, ct_name, input_path)
    root_rels = _parse_xml(zin, root_rels_name, input_path)

    plan = _CopyPlan()
    plan.keep.update((ct_name, root_rels_name))

    main_part = None
    metadata_ids = set()
    pending = []
    for rel in _relationships(root_rels):
        if rel.get("TargetMode") == "External":
            continue
        rel_type = rel.get("Type", "")
        target = resolve_target("", rel.get("Target", ""))
        if rel_type in METADATA_RELS:
            metadata_ids.add(rel.get("Id"))
            if target is not None:
                plan.dropped_metadata.append(target)
            continue
        if rel_type in OFFICE_DOCUMENT_RELS and main_part is None:
            main_part = target
        if target is not None:
            pending.append(target)

    if main_part is None or main_part.lower() not in entries:
        raise PackageOpenError(f"{input_path} has no main document part", input_path=input_path)
    content_type = _content_type_of(entries[main_part.lower()], ct_root)
    if content_type not in kind.main_content_types:
        raise PackageOpenError(
            f"{input_path} is not a {kind.label} package (main part type {content_type})",
            input_path=input_path,
        )

    # Walk the relationship graph; parts only reachable via metadata parts are left behind
    metadata_parts = {name.lower() for name in plan.dropped_metadata}
    seen = set()
    while pending:
        part = pending.pop()
        actual = entries.get(part.lower())
        if actual is None:
            log.debug("[ooxml] relationship target %s missing from %s; skipped", part, input_path)
            continue
        if actual in seen or part.lower() in metadata_parts:
            continue
        seen.add(actual)
        plan.keep.add(actual)
        rels_actual = entries.get(rels_name_for(actual).lower())
        if rels_actual is None:
            continue
        plan.keep.add(rels_actual)
        for rel in _relationships(_parse_xml(zin, rels_actual, input_path)):
            if rel.get("TargetMode") == "External":
                continue
            target = resolve_target(actual, rel.get("Target", ""))
            if target is not None:
                pending.append(target)

    if metadata_ids:
        for rel in list(root_rels):
            if rel.get("Id") in metadata_ids:
                root_rels.remove(rel)
        plan.rewritten[root_rels_name] = _serialize(root_rels, RELATIONSHIPS_NS)

    stale = []
    for override in ct_root.findall(f"{{{CONTENT_TYPES_NS}}}Override"):
        name = unquote(override.get("PartName", "")).lstrip("/").lower()
        if entries.get(name) not in plan.keep:
            stale.append(override)
    if stale:
        for override in stale:
            ct_root.remove(override)
        plan.rewritten[ct_name] = _serialize(ct_root, CONTENT_TYPES_NS)
    return plan


# ----------------------------
# Stripping
# ----------------------------
def _write_package(zin: zipfile.ZipFile, plan: _CopyPlan, output_path: Path):
    with zipfile.ZipFile(output_path, "w") as zout:
        zout.comment = zin.comment
        for item in zin.infolist():
            name = item.filename
            if name not in plan.keep:
                if not name.endswith("/"):
                    log.debug("[ooxml] dropped %s", name)
                continue
            data = plan.rewritten.get(name)
            if data is None:
                data = zin.read(name)
            zout.writestr(copy.copy(item), data)


def strip_package_metadata(input_path, output_path, kind: PackageKind) -> None:
    """Write a copy of ``input_path`` to ``output_path`` without core/extended properties.

    Missing metadata parts are not an error. Raises PackageOpenError when the input
    is not a package of ``kind``; other failures are wrapped in UnexpectedError.
    """
    input_path = Path(input_path)
    output_path = Path(output_path)
    if not input_path.is_file():
        raise InputNotFoundError(f"Input file does not exist: {input_path}",
                                 input_path=input_path, output_path=output_path)
    try:
        with zipfile.ZipFile(input_path, "r") as zin:
            plan = _plan_copy(zin, kind, input_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            try:
                _write_package(zin, plan, output_path)
            except Exception:
                output_path.unlink(missing_ok=True)
                raise
    except (zipfile.BadZipFile, zlib.error) as e:
        raise PackageOpenError(f"{input_path} is not a valid {kind.label} package: {e}",
                               input_path=input_path, output_path=output_path) from e
    except MetaCleanError as e:
        if e.output_path is None:
            e.output_path = str(output_path)
        raise
    except Exception as e:
        raise UnexpectedError(e, input_path=input_path, output_path=output_path) from e

    for name in plan.dropped_metadata:
        log.debug("[ooxml] removed metadata part %s", name)
    log.info("[ooxml] %s -> %s (%d parts kept)", input_path.name, output_path, len(plan.keep))
