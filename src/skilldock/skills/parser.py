"""SKILL.md frontmatter parsing and serialization.

A skill document is an optional YAML header fenced by ``---`` lines,
followed by a Markdown body. Header scalars are read as strings, and a
header YAML rejects is read line by line instead. Parsing never raises: a
missing header, or one with nothing usable in it, makes the whole input the
body and the metadata defaults to ``SkillMetadata()``.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any

import yaml

from skilldock.skills.models import DEFAULT_SKILL_NAME, SkillMetadata

logger = logging.getLogger(__name__)

_FRONTMATTER_RE = re.compile(
    r"\A---[ \t]*\r?\n(?:(.*?)\r?\n)?---[ \t]*(?:\r?\n(.*))?\Z",
    re.DOTALL,
)

# Header keys mapped onto SkillMetadata fields; anything else goes to ``extra``.
_KNOWN_KEYS = frozenset(
    {"name", "description", "license", "compatibility", "author", "version", "tags", "generatedBy", "metadata"}
)
_NESTED_KEYS = frozenset({"author", "version", "tags", "generatedBy"})

_YAML_SPECIAL_CHARS = frozenset(":#{}[],&*?|>'\"%@`")


@dataclass
class ParsedDocument:
    """Result of parsing a skill document."""

    metadata: SkillMetadata
    body: str


def _as_str(value: Any) -> str | None:
    """Coerce a header scalar to a string; empty and structured values become None."""
    if value is None or isinstance(value, (dict, list)):
        return None
    text = str(value)
    return text if text != "" else None


def _flatten(items: list[Any]) -> list[str]:
    tags: list[str] = []
    for item in items:
        if isinstance(item, list):
            tags.extend(_flatten(item))
        elif item is not None and not isinstance(item, dict):
            tags.append(str(item))
    return tags


def _as_tags(value: Any) -> list[str] | None:
    """Coerce a tags value to a flat list of strings (None when empty).

    List items are kept verbatim; a comma-separated string is split and trimmed.
    """
    if value is None:
        return None
    if isinstance(value, list):
        tags = _flatten(value)
    elif isinstance(value, str):
        tags = [t.strip() for t in value.split(",") if t.strip()]
    else:
        tags = [str(value)]
    return tags or None


def _unquote(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in "\"'":
        return value[1:-1]
    return value


def _parse_header_lines(header: str) -> dict[str, Any]:
    """Line-oriented reading of a header that is not valid YAML.

    Each ``key: value`` line is split on its first colon, so values may hold
    colons, brackets and ``#``. A top-level key with an empty value opens a
    nested block whose indented ``key: value`` lines become a mapping, and
    ``- item`` lines collect into a list under the last key without a value.
    """
    result: dict[str, Any] = {}
    nested: dict[str, Any] | None = None
    nested_key = ""
    list_key = ""
    items: list[str] = []

    def flush_list() -> None:
        nonlocal nested, nested_key, list_key
        if items and list_key:
            if nested is not None and list_key != nested_key:
                nested[list_key] = list(items)
            else:
                result[list_key] = list(items)
                if list_key == nested_key:
                    nested, nested_key = None, ""
        items.clear()
        list_key = ""

    def close_nested() -> None:
        nonlocal nested, nested_key
        if nested_key:
            result[nested_key] = nested or ""
        nested, nested_key = None, ""

    for line in header.splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#"):
            continue
        if stripped == "-" or stripped.startswith("- "):
            items.append(_unquote(stripped[1:].strip()))
            continue

        flush_list()
        key, sep, value = stripped.partition(":")
        if not sep:
            continue
        key, value = key.strip(), value.strip()
        indent = len(line) - len(line.lstrip())

        if indent > 0:
            if nested is None:
                continue
            if value in ("", "|"):
                list_key = key
            else:
                nested[key] = _unquote(value)
        else:
            close_nested()
            if value in ("", "|"):
                nested, nested_key, list_key = {}, key, key
            else:
                result[key] = _unquote(value)

    flush_list()
    close_nested()
    return result


# Unquoted plain value with an inline " #", which YAML would drop as a comment
_INLINE_HASH_RE = re.compile(
    r"^([ \t]*)([^\s#:-][^:\n]*?):[ \t]+([^\s'\"|>\[{][^\n]*?[ \t]#.*?)[ \t]*$",
    re.MULTILINE,
)


def _restore_inline_hashes(raw: dict[str, Any], header: str) -> None:
    """Put back text after an inline ``#`` in plain values (``name: Skill #1``)."""
    nested = raw.get("metadata")
    for match in _INLINE_HASH_RE.finditer(header):
        indent, key, value = match.groups()
        value = value.rstrip()
        target = nested if indent and isinstance(nested, dict) else raw
        if indent and target is raw:
            continue
        current = target.get(key)
        if isinstance(current, str) and current and value.startswith(current) and value != current:
            target[key] = value


def _load_header(header: str) -> dict[str, Any] | None:
    """Read the header into a mapping of strings, lists and mappings.

    Scalars are kept as written (``1.10`` and ``0123`` stay strings). A header
    YAML cannot read falls back to the line-oriented reader; None means
    nothing usable was found.
    """
    try:
        raw = yaml.load(header, Loader=yaml.BaseLoader)
    except yaml.YAMLError as e:
        logger.debug(f"Frontmatter is not valid YAML, reading it line by line: {e}")
        raw = None
    else:
        if raw is None:
            return {}
        if isinstance(raw, dict):
            _restore_inline_hashes(raw, header)
            return raw
        logger.debug("Frontmatter is not a mapping, reading it line by line")

    fallback = _parse_header_lines(header)
    return fallback or None


def parse_frontmatter(content: str) -> ParsedDocument:
    """Parse a SKILL.md document into metadata and body.

    Args:
        content: Full text of the document

    Returns:
        ParsedDocument with metadata (defaults applied) and body. When a
        header is present the body is returned without the blank lines that
        follow the closing fence and without trailing whitespace.
    """
    match = _FRONTMATTER_RE.match(content)
    if not match:
        return ParsedDocument(metadata=SkillMetadata(), body=content)

    header = match.group(1) or ""
    rest = match.group(2) or ""

    raw = _load_header(header)
    if raw is None:
        logger.debug("No usable frontmatter, treating document as body")
        return ParsedDocument(metadata=SkillMetadata(), body=content)

    nested = raw.get("metadata")
    if not isinstance(nested, dict):
        nested = {}

    def pick(key: str) -> Any:
        # The nested metadata block is the canonical location
        if nested.get(key) not in (None, ""):
            return nested[key]
        return raw.get(key)

    extra: dict[str, Any] = {str(k): v for k, v in raw.items() if k not in _KNOWN_KEYS}
    leftover = {str(k): v for k, v in nested.items() if k not in _NESTED_KEYS}
    if leftover:
        extra["metadata"] = leftover

    metadata = SkillMetadata(
        name=_as_str(raw.get("name")) or DEFAULT_SKILL_NAME,
        description=_as_str(raw.get("description")) or "",
        license=_as_str(raw.get("license")),
        compatibility=_as_str(raw.get("compatibility")),
        author=_as_str(pick("author")),
        version=_as_str(pick("version")),
        tags=_as_tags(pick("tags")),
        generated_by=_as_str(pick("generatedBy")),
        extra=extra,
    )

    return ParsedDocument(metadata=metadata, body=rest.lstrip("\r\n").rstrip())


def _quote(value: str) -> str:
    escaped = (
        value.replace("\\", "\\\\").replace('"', '\\"').replace("\n", "\\n").replace("\t", "\\t")
    )
    return f'"{escaped}"'


def _needs_quotes(value: str) -> bool:
    if value == "" or value != value.strip():
        return True
    if any(c in _YAML_SPECIAL_CHARS for c in value) or "\n" in value or "\\" in value:
        return True
    # Plain scalars YAML would read back as something else (yes, null, 1.0, - x)
    try:
        return yaml.safe_load(f"k: {value}") != {"k": value}
    except yaml.YAMLError:
        return True


def format_yaml_value(value: str) -> str:
    """Render a string as a YAML scalar, double-quoting it when needed."""
    return _quote(value) if _needs_quotes(value) else value


def _dump_block(data: dict[str, Any], indent: int = 0) -> list[str]:
    dumped = yaml.safe_dump(data, default_flow_style=False, sort_keys=False, allow_unicode=True)
    prefix = " " * indent
    return [prefix + line for line in dumped.rstrip("\n").split("\n")]


def _format_entry(key: str, value: Any, indent: int = 0) -> list[str]:
    prefix = " " * indent
    if isinstance(value, str):
        return [f"{prefix}{key}: {format_yaml_value(value)}"]
    return _dump_block({key: value}, indent)


def serialize_skill(metadata: SkillMetadata, body: str) -> str:
    """Serialize metadata and body back to SKILL.md content.

    Args:
        metadata: Skill metadata
        body: Markdown body (surrounding whitespace is trimmed)

    Returns:
        Document text ending with exactly one newline
    """
    lines: list[str] = ["---"]
    lines.append(f"name: {format_yaml_value(metadata.name or DEFAULT_SKILL_NAME)}")
    lines.append(f"description: {format_yaml_value(metadata.description or '')}")

    if metadata.license:
        lines.append(f"license: {format_yaml_value(metadata.license)}")
    if metadata.compatibility:
        lines.append(f"compatibility: {format_yaml_value(metadata.compatibility)}")
    if metadata.tags:
        lines.append("tags:")
        lines.extend(f"  - {format_yaml_value(tag)}" for tag in metadata.tags)

    nested_extra = metadata.extra.get("metadata")
    if not isinstance(nested_extra, dict):
        nested_extra = {}

    if metadata.author or metadata.version or metadata.generated_by or nested_extra:
        lines.append("metadata:")
        if metadata.author:
            lines.append(f"  author: {format_yaml_value(metadata.author)}")
        if metadata.version:
            lines.append(f"  version: {_quote(metadata.version)}")
        if metadata.generated_by:
            lines.append(f"  generatedBy: {format_yaml_value(metadata.generated_by)}")
        for key, value in nested_extra.items():
            lines.extend(_format_entry(key, value, indent=2))

    for key, value in metadata.extra.items():
        if key == "metadata":
            continue
        lines.extend(_format_entry(key, value))

    lines.append("---")
    lines.append("")
    lines.append(body.strip())
    lines.append("")

    return "\n".join(lines)
