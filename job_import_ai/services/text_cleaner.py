"""Compress raw page HTML into a compact, LLM-ready text payload."""

import json
import re
from typing import List, Optional

from job_import_ai.config import MAX_HTML_LENGTH

# Body text is only worth adding when at least this much budget is left
MIN_BODY_BUDGET = 500
MIN_BODY_TEXT = 50

META_KEYS = frozenset({
    "description",
    "og:title",
    "og:description",
    "og:site_name",
    "og:image",
    "og:url",
})

_JSON_LD_RE = re.compile(
    r"<script[^>]*type=[\"']application/ld\+json[\"'][^>]*>([\s\S]*?)</script>",
    re.IGNORECASE,
)
_TITLE_RE = re.compile(r"<title[^>]*>([\s\S]*?)</title>", re.IGNORECASE)
_META_TAG_RE = re.compile(r"<meta\b[^>]*>", re.IGNORECASE)
_META_KEY_RE = re.compile(r"(?<=\s)(?:name|property)\s*=\s*([\"'])(.*?)\1", re.IGNORECASE | re.DOTALL)
_META_CONTENT_RE = re.compile(r"\bcontent\s*=\s*([\"'])(.*?)\1", re.IGNORECASE | re.DOTALL)
_BODY_RE = re.compile(r"<body[^>]*>([\s\S]*)</body>", re.IGNORECASE)
_NOISE_TAGS = ("script", "style", "svg", "noscript", "nav", "footer", "header")

_ENTITIES = (
    ("&nbsp;", " "),
    ("&lt;", "<"),
    ("&gt;", ">"),
    ("&quot;", '"'),
    ("&#39;", "'"),
    ("&apos;", "'"),
    ("&amp;", "&"),
)
_NUMERIC_ENTITY_RE = re.compile(r"&#(x[0-9a-fA-F]+|\d+);")


def _numeric_entity(match: "re.Match[str]") -> str:
    code = match.group(1)
    try:
        return chr(int(code[1:], 16) if code[0] in "xX" else int(code))
    except (ValueError, OverflowError):
        return match.group(0)


def decode_entities(text: str) -> str:
    """Decode the common named entities plus numeric ones."""
    for entity, char in _ENTITIES:
        text = text.replace(entity, char)
    return _NUMERIC_ENTITY_RE.sub(_numeric_entity, text)


def extract_json_ld(html: str) -> List[str]:
    """All JSON-LD blocks, minified when parseable, trimmed raw otherwise."""
    blocks = []
    for match in _JSON_LD_RE.finditer(html):
        raw = match.group(1).strip()
        try:
            blocks.append(json.dumps(json.loads(raw), separators=(",", ":"), ensure_ascii=False))
        except ValueError:
            blocks.append(raw)
    return [b for b in blocks if b]


def extract_meta_tags(html: str) -> Optional[str]:
    """Key meta tags (title, description, og:*) as a compact text block."""
    tags = []

    title = _TITLE_RE.search(html)
    if title and title.group(1).strip():
        tags.append(f"title: {decode_entities(title.group(1).strip())}")

    for tag in _META_TAG_RE.findall(html):
        key = _META_KEY_RE.search(tag)
        content = _META_CONTENT_RE.search(tag)
        if key and content and key.group(2).strip().lower() in META_KEYS:
            tags.append(f"{key.group(2).strip()}: {decode_entities(content.group(2))}")

    return "META:\n" + "\n".join(tags) if tags else None


def extract_body_text(html: str) -> Optional[str]:
    """
    Plain readable text of the <body>: page chrome (nav, header, footer),
    scripts, styles, svg and comments removed, tags stripped, whitespace collapsed.
    Returns None when almost nothing is left.
    """
    body = _BODY_RE.search(html)
    text = body.group(1) if body else html

    for tag in _NOISE_TAGS:
        # Lookahead so custom elements like <nav-menu> are not taken for <nav>
        text = re.sub(rf"<{tag}(?=[\s>/])[\s\S]*?</{tag}\s*>", "", text, flags=re.IGNORECASE)
    text = re.sub(r"<!--[\s\S]*?-->", "", text)

    # Strip all remaining HTML tags
    text = re.sub(r"<[^>]+>", " ", text)
    text = decode_entities(text)

    # Collapse whitespace and blank-line runs
    text = re.sub(r"[ \t\r\f\v]+", " ", text)
    text = re.sub(r"\n[ \n]+", "\n", text)
    text = text.strip()

    return text if len(text) > MIN_BODY_TEXT else None


def compress_for_llm(html: str, max_length: int = MAX_HTML_LENGTH) -> str:
    """
    Aggressively compress raw HTML into a compact payload for the LLM.

    Priority order (highest value per token first):
      1. JSON-LD structured data (schema.org JobPosting)
      2. Key meta tags (title, description, og:*)
      3. Stripped body text, truncated to whatever budget is left

    The result never exceeds max_length characters.
    """
    if not html:
        return ""

    parts: List[str] = []
    budget = max_length

    json_ld = extract_json_ld(html)
    if json_ld:
        section = "JSON-LD:\n" + "\n".join(json_ld)
        parts.append(section)
        budget -= len(section)

    meta = extract_meta_tags(html)
    if meta and budget > len(meta):
        parts.append(meta)
        budget -= len(meta)

    if budget > MIN_BODY_BUDGET:
        body = extract_body_text(html)
        if body:
            parts.append("PAGE TEXT:\n" + body[:budget])

    return "\n\n".join(parts)[:max_length]
