"""Funding document merge logic.

Pure functions over the bytes of a ``FUNDING.yml`` file. The only field this
module ever changes is ``custom``, which is treated as an ordered set of link
strings: exact-string duplicates are suppressed, insertion order is kept and
a legacy scalar value is coerced into a one-element list before appending.

Output is produced with a ``yaml.SafeDumper`` (``sort_keys=False,
default_flow_style=None``) so existing keys keep their order and leaf lists
render inline, e.g. ``custom: ['https://example.org/wish']``. Keys left empty in
the source stay empty rather than becoming ``null``. YAML comments do not
survive a load/dump cycle and are dropped from the rewritten file.
"""

from __future__ import annotations

from typing import Any

import yaml

from .errors import DocumentFormatError

CUSTOM_KEY = "custom"
_DUMP_WIDTH = 4096


def parse_funding(content: bytes | None, *, path: str | None = None) -> dict[str, Any]:
    """Decode and parse funding content into a mapping.

    ``None`` and empty documents yield an empty mapping. Anything that is not
    a YAML mapping raises :class:`DocumentFormatError`.
    """
    if content is None:
        return {}
    try:
        text = content.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        raise DocumentFormatError(f"Funding file is not valid UTF-8: {exc}", path=path) from exc
    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise DocumentFormatError(f"Invalid YAML in funding file: {exc}", path=path) from exc
    if loaded is None:
        return {}
    if not isinstance(loaded, dict):
        raise DocumentFormatError(
            f"Funding file must be a mapping, got {type(loaded).__name__}", path=path
        )
    return loaded


def _custom_links(document: dict[str, Any], *, path: str | None = None) -> list[Any]:
    value = document.get(CUSTOM_KEY)
    if value is None:
        return []
    if isinstance(value, list):
        return list(value)
    if isinstance(value, dict):
        raise DocumentFormatError(f"'{CUSTOM_KEY}' must be a link or a list of links", path=path)
    # legacy single-link form
    return [value]


def funding_contains(content: bytes | None, link: str, *, path: str | None = None) -> bool:
    """True when the ``custom`` links of ``content`` already include ``link``."""
    document = parse_funding(content, path=path)
    return link in _custom_links(document, path=path)


class _FundingDumper(yaml.SafeDumper):
    pass


def _represent_empty(dumper: yaml.SafeDumper, _value: None) -> yaml.Node:
    return dumper.represent_scalar("tag:yaml.org,2002:null", "")


_FundingDumper.add_representer(type(None), _represent_empty)


def render_funding(document: dict[str, Any]) -> bytes:
    text = yaml.dump(
        document,
        Dumper=_FundingDumper,
        sort_keys=False,
        default_flow_style=None,
        allow_unicode=True,
        width=_DUMP_WIDTH,
    )
    return text.encode("utf-8")


def merge_funding(existing: bytes | None, link: str, *, path: str | None = None) -> bytes:
    """Return funding content with ``link`` appended to ``custom``.

    ``existing`` is ``None`` when the repository has no funding file yet.
    """
    if existing is None:
        return render_funding({CUSTOM_KEY: [link]})
    document = parse_funding(existing, path=path)
    links = _custom_links(document, path=path)
    if link not in links:
        links.append(link)
    document[CUSTOM_KEY] = links
    return render_funding(document)


__all__ = ["parse_funding", "funding_contains", "merge_funding", "render_funding", "CUSTOM_KEY"]
