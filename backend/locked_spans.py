"""Locked-span protocol: text between [[LOCK]] and [[/LOCK]] must survive verbatim."""

import re
from typing import Iterable

LOCK_OPEN = "[[LOCK]]"
LOCK_CLOSE = "[[/LOCK]]"

_LOCK_REGEX = re.compile(re.escape(LOCK_OPEN) + r"(.*?)" + re.escape(LOCK_CLOSE), re.DOTALL)
_STRAY_DELIMITER_REGEX = re.compile(r"\[\[/?LOCK\]\]")


def wrap(span: str) -> str:
    return f"{LOCK_OPEN}{span}{LOCK_CLOSE}"


def extract_locked_spans(*texts: str) -> list[str]:
    spans: list[str] = []
    for text in texts:
        for m in _LOCK_REGEX.finditer(text or ""):
            span = m.group(1).strip()
            if span and span not in spans:
                spans.append(span)
    return spans


def merge_spans(*groups: Iterable[str]) -> list[str]:
    out: list[str] = []
    for group in groups:
        for span in group or ():
            s = (span or "").strip()
            if s and s not in out:
                out.append(s)
    return out


def strip_lock_delimiters(text: str) -> str:
    """Unwrap delimited spans, keeping their content, and drop stray delimiters."""
    out = _LOCK_REGEX.sub(lambda m: m.group(1), text or "")
    return _STRAY_DELIMITER_REGEX.sub("", out)


def missing_locked_spans(text: str, spans: Iterable[str]) -> list[str]:
    body = text or ""
    return [s for s in spans if s and s not in body]


def repair_locked_spans(text: str, spans: Iterable[str]) -> str:
    """Append every missing span as its own line; existing spans are left in place."""
    missing = missing_locked_spans(text, spans)
    if not missing:
        return text
    base = (text or "").rstrip()
    tail = "\n".join(missing)
    return f"{base}\n{tail}" if base else tail


def protect_spans(text: str, spans: Iterable[str]) -> tuple[str, dict[str, str]]:
    """Swap locked spans for inert placeholders so later rewrites cannot touch them."""
    table: dict[str, str] = {}
    out = text or ""
    for i, span in enumerate(sorted({s for s in spans if s}, key=len, reverse=True)):
        if span in out:
            token = f"\x00LOCKED{i}\x00"
            table[token] = span
            out = out.replace(span, token)
    return out, table


def restore_spans(text: str, table: dict[str, str]) -> str:
    out = text
    for token, span in table.items():
        out = out.replace(token, span)
    return out
