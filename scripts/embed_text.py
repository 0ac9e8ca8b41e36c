"""Small pure helpers shared by the embed parsers.

Everything here takes raw embed text (or a message list) and returns plain
values; nothing raises on malformed input.
"""

from __future__ import annotations

import re
from typing import Any, Iterable, Iterator


LEADING_INT_RE = re.compile(r"^\s*([+-]?\d+)")
GROUPED_INT_RE = re.compile(r"\d[\d,]*")

# Order matters: paired markers first, stray asterisks last.
MARKDOWN_RULES = [
	(re.compile(r"\*\*(.+?)\*\*"), r"\1"),
	(re.compile(r"__(.+?)__"), r"\1"),
	(re.compile(r"\*(.+?)\*"), r"\1"),
	(re.compile(r"~~(.+?)~~"), r"\1"),
	(re.compile(r"`(.+?)`"), r"\1"),
	(re.compile(r"\*+"), ""),
]


def iter_panels(messages: Iterable[dict[str, Any]] | None) -> Iterator[dict[str, Any]]:
	"""Yield every embed of every message, preserving batch order."""
	for message in messages or []:
		for embed in message.get("embeds", []) or []:
			if isinstance(embed, dict):
				yield embed


def panel_title(panel: dict[str, Any]) -> str:
	return str(panel.get("title") or "")


def panel_description(panel: dict[str, Any]) -> str:
	return str(panel.get("description") or "")


def panel_footer(panel: dict[str, Any]) -> str | None:
	footer = panel.get("footer") or {}
	text = footer.get("text") if isinstance(footer, dict) else None
	return str(text) if text else None


def panel_fields(panel: dict[str, Any]) -> list[tuple[str, str]]:
	"""Return (name, value) pairs with surrounding whitespace trimmed."""
	pairs: list[tuple[str, str]] = []
	for field in panel.get("fields", []) or []:
		name = str(field.get("name") or "").strip()
		value = str(field.get("value") or "").strip()
		pairs.append((name, value))
	return pairs


def split_lines(value: str) -> list[str]:
	return [line.strip() for line in value.split("\n") if line.strip()]


def first_line(value: str) -> str:
	return value.split("\n")[0].strip()


def strip_markdown(text: str) -> str:
	for pattern, replacement in MARKDOWN_RULES:
		text = pattern.sub(replacement, text)
	return text.strip()


def leading_int(text: str | None, default: int = 0) -> int:
	"""Parse the integer at the start of text, ignoring anything after it."""
	match = LEADING_INT_RE.match(text or "")
	if not match:
		return default
	return int(match.group(1))


def grouped_int(text: str) -> int | None:
	"""First thousands-grouped number in text ("1,250" -> 1250)."""
	match = GROUPED_INT_RE.search(text)
	if not match:
		return None
	return int(match.group(0).replace(",", ""))
