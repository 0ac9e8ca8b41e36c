"""Parse pilot leaderboard embeds (Foothold credit rankings) into one record per channel.

Leaderboard bots post ranked lines in the embed description, e.g.::

	🏆 FOOTHOLD LEADERBOARD
	#1 | **Maverick**
	   12,500 credits
	#2 | *Goose*
	   9,800

and optional summary fields whose names are either Turkish or English
("Toplam Oyuncu" / "Total Players", "En Yuksek Puan" / "Highest Score").
Credits for a rank are looked up in the few lines following it. Stats that
no field or description text provides are derived from the pilot list.
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable

from channels import channel_name, leaderboard_channels
from embed_text import grouped_int, iter_panels, panel_description, panel_fields, panel_footer, panel_title, strip_markdown
from progress import ProgressReporter


DEFAULT_TITLE = "Leaderboard"
CREDIT_LOOKAHEAD_LINES = 3

DESCRIPTION_MARKERS = ("LEADERBOARD", "TOP", "credits", "#1")
TITLE_MARKERS = ("LEADERBOARD", "Leaderboard")

TROPHY_TITLE_RE = re.compile(r"🏆\s*(.+?)(?:\n|$)")
RANK_LINE_RE = re.compile(r"^\s*[*_]*#(\d+)[*_]*(?:\s*[|│┃]\s*|\s+)(.+?)\s*$")
CREDITS_RE = re.compile(r"(\d[\d,]*)\s*credits?", re.IGNORECASE)
BARE_NUMBER_RE = re.compile(r"\d[\d,]{2,}")
FOOTER_LAG_RE = re.compile(r"10\s*dk")

TOTAL_TEXT_RE = re.compile(r"(?:Toplam|Total)\s*(?:Credits?)?[:\s]*(\d[\d,]*)", re.IGNORECASE)
ACTIVE_TEXT_RE = re.compile(r"(\d+\s*/\s*\d+)")
HIGHEST_TEXT_RE = re.compile(r"(?:En\s*Y[uü]ksek|Highest)\s*(?:Puan|Score)?[:\s]*(\d[\d,]*)", re.IGNORECASE)

PLAYER_KEYWORDS = ("oyuncu", "player")
TOTAL_KEYWORDS = ("toplam", "total")
ACTIVE_KEYWORDS = ("aktif", "active", "pilot")
HIGHEST_KEYWORDS = ("yuksek", "yüksek", "highest", "puan", "score")

STAT_KEYS = ("totalCredits", "totalPlayers", "activePilots", "highestScore")


@dataclass
class PilotEntry:
	rank: int
	name: str
	credits: int = 0

	def to_dict(self) -> dict[str, Any]:
		return {"rank": self.rank, "name": self.name, "credits": self.credits}


@dataclass
class LeaderboardPanel:
	"""What one recognized embed contributes before cross-panel folding."""

	embed_title: str
	trophy_title: str | None
	pilots: list[PilotEntry]
	field_stats: dict[str, Any]
	text_stats: dict[str, Any]
	footer: str | None


@dataclass
class LeaderboardRecord:
	channel_name: str
	title: str
	pilots: list[PilotEntry]
	stats: dict[str, Any] = field(default_factory=dict)
	last_update: str | None = None

	def to_dict(self) -> dict[str, Any]:
		return {
			"channelName": self.channel_name,
			"title": self.title,
			"pilots": [pilot.to_dict() for pilot in self.pilots],
			"stats": {key: self.stats.get(key) for key in STAT_KEYS},
			"lastUpdate": self.last_update,
		}


def is_leaderboard_panel(panel: dict[str, Any]) -> bool:
	description = panel_description(panel)
	title = panel_title(panel)
	return any(marker in description for marker in DESCRIPTION_MARKERS) or any(
		marker in title for marker in TITLE_MARKERS
	)


def extract_trophy_title(description: str) -> str | None:
	match = TROPHY_TITLE_RE.search(description)
	if not match:
		return None
	return match.group(1).strip() or None


def parse_rank_line(line: str) -> tuple[int, str] | None:
	match = RANK_LINE_RE.match(line)
	if not match:
		return None
	return int(match.group(1)), strip_markdown(match.group(2))


def extract_credits(line: str) -> int | None:
	"""Credits on one line following a rank line, or None if it has none."""
	clean = line.replace("**", "").replace("__", "")
	match = CREDITS_RE.search(clean)
	if match:
		return int(match.group(1).replace(",", ""))
	if "#" in clean:
		return None
	bare = BARE_NUMBER_RE.search(clean)
	return int(bare.group(0).replace(",", "")) if bare else None


def lookup_credits(lines: list[str], rank_index: int) -> int:
	window = lines[rank_index + 1 : rank_index + 1 + CREDIT_LOOKAHEAD_LINES]
	for line in window:
		credits = extract_credits(line)
		if credits is not None:
			return credits
	return 0


def parse_pilots(description: str) -> list[PilotEntry]:
	lines = description.split("\n")
	pilots: list[PilotEntry] = []
	for idx, line in enumerate(lines):
		parsed = parse_rank_line(line)
		if parsed is None:
			continue
		rank, name = parsed
		pilots.append(PilotEntry(rank=rank, name=name, credits=lookup_credits(lines, idx)))
	return pilots


def is_total_players_field(name: str) -> bool:
	return any(word in name for word in PLAYER_KEYWORDS) and any(word in name for word in TOTAL_KEYWORDS)


def is_total_credits_field(name: str) -> bool:
	return any(word in name for word in TOTAL_KEYWORDS) and not any(word in name for word in PLAYER_KEYWORDS)


def is_active_pilots_field(name: str) -> bool:
	return any(word in name for word in ACTIVE_KEYWORDS)


def is_highest_score_field(name: str) -> bool:
	return any(word in name for word in HIGHEST_KEYWORDS)


def parse_stat_fields(panel: dict[str, Any]) -> dict[str, Any]:
	"""Stats from labelled fields; a later matching field overrides an earlier one."""
	stats: dict[str, Any] = {}
	for raw_name, raw_value in panel_fields(panel):
		name = raw_name.lower()
		value = raw_value.replace("```", "").strip()
		number = grouped_int(value)

		if is_total_players_field(name):
			if number is not None:
				stats["totalPlayers"] = number
		elif is_total_credits_field(name):
			if number is not None:
				stats["totalCredits"] = number
		if is_active_pilots_field(name):
			stats["activePilots"] = value
		if is_highest_score_field(name) and number is not None:
			stats["highestScore"] = number
	return stats


def parse_stat_text(description: str) -> dict[str, Any]:
	stats: dict[str, Any] = {}
	total = TOTAL_TEXT_RE.search(description)
	if total:
		stats["totalCredits"] = int(total.group(1).replace(",", ""))
	active = ACTIVE_TEXT_RE.search(description)
	if active:
		stats["activePilots"] = active.group(1)
	highest = HIGHEST_TEXT_RE.search(description)
	if highest:
		stats["highestScore"] = int(highest.group(1).replace(",", ""))
	return stats


def correct_footer(text: str | None) -> str | None:
	if not text:
		return None
	# The bot's footer claims a 10 minute refresh; the feed is refreshed every 5.
	return FOOTER_LAG_RE.sub("5 dk", text)


def parse_leaderboard_panel(panel: dict[str, Any]) -> LeaderboardPanel | None:
	if not is_leaderboard_panel(panel):
		return None
	description = panel_description(panel)
	return LeaderboardPanel(
		embed_title=panel_title(panel),
		trophy_title=extract_trophy_title(description),
		pilots=parse_pilots(description),
		field_stats=parse_stat_fields(panel),
		text_stats=parse_stat_text(description),
		footer=correct_footer(panel_footer(panel)),
	)


def derive_stats(stats: dict[str, Any], pilots: list[PilotEntry]) -> dict[str, Any]:
	derived = {
		"totalCredits": stats.get("totalCredits") or 0,
		"totalPlayers": stats.get("totalPlayers") or 0,
		"activePilots": stats.get("activePilots") or "",
		"highestScore": stats.get("highestScore") or 0,
	}
	if not pilots:
		return derived
	if not derived["totalCredits"]:
		derived["totalCredits"] = sum(pilot.credits for pilot in pilots)
	if not derived["activePilots"]:
		derived["activePilots"] = str(len(pilots))
	if not derived["highestScore"]:
		derived["highestScore"] = max(pilot.credits for pilot in pilots)
	if not derived["totalPlayers"]:
		derived["totalPlayers"] = len(pilots)
	return derived


def build_leaderboard(messages: Iterable[dict[str, Any]] | None, channel: str) -> LeaderboardRecord | None:
	"""Fold every recognized embed of the batch into one leaderboard, or None if there is none."""
	found = False
	title = ""
	pilots: list[PilotEntry] = []
	stats: dict[str, Any] = {}
	last_update: str | None = None

	for raw_panel in iter_panels(messages):
		panel = parse_leaderboard_panel(raw_panel)
		if panel is None:
			continue
		found = True

		if panel.trophy_title:
			title = panel.trophy_title
		if not title and panel.embed_title:
			title = panel.embed_title

		pilots.extend(panel.pilots)
		stats.update(panel.field_stats)
		for key, value in panel.text_stats.items():
			if not stats.get(key):
				stats[key] = value
		if panel.footer:
			last_update = panel.footer

	if not found:
		return None

	pilots.sort(key=lambda pilot: pilot.rank)
	return LeaderboardRecord(
		channel_name=channel,
		title=title or DEFAULT_TITLE,
		pilots=pilots,
		stats=derive_stats(stats, pilots),
		last_update=last_update,
	)


def collect_leaderboards(
	channels: Iterable[dict[str, Any]],
	fetch_messages: Callable[[dict[str, Any]], list[dict[str, Any]]],
	*,
	show_progress: bool = False,
) -> list[LeaderboardRecord]:
	"""One record per leaderboard channel that actually carries a leaderboard."""
	leaderboards: list[LeaderboardRecord] = []
	targets = leaderboard_channels(channels)
	print(f"Found {len(targets)} leaderboard channels")
	progress = ProgressReporter(label="[fetch_status] leaderboard channels", total=len(targets) if show_progress else 0)

	for channel in targets:
		name = channel_name(channel)
		try:
			record = build_leaderboard(fetch_messages(channel), name)
		except Exception as exc:  # noqa: BLE001 - one bad channel must not abort the run
			progress.close()
			print(f"[warn] Could not read {name}: {exc}", file=sys.stderr)
			progress.step(failed=True)
			continue
		if record is not None:
			leaderboards.append(record)
		progress.step()

	progress.close()
	return leaderboards
