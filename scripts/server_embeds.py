"""Parse DCS server-status embeds into a canonical status record.

A status channel carries up to three bot embeds, usually spread over several
messages:

- Server info: description with "Mission: <name>", fields "Server-IP / Port",
  "Map" (with per-coalition slot usage), "Date / Time in Mission" and the
  weather fields "Temperature", "Clouds", "Visibility".
- "Active Players": parallel "Name" / "Unit" columns grouped under Blue, Red
  and Neutral section fields.
- "Mission Statistics": a blank-named label column followed by BLUE / RED
  value columns, under "Current Situation" and "Achievements" sections.

Missing embeds are not errors: the record falls back to sentinel defaults and
`online` reports whether the server info embed was present at all.
"""

from __future__ import annotations

import re
import sys
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable

from channels import channel_name, status_channels
from embed_text import (
	first_line,
	iter_panels,
	leading_int,
	panel_description,
	panel_fields,
	panel_footer,
	panel_title,
	split_lines,
)
from progress import ProgressReporter


DEFAULT_SERVER_NAME = "101st Hunter Squadron"
DEFAULT_MAX_PLAYERS = 32
UNKNOWN = "--"
UNKNOWN_RUNTIME = "--:--"

SERVER_INFO_MARKER = "Mission:"
ACTIVE_PLAYERS_TITLE = "Active Players"
MISSION_STATS_TITLE = "Mission Statistics"
BLANK_FIELD = "_ _"

FIELD_SERVER_IP = "Server-IP / Port"
FIELD_MAP = "Map"
FIELD_MISSION_TIME = "Date / Time in Mission"
FIELD_TEMPERATURE = "Temperature"
FIELD_CLOUDS = "Clouds"
FIELD_VISIBILITY = "Visibility"

MISSION_RE = re.compile(r'Mission:\s*"?(.+?)"?$', re.MULTILINE)
LAST_UPDATED_RE = re.compile(r"Last updated:\s*(.+)")
BLUE_SLOTS_RE = re.compile(r"🔹Used:\s*(\d+)\s*/\s*(\d+)")
RED_SLOTS_RE = re.compile(r"🔸Used:\s*(\d+)\s*/\s*(\d+)")
RUNTIME_RE = re.compile(r"\*{0,2}Runtime\*{0,2}\s+(\d+:\d+(?::\d+)?)")
TEMPERATURE_RE = re.compile(r"(-?[\d.]+)\s*°C")
QNH_RE = re.compile(r"(\d+)\s*hPa")
CLOUDBASE_RE = re.compile(r"Cloudbase\**\s+([\d,]+)\s*ft")
GROUND_WIND_RE = re.compile(r"Ground:\s*(.+)")

CHANNEL_COUNT_RE = re.compile(r"[\[［](\d+)[／/](\d+)[\]］]")
CHANNEL_PREFIX_RE = re.compile(r".*server-", re.IGNORECASE)
CHANNEL_NOISE_RE = re.compile(r"[\[\]（）［］\d/／\s\-]")


class Faction(str, Enum):
	BLUE = "blue"
	RED = "red"
	NEUTRAL = "neutral"


class StatsSection(str, Enum):
	SITUATION = "situation"
	ACHIEVEMENTS = "achievements"


@dataclass
class PlayerEntry:
	name: str
	unit: str = UNKNOWN

	def to_dict(self) -> dict[str, str]:
		return {"name": self.name, "unit": self.unit}


@dataclass
class SideSlots:
	used: int = 0
	total: int = 0


@dataclass
class SlotInfo:
	blue: SideSlots = field(default_factory=SideSlots)
	red: SideSlots = field(default_factory=SideSlots)

	def to_dict(self) -> dict[str, dict[str, int]]:
		return {
			"blue": {"used": self.blue.used, "total": self.blue.total},
			"red": {"used": self.red.used, "total": self.red.total},
		}


@dataclass
class ServerInfo:
	mission: str = UNKNOWN
	server_ip: str | None = None
	map: str = UNKNOWN
	runtime: str = UNKNOWN_RUNTIME
	mission_date: str | None = None
	weather: dict[str, str] | None = None
	slots: SlotInfo | None = None
	last_update: str | None = None


@dataclass
class ActivePlayers:
	blue: list[PlayerEntry] = field(default_factory=list)
	red: list[PlayerEntry] = field(default_factory=list)
	neutral: list[PlayerEntry] = field(default_factory=list)

	def side(self, faction: Faction) -> list[PlayerEntry]:
		return getattr(self, faction.value)

	def everyone(self) -> list[PlayerEntry]:
		return [*self.blue, *self.red, *self.neutral]

	def to_dict(self) -> dict[str, list[dict[str, str]]]:
		return {faction.value: [entry.to_dict() for entry in self.side(faction)] for faction in Faction}


@dataclass
class MissionStats:
	situation: dict[str, dict[str, int]] = field(default_factory=dict)
	achievements: dict[str, dict[str, int]] = field(default_factory=dict)

	def section(self, section: StatsSection) -> dict[str, dict[str, int]]:
		return getattr(self, section.value)

	def to_dict(self) -> dict[str, dict[str, dict[str, int]]]:
		return {
			"situation": {label: dict(sides) for label, sides in self.situation.items()},
			"achievements": {label: dict(sides) for label, sides in self.achievements.items()},
		}


@dataclass
class ServerStatusRecord:
	online: bool
	channel_name: str
	server_name: str
	server_ip: str | None
	mission: str
	map: str
	players: int
	max_players: int
	mission_time: str
	mission_date: str | None
	weather: dict[str, str] | None
	slots: SlotInfo | None
	active_players: ActivePlayers
	mission_stats: MissionStats | None
	last_update: str | None
	map_id: str
	friendly_name: str

	@property
	def player_details(self) -> list[PlayerEntry]:
		return self.active_players.everyone()

	def to_dict(self) -> dict[str, Any]:
		details = [entry.to_dict() for entry in self.player_details]
		return {
			"online": self.online,
			"channelName": self.channel_name,
			"serverName": self.server_name,
			"serverIP": self.server_ip,
			"mission": self.mission,
			"map": self.map,
			"players": self.players,
			"maxPlayers": self.max_players,
			"missionTime": self.mission_time,
			"missionDate": self.mission_date,
			"weather": dict(self.weather) if self.weather is not None else None,
			"slots": self.slots.to_dict() if self.slots is not None else None,
			"playerList": [entry["name"] for entry in details],
			"playerDetails": details,
			"activePlayers": self.active_players.to_dict(),
			"missionStats": self.mission_stats.to_dict() if self.mission_stats is not None else None,
			"lastUpdate": self.last_update,
			"mapId": self.map_id,
			"friendlyName": self.friendly_name,
		}


# --- panel selection ---------------------------------------------------------


def is_server_info_panel(panel: dict[str, Any]) -> bool:
	return SERVER_INFO_MARKER in panel_description(panel)


def is_active_players_panel(panel: dict[str, Any]) -> bool:
	return panel_title(panel) == ACTIVE_PLAYERS_TITLE


def is_mission_stats_panel(panel: dict[str, Any]) -> bool:
	return panel_title(panel) == MISSION_STATS_TITLE


def first_panel(
	messages: Iterable[dict[str, Any]] | None,
	predicate: Callable[[dict[str, Any]], bool],
) -> dict[str, Any] | None:
	"""First matching panel of the batch; later duplicates are ignored."""
	found = False
	selected: dict[str, Any] | None = None
	for panel in iter_panels(messages):
		if not found and predicate(panel):
			selected = panel
			found = True
	return selected


# --- server info extractors ----------------------------------------------------


def extract_mission(description: str) -> str | None:
	match = MISSION_RE.search(description)
	if not match:
		return None
	return match.group(1).strip().replace("\\_", "_")


def extract_last_update(footer: str | None) -> str | None:
	if not footer:
		return None
	match = LAST_UPDATED_RE.search(footer)
	return match.group(1).strip() if match else None


def extract_side_slots(value: str, pattern: re.Pattern[str]) -> SideSlots:
	match = pattern.search(value)
	if not match:
		return SideSlots()
	return SideSlots(used=int(match.group(1)), total=int(match.group(2)))


def extract_slots(value: str) -> SlotInfo:
	return SlotInfo(
		blue=extract_side_slots(value, BLUE_SLOTS_RE),
		red=extract_side_slots(value, RED_SLOTS_RE),
	)


def extract_runtime(value: str) -> str | None:
	match = RUNTIME_RE.search(value)
	return match.group(1) if match else None


def extract_temperature(value: str) -> str | None:
	match = TEMPERATURE_RE.search(value)
	return f"{match.group(1)}°C" if match else None


def extract_qnh(value: str) -> str | None:
	match = QNH_RE.search(value)
	return f"{match.group(1)} hPa" if match else None


def extract_clouds(value: str) -> str | None:
	lines = [line for line in split_lines(value) if "Cloudbase" not in line]
	return lines[0] if lines else None


def extract_cloudbase(value: str) -> str | None:
	match = CLOUDBASE_RE.search(value)
	return f"{match.group(1)} ft" if match else None


def extract_visibility(value: str) -> str | None:
	return first_line(value) or None


def extract_wind(value: str) -> str | None:
	match = GROUND_WIND_RE.search(value)
	return match.group(1).strip() if match else None


WEATHER_FIELDS: dict[str, tuple[tuple[str, Callable[[str], str | None]], ...]] = {
	FIELD_TEMPERATURE: (("temperature", extract_temperature), ("qnh", extract_qnh)),
	FIELD_CLOUDS: (("clouds", extract_clouds), ("cloudbase", extract_cloudbase)),
	FIELD_VISIBILITY: (("visibility", extract_visibility), ("wind", extract_wind)),
}


def parse_server_info_panel(panel: dict[str, Any]) -> ServerInfo:
	info = ServerInfo()
	info.mission = extract_mission(panel_description(panel)) or UNKNOWN
	info.last_update = extract_last_update(panel_footer(panel))

	for name, value in panel_fields(panel):
		if name == FIELD_SERVER_IP:
			info.server_ip = value or None
		elif name == FIELD_MAP:
			info.map = first_line(value) or UNKNOWN
			info.slots = extract_slots(value)
		elif name == FIELD_MISSION_TIME:
			info.mission_date = first_line(value) or None
			info.runtime = extract_runtime(value) or UNKNOWN_RUNTIME
		elif name in WEATHER_FIELDS:
			if info.weather is None:
				info.weather = {}
			for key, extractor in WEATHER_FIELDS[name]:
				info.weather[key] = extractor(value) or UNKNOWN
	return info


# --- active players ------------------------------------------------------------


def pair_players(names: list[str], units: list[str]) -> list[PlayerEntry]:
	return [PlayerEntry(name=name, unit=units[idx] if idx < len(units) else UNKNOWN) for idx, name in enumerate(names)]


def parse_active_players_panel(panel: dict[str, Any] | None) -> ActivePlayers:
	result = ActivePlayers()
	if panel is None:
		return result

	faction = Faction.NEUTRAL
	names: list[str] = []
	units: list[str] = []

	def flush() -> None:
		result.side(faction).extend(pair_players(names, units))

	for name, value in panel_fields(panel):
		if "Blue" in name or "Blue" in value:
			# Blue opens the roster; nothing can be buffered before it.
			faction, names, units = Faction.BLUE, [], []
		elif "Red" in name or "Red" in value:
			flush()
			faction, names, units = Faction.RED, [], []
		elif "Neutral" in name:
			flush()
			faction, names, units = Faction.NEUTRAL, [], []
		elif name == "Name":
			names = split_lines(value)
		elif name == "Unit":
			units = split_lines(value)

	flush()
	return result


# --- mission statistics --------------------------------------------------------


def parse_mission_stats_panel(panel: dict[str, Any] | None) -> MissionStats | None:
	if panel is None:
		return None
	fields = panel_fields(panel)
	if not fields:
		return None

	result = MissionStats()
	section = StatsSection.SITUATION
	labels: list[str] = []

	for name, value in fields:
		side = name.lower()
		if "Achievements" in name:
			section, labels = StatsSection.ACHIEVEMENTS, []
		elif "Current Situation" in name:
			section, labels = StatsSection.SITUATION, []
		elif name == BLANK_FIELD and value != BLANK_FIELD:
			labels = split_lines(value)
		elif side in {"blue", "red"} and labels:
			values = [line.strip() for line in value.split("\n")]
			rows = result.section(section)
			for idx, label in enumerate(labels):
				raw = values[idx] if idx < len(values) else None
				rows.setdefault(label, {})[side] = leading_int(raw)
	return result


# --- aggregation ---------------------------------------------------------------


def map_identity(name: str) -> tuple[str, str]:
	"""Return (mapId, friendlyName) encoded in a status channel name."""
	bare = CHANNEL_NOISE_RE.sub("", CHANNEL_PREFIX_RE.sub("", name)).strip()
	return bare.lower(), bare[:1].upper() + bare[1:]


def channel_player_counts(name: str) -> tuple[int, int]:
	match = CHANNEL_COUNT_RE.search(name)
	if not match:
		return 0, DEFAULT_MAX_PLAYERS
	return int(match.group(1)), int(match.group(2))


def build_server_status(
	messages: Iterable[dict[str, Any]] | None,
	channel: str,
	server_name: str = DEFAULT_SERVER_NAME,
) -> ServerStatusRecord:
	batch = list(messages or [])
	info_panel = first_panel(batch, is_server_info_panel)
	info = parse_server_info_panel(info_panel) if info_panel is not None else ServerInfo()
	active = parse_active_players_panel(first_panel(batch, is_active_players_panel))
	stats = parse_mission_stats_panel(first_panel(batch, is_mission_stats_panel))

	channel_players, channel_capacity = channel_player_counts(channel)
	map_id, friendly_name = map_identity(channel)

	return ServerStatusRecord(
		online=info_panel is not None,
		channel_name=channel,
		server_name=server_name,
		server_ip=info.server_ip,
		mission=info.mission,
		map=info.map,
		players=channel_players or len(active.everyone()),
		max_players=channel_capacity,
		mission_time=info.runtime,
		mission_date=info.mission_date,
		weather=info.weather,
		slots=info.slots,
		active_players=active,
		mission_stats=stats,
		last_update=info.last_update,
		map_id=map_id,
		friendly_name=friendly_name,
	)


def collect_server_statuses(
	channels: Iterable[dict[str, Any]],
	fetch_messages: Callable[[dict[str, Any]], list[dict[str, Any]]],
	*,
	server_name: str = DEFAULT_SERVER_NAME,
	show_progress: bool = False,
) -> list[ServerStatusRecord]:
	"""Build one record per status channel; a failing channel is logged and skipped."""
	servers: list[ServerStatusRecord] = []
	targets = status_channels(channels)
	print(f"Found {len(targets)} server status channels")
	progress = ProgressReporter(label="[fetch_status] status channels", total=len(targets) if show_progress else 0)

	for channel in targets:
		name = channel_name(channel)
		try:
			servers.append(build_server_status(fetch_messages(channel), name, server_name=server_name))
		except Exception as exc:  # noqa: BLE001 - one bad channel must not abort the run
			progress.close()
			print(f"[warn] Could not read {name}: {exc}", file=sys.stderr)
			progress.step(failed=True)
		else:
			progress.step()

	progress.close()
	return servers
