from __future__ import annotations

import contextlib
import io
import json
import unittest
from pathlib import Path
import sys

SCRIPT_DIR = Path(__file__).resolve().parent
if str(SCRIPT_DIR) not in sys.path:
	sys.path.insert(0, str(SCRIPT_DIR))

from server_embeds import (
	build_server_status,
	channel_player_counts,
	collect_server_statuses,
	map_identity,
	parse_active_players_panel,
	parse_mission_stats_panel,
	parse_server_info_panel,
)


SERVER_INFO_EMBED = {
	"title": "101st Foothold",
	"description": 'Mission: "Foothold\\_Caucasus v2"\nStatus: running',
	"footer": {"text": "Last updated: 2024-05-01 12:00 UTC"},
	"fields": [
		{"name": "Server-IP / Port", "value": "203.0.113.7:10308"},
		{"name": "Map", "value": "Caucasus\n🔹Used: 4/20\n🔸Used: 2/12"},
		{"name": "Date / Time in Mission", "value": "2016-06-21 14:05\n**Runtime**\n2:15:30"},
		{"name": "Temperature", "value": "21.5 °C\nQNH 1013 hPa"},
		{"name": "Clouds", "value": "Scattered 4\nCloudbase\n3,200 ft"},
		{"name": "Visibility", "value": "80,000 m\nGround: 3 m/s from 270°"},
	],
}

ACTIVE_PLAYERS_EMBED = {
	"title": "Active Players",
	"fields": [
		{"name": "🔹 Blue", "value": "_ _"},
		{"name": "Name", "value": "Maverick\nGoose"},
		{"name": "Unit", "value": "F-14B\nF-14B"},
		{"name": "🔸 Red", "value": "_ _"},
		{"name": "Name", "value": "Iceman"},
		{"name": "Unit", "value": "MiG-29S"},
		{"name": "Neutral", "value": "_ _"},
		{"name": "Name", "value": "Observer"},
	],
}

MISSION_STATS_EMBED = {
	"title": "Mission Statistics",
	"fields": [
		{"name": "Current Situation", "value": "_ _"},
		{"name": "_ _", "value": "Airbases\nSAM Sites\nShips"},
		{"name": "BLUE", "value": "5\n3"},
		{"name": "RED", "value": "4\n7\n2\n9"},
		{"name": "Achievements", "value": "_ _"},
		{"name": "_ _", "value": "Kills"},
		{"name": "Blue", "value": "12 kills"},
	],
}


def message(*embeds: dict) -> dict:
	return {"id": "1", "embeds": list(embeds)}


class ServerInfoPanelTests(unittest.TestCase):
	def test_extracts_every_field(self) -> None:
		info = parse_server_info_panel(SERVER_INFO_EMBED)

		self.assertEqual(info.mission, "Foothold_Caucasus v2")
		self.assertEqual(info.last_update, "2024-05-01 12:00 UTC")
		self.assertEqual(info.server_ip, "203.0.113.7:10308")
		self.assertEqual(info.map, "Caucasus")
		self.assertEqual(info.slots.to_dict(), {"blue": {"used": 4, "total": 20}, "red": {"used": 2, "total": 12}})
		self.assertEqual(info.mission_date, "2016-06-21 14:05")
		self.assertEqual(info.runtime, "2:15:30")
		self.assertEqual(
			info.weather,
			{
				"temperature": "21.5°C",
				"qnh": "1013 hPa",
				"clouds": "Scattered 4",
				"cloudbase": "3,200 ft",
				"visibility": "80,000 m",
				"wind": "3 m/s from 270°",
			},
		)

	def test_weather_only_has_keys_of_present_fields(self) -> None:
		info = parse_server_info_panel(
			{"description": "Mission: Training", "fields": [{"name": "Temperature", "value": "n/a"}]}
		)
		self.assertEqual(info.weather, {"temperature": "--", "qnh": "--"})

	def test_empty_field_values_fall_back_to_placeholders(self) -> None:
		info = parse_server_info_panel(
			{
				"description": "Mission: Training",
				"fields": [
					{"name": "Server-IP / Port", "value": "  "},
					{"name": "Map", "value": ""},
					{"name": "Date / Time in Mission", "value": ""},
				],
			}
		)
		self.assertIsNone(info.server_ip)
		self.assertEqual(info.map, "--")
		self.assertIsNone(info.mission_date)

	def test_missing_fields_keep_defaults(self) -> None:
		info = parse_server_info_panel(
			{"description": "Mission:", "fields": [{"name": "Map", "value": "Syria"}, {"name": "Date / Time in Mission", "value": "2020-01-01"}]}
		)
		self.assertEqual(info.mission, "--")
		self.assertIsNone(info.weather)
		self.assertIsNone(info.last_update)
		self.assertEqual(info.runtime, "--:--")
		self.assertEqual(info.slots.to_dict(), {"blue": {"used": 0, "total": 0}, "red": {"used": 0, "total": 0}})


class ActivePlayersPanelTests(unittest.TestCase):
	def test_groups_players_by_faction(self) -> None:
		players = parse_active_players_panel(ACTIVE_PLAYERS_EMBED).to_dict()

		self.assertEqual(
			players["blue"],
			[{"name": "Maverick", "unit": "F-14B"}, {"name": "Goose", "unit": "F-14B"}],
		)
		self.assertEqual(players["red"], [{"name": "Iceman", "unit": "MiG-29S"}])
		self.assertEqual(players["neutral"], [{"name": "Observer", "unit": "--"}])

	def test_column_order_within_a_section_does_not_matter(self) -> None:
		fields = ACTIVE_PLAYERS_EMBED["fields"]
		swapped = [fields[0], fields[2], fields[1], fields[3], fields[5], fields[4], *fields[6:]]

		self.assertEqual(
			parse_active_players_panel({"title": "Active Players", "fields": swapped}),
			parse_active_players_panel(ACTIVE_PLAYERS_EMBED),
		)

	def test_missing_units_default_to_placeholder(self) -> None:
		players = parse_active_players_panel(
			{"title": "Active Players", "fields": [{"name": "Name", "value": "Viper\n\nJester\nHollywood\n"}]}
		)
		self.assertEqual([entry.unit for entry in players.neutral], ["--", "--", "--"])
		self.assertEqual([entry.name for entry in players.neutral], ["Viper", "Jester", "Hollywood"])

	def test_absent_panel_yields_empty_factions(self) -> None:
		self.assertEqual(parse_active_players_panel(None).to_dict(), {"blue": [], "red": [], "neutral": []})


class MissionStatsPanelTests(unittest.TestCase):
	def test_pairs_label_column_with_side_columns(self) -> None:
		stats = parse_mission_stats_panel(MISSION_STATS_EMBED).to_dict()

		self.assertEqual(
			stats["situation"],
			{
				"Airbases": {"blue": 5, "red": 4},
				"SAM Sites": {"blue": 3, "red": 7},
				"Ships": {"blue": 0, "red": 2},
			},
		)
		self.assertEqual(stats["achievements"], {"Kills": {"blue": 12}})

	def test_side_column_without_labels_is_ignored(self) -> None:
		stats = parse_mission_stats_panel({"title": "Mission Statistics", "fields": [{"name": "BLUE", "value": "1"}]})
		self.assertEqual(stats.to_dict(), {"situation": {}, "achievements": {}})

	def test_absent_panel_returns_none(self) -> None:
		self.assertIsNone(parse_mission_stats_panel(None))


class ServerStatusAggregatorTests(unittest.TestCase):
	def test_channel_name_supplies_map_and_counts(self) -> None:
		record = build_server_status([], "server-[12/32]-Nevada")

		self.assertEqual(record.map_id, "nevada")
		self.assertEqual(record.friendly_name, "Nevada")
		self.assertEqual(record.players, 12)
		self.assertEqual(record.max_players, 32)

	def test_full_width_brackets_and_prefix(self) -> None:
		self.assertEqual(map_identity("🟢server-［3／16］-syria"), ("syria", "Syria"))
		self.assertEqual(channel_player_counts("🟢server-［3／16］-syria"), (3, 16))
		self.assertEqual(channel_player_counts("server-caucasus"), (0, 32))

	def test_missing_server_info_yields_offline_defaults(self) -> None:
		record = build_server_status([message(ACTIVE_PLAYERS_EMBED)], "server-caucasus").to_dict()

		self.assertFalse(record["online"])
		self.assertEqual(record["serverName"], "101st Hunter Squadron")
		self.assertEqual(record["mission"], "--")
		self.assertEqual(record["map"], "--")
		self.assertEqual(record["missionTime"], "--:--")
		for key in ("serverIP", "missionDate", "weather", "slots", "missionStats", "lastUpdate"):
			self.assertIsNone(record[key], key)
		self.assertEqual(record["players"], 4)
		self.assertEqual(record["playerList"], ["Maverick", "Goose", "Iceman", "Observer"])

	def test_panels_spread_over_messages_are_combined(self) -> None:
		batch = [message(ACTIVE_PLAYERS_EMBED), message(MISSION_STATS_EMBED), message(SERVER_INFO_EMBED)]
		record = build_server_status(batch, "server-[5/32]-caucasus").to_dict()

		self.assertTrue(record["online"])
		self.assertEqual(record["mission"], "Foothold_Caucasus v2")
		self.assertEqual(record["missionTime"], "2:15:30")
		self.assertEqual(record["players"], 5)
		self.assertEqual(record["missionStats"]["achievements"], {"Kills": {"blue": 12}})
		self.assertEqual(len(record["playerDetails"]), 4)

	def test_first_server_info_panel_wins(self) -> None:
		newer = dict(SERVER_INFO_EMBED, description="Mission: Newest")
		record = build_server_status([message(newer), message(SERVER_INFO_EMBED)], "server-caucasus")
		self.assertEqual(record.mission, "Newest")

	def test_same_batch_gives_identical_output(self) -> None:
		batch = [message(SERVER_INFO_EMBED, ACTIVE_PLAYERS_EMBED, MISSION_STATS_EMBED)]
		first = json.dumps(build_server_status(batch, "server-[1/8]-caucasus").to_dict(), ensure_ascii=False)
		second = json.dumps(build_server_status(batch, "server-[1/8]-caucasus").to_dict(), ensure_ascii=False)
		self.assertEqual(first, second)

	def test_failing_channel_is_skipped(self) -> None:
		channels = [
			{"id": "1", "name": "server-broken", "type": 0},
			{"id": "2", "name": "server-caucasus", "type": 0},
		]

		def fetch(channel: dict) -> list[dict]:
			if channel["id"] == "1":
				raise RuntimeError("Discord API 403: Missing Access")
			return [message(SERVER_INFO_EMBED)]

		stderr = io.StringIO()
		with contextlib.redirect_stdout(io.StringIO()), contextlib.redirect_stderr(stderr):
			servers = collect_server_statuses(channels, fetch)

		self.assertEqual([server.channel_name for server in servers], ["server-caucasus"])
		self.assertIn("Could not read server-broken", stderr.getvalue())


if __name__ == "__main__":
	unittest.main()
