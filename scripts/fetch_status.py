#!/usr/bin/env python3
"""Fetch DCS server status and pilot leaderboards from Discord bot embeds.

Reads every guild text channel whose name marks it as a server status feed
("server-*") or a leaderboard feed ("leaderboard", "stats", "foothold", ...),
parses the latest bot embeds and writes:

- server-status.json: {servers, primaryServer, lastUpdated}
- leaderboard.json:   {leaderboards, primary, lastUpdated}
- status.json:        both of the above plus fetch metadata
- manifest.json:      per-file size and lastUpdated, server/pilot counts

Credentials come from arguments or DISCORD_BOT_TOKEN / DISCORD_GUILD_ID.
Use --snapshot to parse a previously saved channel/message dump offline.
"""

from __future__ import annotations

import argparse
import json
import os
import sys
from pathlib import Path
from typing import Any, Callable

import msgpack

from discord_client import fetch_channel_messages, list_guild_channels
from leaderboard_embeds import LeaderboardRecord, collect_leaderboards
from manifest_utils import utc_now_iso, write_feed_manifest
from script_paths import DATA_DIR, SNAPSHOT_PATH
from server_embeds import DEFAULT_SERVER_NAME, ServerStatusRecord, collect_server_statuses


DEFAULT_STATUS_LIMIT = 10
DEFAULT_LEADERBOARD_LIMIT = 50
REFRESH_INTERVAL = "5 minutes"


def atomic_write_json(path: Path, payload: Any) -> None:
	path.parent.mkdir(parents=True, exist_ok=True)
	tmp_path = path.with_suffix(path.suffix + ".tmp")
	tmp_path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
	tmp_path.replace(path)


def write_msgpack(path: Path, payload: Any) -> None:
	path.parent.mkdir(parents=True, exist_ok=True)
	path.write_bytes(msgpack.packb(payload, use_bin_type=True))


def load_snapshot(path: Path) -> tuple[list[dict[str, Any]], dict[str, list[dict[str, Any]]]]:
	with path.open("r", encoding="utf-8") as handle:
		data = json.load(handle)
	if not isinstance(data, dict) or not isinstance(data.get("channels"), list):
		raise RuntimeError(f"Snapshot {path} must be an object with a 'channels' list")
	messages = data.get("messages") or {}
	return data["channels"], {str(key): value for key, value in messages.items()}


class ChannelSource:
	"""Serves per-channel message batches from the API or from a saved snapshot."""

	def __init__(
		self,
		*,
		token: str | None = None,
		delay: float = 0.0,
		snapshot: dict[str, list[dict[str, Any]]] | None = None,
	) -> None:
		self.token = token
		self.delay = delay
		self.snapshot = snapshot
		self.fetched: dict[str, list[dict[str, Any]]] = {}

	def batch_fetcher(self, limit: int) -> Callable[[dict[str, Any]], list[dict[str, Any]]]:
		def fetch(channel: dict[str, Any]) -> list[dict[str, Any]]:
			channel_id = str(channel.get("id"))
			if self.snapshot is not None:
				messages = self.snapshot.get(channel_id, [])[:limit]
			elif self.token:
				messages = fetch_channel_messages(self.token, channel_id, limit, delay=self.delay)
			else:
				raise RuntimeError("No Discord token configured")
			# A channel read under both limits keeps its larger batch.
			if len(messages) >= len(self.fetched.get(channel_id, [])):
				self.fetched[channel_id] = messages
			return messages

		return fetch


def build_payloads(
	servers: list[ServerStatusRecord],
	leaderboards: list[LeaderboardRecord],
	*,
	fetched_at: str,
	source: str,
) -> dict[str, dict[str, Any]]:
	server_dicts = [server.to_dict() for server in servers]
	leaderboard_dicts = [board.to_dict() for board in leaderboards]
	server_status = {
		"servers": server_dicts,
		"primaryServer": server_dicts[0] if server_dicts else None,
		"lastUpdated": fetched_at,
	}
	leaderboard = {
		"leaderboards": leaderboard_dicts,
		"primary": leaderboard_dicts[0] if leaderboard_dicts else None,
		"lastUpdated": fetched_at,
	}
	combined = {
		"serverStatus": server_status,
		"leaderboard": leaderboard,
		"meta": {
			"fetchedAt": fetched_at,
			"source": source,
			"refreshInterval": REFRESH_INTERVAL,
		},
	}
	return {
		"server-status.json": server_status,
		"leaderboard.json": leaderboard,
		"status.json": combined,
	}


def print_summary(servers: list[ServerStatusRecord], leaderboards: list[LeaderboardRecord]) -> None:
	print(f"Servers parsed: {len(servers)}")
	for server in servers:
		state = "online" if server.online else "offline"
		label = server.friendly_name or server.map
		print(f"  - [{state}] {label}: {server.players}/{server.max_players} players")
	if leaderboards:
		print(f"Leaderboard: {leaderboards[0].title} ({len(leaderboards[0].pilots)} pilots)")
	else:
		print("Leaderboard: no leaderboard data found")


def run_fetch(args: argparse.Namespace) -> int:
	output_dir = Path(args.output_dir)
	fetched_at = utc_now_iso()

	if args.snapshot:
		channels, saved = load_snapshot(Path(args.snapshot))
		source = ChannelSource(snapshot=saved)
		source_label = f"snapshot:{Path(args.snapshot).name}"
		print(f"Loaded {len(channels)} channels from {args.snapshot}")
	else:
		if not args.token or not args.guild_id:
			print("DISCORD_BOT_TOKEN and DISCORD_GUILD_ID must be set", file=sys.stderr)
			return 1
		channels = list_guild_channels(args.token, args.guild_id, delay=args.delay)
		source = ChannelSource(token=args.token, delay=args.delay)
		source_label = "Discord REST API"
		print(f"Found {len(channels)} channels in guild {args.guild_id}")

	servers = collect_server_statuses(
		channels,
		source.batch_fetcher(args.status_limit),
		server_name=args.server_name,
		show_progress=args.progress,
	)
	leaderboards = collect_leaderboards(
		channels,
		source.batch_fetcher(args.leaderboard_limit),
		show_progress=args.progress,
	)
	print_summary(servers, leaderboards)

	payloads = build_payloads(servers, leaderboards, fetched_at=fetched_at, source=source_label)
	for name, payload in payloads.items():
		atomic_write_json(output_dir / name, payload)
		if args.msgpack:
			write_msgpack(output_dir / Path(name).with_suffix(".msgpack"), payload)

	if args.save_snapshot:
		atomic_write_json(Path(args.save_snapshot), {"channels": channels, "messages": source.fetched})
		print(f"Snapshot written to: {args.save_snapshot}")

	manifest = write_feed_manifest(
		payloads,
		generated_at=fetched_at,
		source=source_label,
		data_dir=output_dir,
		with_msgpack=args.msgpack,
	)
	counts = manifest["counts"]
	print(f"Output written to: {output_dir}")
	print(f"Feed: {counts['onlineServers']}/{counts['servers']} servers online, {counts['pilots']} pilots ranked")
	return 0


def build_parser() -> argparse.ArgumentParser:
	parser = argparse.ArgumentParser(description="Fetch DCS server status and leaderboards from Discord embeds")
	parser.add_argument(
		"token",
		nargs="?",
		default=os.environ.get("DISCORD_BOT_TOKEN"),
		help="Discord bot token (default: $DISCORD_BOT_TOKEN)",
	)
	parser.add_argument("--guild-id", default=os.environ.get("DISCORD_GUILD_ID"))
	parser.add_argument("--output-dir", default=str(DATA_DIR), help="Directory for the JSON outputs")
	parser.add_argument(
		"--status-limit",
		type=int,
		default=DEFAULT_STATUS_LIMIT,
		help="Messages read per server status channel (default: 10)",
	)
	parser.add_argument(
		"--leaderboard-limit",
		type=int,
		default=DEFAULT_LEADERBOARD_LIMIT,
		help="Messages read per leaderboard channel (default: 50)",
	)
	parser.add_argument(
		"--delay",
		type=float,
		default=0.0,
		help="Delay in seconds before each API request",
	)
	parser.add_argument("--server-name", default=DEFAULT_SERVER_NAME)
	parser.add_argument("--snapshot", default=None, help="Parse a saved snapshot instead of calling the API")
	parser.add_argument(
		"--save-snapshot",
		nargs="?",
		const=str(SNAPSHOT_PATH),
		default=None,
		help="Write fetched channels and messages for later offline runs",
	)
	parser.add_argument("--msgpack", action="store_true", help="Also write MessagePack copies of each output")
	parser.add_argument("--progress", action="store_true", help="Show per-channel progress on stderr")
	return parser


def main(argv: list[str] | None = None) -> int:
	args = build_parser().parse_args(argv)

	try:
		return run_fetch(args)
	except KeyboardInterrupt:
		print("Interrupted by user.", file=sys.stderr)
		return 130
	except Exception as exc:  # noqa: BLE001 - surface fatal errors for CLI use
		print(f"Fatal error: {exc}", file=sys.stderr)
		return 1


if __name__ == "__main__":
	raise SystemExit(main())
