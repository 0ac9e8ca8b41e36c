"""Classify guild channels into server-status and leaderboard feeds by name."""

from __future__ import annotations

from typing import Any, Iterable


GUILD_TEXT_CHANNEL = 0

STATUS_MARKER = "server-"
LEADERBOARD_MARKERS = ("leaderboard", "leader-board", "stats", "foothold")


def channel_name(channel: dict[str, Any]) -> str:
	name = channel.get("name")
	return name if isinstance(name, str) else ""


def text_channels(channels: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
	return [channel for channel in channels if channel.get("type") == GUILD_TEXT_CHANNEL]


def is_status_channel(name: str) -> bool:
	return STATUS_MARKER in name.lower()


def is_leaderboard_channel(name: str) -> bool:
	lowered = name.lower()
	return any(marker in lowered for marker in LEADERBOARD_MARKERS)


def status_channels(channels: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
	return [channel for channel in text_channels(channels) if is_status_channel(channel_name(channel))]


def leaderboard_channels(channels: Iterable[dict[str, Any]]) -> list[dict[str, Any]]:
	# Independent of status_channels: "server-stats" lands in both lists.
	return [channel for channel in text_channels(channels) if is_leaderboard_channel(channel_name(channel))]
