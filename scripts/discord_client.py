"""Minimal Discord REST client for reading guild channels and recent bot embeds.

Plain `urllib` with `Bot` token auth; no gateway connection is needed since the
status and leaderboard bots edit their messages in place.
"""

from __future__ import annotations

import json
import random
import time
from typing import Any
from urllib import error, parse, request


DISCORD_API_BASE = "https://discord.com/api/v10"
USER_AGENT = "dcs-status-fetcher/1.0"
MAX_MESSAGES_PER_PAGE = 100
DEFAULT_RETRY_AFTER = 1.0


def rate_limit_wait(headers: Any, data: Any) -> tuple[float, str]:
	"""Seconds to wait after a 429 and the bucket that was exhausted.

	The JSON body's `retry_after` wins; the `X-RateLimit-Reset-After` and
	`Retry-After` headers cover bodies without one (e.g. Cloudflare bans).
	"""
	headers = headers or {}
	body = data if isinstance(data, dict) else {}

	retry_after = body.get("retry_after")
	if retry_after is None:
		retry_after = headers.get("X-RateLimit-Reset-After") or headers.get("Retry-After") or DEFAULT_RETRY_AFTER

	if body.get("global") or str(headers.get("X-RateLimit-Global", "")).lower() == "true":
		bucket = "global"
	else:
		bucket = headers.get("X-RateLimit-Bucket") or headers.get("X-RateLimit-Scope") or "unknown"
	return max(float(retry_after), 0.0), bucket


def discord_get_json(
	token: str,
	endpoint: str,
	params: dict[str, str] | None = None,
	base_delay: float = 0.0,
	max_retries: int = 5,
) -> Any:
	"""GET JSON with retry/backoff and Discord rate-limit handling."""
	url = f"{DISCORD_API_BASE}{endpoint}"
	if params:
		url = f"{url}?{parse.urlencode(params)}"

	headers = {
		"Authorization": f"Bot {token}",
		"User-Agent": USER_AGENT,
	}

	attempt = 0
	while True:
		if base_delay > 0:
			time.sleep(base_delay)

		req = request.Request(url, headers=headers, method="GET")
		try:
			with request.urlopen(req, timeout=30) as resp:
				return json.loads(resp.read().decode("utf-8"))
		except error.HTTPError as exc:
			raw = exc.read().decode("utf-8", errors="replace")
			try:
				data = json.loads(raw) if raw else {}
			except json.JSONDecodeError:
				data = {}

			if exc.code == 429:
				retry_after, bucket = rate_limit_wait(exc.headers, data)
				wait_for = max(retry_after + random.uniform(0, 0.25), 0.1)
				print(f"[rate-limit] {endpoint} (bucket {bucket}): waiting {wait_for:.2f}s", flush=True)
				time.sleep(wait_for)
				continue

			if exc.code >= 500 and attempt < max_retries:
				backoff = min((2**attempt) + random.uniform(0, 0.5), 30.0)
				print(f"[server-error {exc.code}] {endpoint}: retrying in {backoff:.2f}s", flush=True)
				time.sleep(backoff)
				attempt += 1
				continue

			raise RuntimeError(f"Discord API {exc.code}: {raw}") from exc
		except error.URLError as exc:
			if attempt < max_retries:
				backoff = min((2**attempt) + random.uniform(0, 0.5), 30.0)
				print(f"[network-error] {exc}; retrying in {backoff:.2f}s", flush=True)
				time.sleep(backoff)
				attempt += 1
				continue
			raise RuntimeError(f"Network error: {exc}") from exc


def extract_embeds(message: dict[str, Any]) -> list[dict[str, Any]]:
	embeds: list[dict[str, Any]] = []
	for embed in message.get("embeds", []) or []:
		footer = embed.get("footer") or {}
		embeds.append(
			{
				"title": embed.get("title"),
				"description": embed.get("description"),
				"fields": [
					{"name": item.get("name"), "value": item.get("value")}
					for item in embed.get("fields", []) or []
				],
				"footer": {"text": footer.get("text")} if footer.get("text") else None,
			}
		)
	return embeds


def normalize_message(message: dict[str, Any]) -> dict[str, Any]:
	author = message.get("author") or {}
	return {
		"id": message.get("id"),
		"channel_id": message.get("channel_id"),
		"timestamp": message.get("timestamp"),
		"edited_timestamp": message.get("edited_timestamp"),
		"author": {
			"id": author.get("id"),
			"username": author.get("username"),
			"bot": author.get("bot", False),
		},
		"embeds": extract_embeds(message),
	}


def list_guild_channels(token: str, guild_id: str, delay: float = 0.0) -> list[dict[str, Any]]:
	channels = discord_get_json(token=token, endpoint=f"/guilds/{guild_id}/channels", base_delay=delay)
	if not isinstance(channels, list):
		raise RuntimeError(f"Unexpected channel list payload for guild {guild_id}")
	return [
		{"id": str(channel.get("id")), "name": channel.get("name"), "type": channel.get("type")}
		for channel in channels
	]


def fetch_channel_messages(token: str, channel_id: str, limit: int, delay: float = 0.0) -> list[dict[str, Any]]:
	"""Newest-first message batch of one channel, normalized to the embed fields we parse."""
	page_limit = min(max(int(limit), 1), MAX_MESSAGES_PER_PAGE)
	messages = discord_get_json(
		token=token,
		endpoint=f"/channels/{channel_id}/messages",
		params={"limit": str(page_limit)},
		base_delay=delay,
	)
	if not isinstance(messages, list):
		raise RuntimeError(f"Unexpected message payload for channel {channel_id}")
	return [normalize_message(message) for message in messages]
