"""Feed manifest for the status page.

The site polls `manifest.json` first: per-file `lastUpdated` tells it whether
a feed went stale (the fetcher stopped running), and the counts let the page
header render before the larger payloads are downloaded.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from script_paths import DATA_DIR


MANIFEST_NAME = "manifest.json"


def utc_now_iso() -> str:
	return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def feed_counts(payloads: dict[str, dict[str, Any]]) -> dict[str, int]:
	servers = (payloads.get("server-status.json") or {}).get("servers") or []
	leaderboards = (payloads.get("leaderboard.json") or {}).get("leaderboards") or []
	return {
		"servers": len(servers),
		"onlineServers": sum(1 for server in servers if server.get("online")),
		"players": sum(int(server.get("players") or 0) for server in servers),
		"leaderboards": len(leaderboards),
		"pilots": sum(len(board.get("pilots") or []) for board in leaderboards),
	}


def file_entry(path: Path, last_updated: str) -> dict[str, Any]:
	if not path.exists():
		raise FileNotFoundError(f"Cannot build manifest; missing output file: {path}")
	return {"sizeBytes": int(path.stat().st_size), "lastUpdated": last_updated}


def write_feed_manifest(
	payloads: dict[str, dict[str, Any]],
	*,
	generated_at: str,
	source: str,
	data_dir: Path = DATA_DIR,
	with_msgpack: bool = False,
) -> dict[str, Any]:
	"""Describe the feeds just written to `data_dir` and return the manifest."""
	files: dict[str, dict[str, Any]] = {}
	for name in payloads:
		files[name] = file_entry(data_dir / name, generated_at)
		if with_msgpack:
			packed = Path(name).with_suffix(".msgpack").name
			files[packed] = file_entry(data_dir / packed, generated_at)

	manifest = {
		"generatedAt": generated_at,
		"source": source,
		"files": files,
		"counts": feed_counts(payloads),
	}
	data_dir.mkdir(parents=True, exist_ok=True)
	(data_dir / MANIFEST_NAME).write_text(json.dumps(manifest, indent=2, ensure_ascii=False) + "\n", encoding="utf-8")
	return manifest
