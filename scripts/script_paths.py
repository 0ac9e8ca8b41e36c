from __future__ import annotations

from pathlib import Path


SCRIPTS_DIR = Path(__file__).resolve().parent


def _resolve_web_dir() -> Path:
	"""Prefer current working directory when invoked from the site root."""
	cwd = Path.cwd().resolve()
	if (cwd / "scripts").is_dir() and (cwd / "data").is_dir():
		return cwd
	return SCRIPTS_DIR.parent


WEB_DIR = _resolve_web_dir()

DATA_DIR = WEB_DIR / "data"
SNAPSHOT_PATH = DATA_DIR / "discord_snapshot.json"
