from __future__ import annotations

import sys
from dataclasses import dataclass, field
from typing import TextIO


@dataclass
class ProgressReporter:
	"""Per-channel progress: a rewritten line on a TTY, one line per channel otherwise.

	A reporter with total <= 0 is silent, which is how callers turn it off.
	"""

	label: str
	total: int
	stream: TextIO = field(default_factory=lambda: sys.stderr)
	line_width: int = 100

	_processed: int = 0
	_failed: int = 0
	_line_open: bool = False

	def step(self, *, failed: bool = False) -> None:
		if self.total <= 0:
			return

		self._processed = min(self._processed + 1, self.total)
		if failed:
			self._failed += 1
		is_done = self._processed >= self.total
		line = self._render_line()

		if self.stream.isatty():
			print(line.ljust(self.line_width), end="\n" if is_done else "\r", file=self.stream, flush=True)
			self._line_open = not is_done
			return

		print(line, file=self.stream)

	def close(self) -> None:
		"""Finish a half-drawn TTY line so the next print starts on a fresh one."""
		if self.total <= 0:
			return
		if self._line_open:
			print(file=self.stream, flush=True)
			self._line_open = False

	def _render_line(self) -> str:
		percent = (self._processed / self.total) * 100.0
		line = f"{self.label}: {self._processed}/{self.total} ({percent:5.1f}%)"
		if self._failed:
			line = f"{line} failed={self._failed}"
		return line
