from __future__ import annotations

import json
from pathlib import Path
from string import Template
from typing import Any


PROMPTS_PATH = Path(__file__).resolve().parents[1] / "prompts" / "prompts.json"


class PromptCatalog:
    """JSON prompt catalog reloaded whenever the file changes on disk.

    Entries are either a string or a list of lines (joined with newlines),
    addressed by dotted keys such as `planner.system`.
    """

    def __init__(self, path: Path):
        self.path = path
        self._cache: dict[str, Any] | None = None
        self._mtime_ns: int | None = None

    def load(self) -> dict[str, Any]:
        mtime_ns = self.path.stat().st_mtime_ns
        if self._cache is not None and self._mtime_ns == mtime_ns:
            return self._cache
        payload = json.loads(self.path.read_text(encoding="utf-8"))
        if not isinstance(payload, dict):
            raise ValueError("Prompt catalog must be a JSON object.")
        self._cache = payload
        self._mtime_ns = mtime_ns
        return payload

    def entry(self, key: str) -> str:
        node: Any = self.load()
        for part in key.split("."):
            if not isinstance(node, dict) or part not in node:
                raise KeyError(f"Prompt key not found: {key}")
            node = node[part]
        if isinstance(node, list) and all(isinstance(line, str) for line in node):
            return "\n".join(node)
        if not isinstance(node, str):
            raise TypeError(f"Prompt key must map to a string or list of lines: {key}")
        return node

    def clear(self) -> None:
        self._cache = None
        self._mtime_ns = None


_catalog = PromptCatalog(PROMPTS_PATH)


def render_prompt(key: str, **values: Any) -> str:
    template = Template(_catalog.entry(key))
    try:
        return template.substitute(**values)
    except KeyError as exc:
        missing = str(exc.args[0])
        raise KeyError(f"Missing template value '{missing}' for prompt '{key}'") from exc


def clear_prompt_cache() -> None:
    _catalog.clear()
