import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

from .tiers import CONFIG_VERSION, REQUIRED_FIELDS, TierConfig

log = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path("config.json")


class JsonConfigStore:
    """
    Per-guild settings kept in one JSON document::

        {"guilds": {"<guild id>": {"promote": {...}, "log_channel_id": 123}}}

    The file is re-read on every access so edits made while the bot is
    running are picked up, and written back after every update.
    """

    def __init__(self, path: Union[str, Path] = DEFAULT_CONFIG_PATH):
        self.path = Path(path)

    def load(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {"guilds": {}}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            log.error("load: could not read %s, starting empty: %s", self.path, e)
            return {"guilds": {}}
        if not isinstance(data, dict):
            log.error("load: %s does not hold a JSON object, starting empty", self.path)
            return {"guilds": {}}
        data.setdefault("guilds", {})
        return data

    def save(self, data: Dict[str, Any]) -> None:
        self.path.write_text(json.dumps(data, indent=2), encoding="utf-8")

    def guild(self, group: int) -> Dict[str, Any]:
        return self.load()["guilds"].get(str(group), {})

    def get_tier_config(self, group: int) -> Optional[TierConfig]:
        raw = self.guild(group).get("promote")
        if not raw:
            return None
        return TierConfig.from_dict(raw)

    def update_promote(self, group: int, **fields: int) -> Dict[str, Any]:
        """Merge ``fields`` into the guild's promote settings; returns the stored mapping."""
        unknown = set(fields) - set(REQUIRED_FIELDS)
        if unknown:
            raise KeyError(f"unknown promote settings: {', '.join(sorted(unknown))}")
        data = self.load()
        entry = data["guilds"].setdefault(str(group), {})
        promote = entry.setdefault("promote", {})
        promote.update({k: int(v) for k, v in fields.items()})
        promote["version"] = CONFIG_VERSION
        self.save(data)
        log.info("update_promote: guild %s promote settings now %s", group, promote)
        return promote

    def get_log_channel(self, group: int) -> Optional[int]:
        return self.guild(group).get("log_channel_id")

    def set_log_channel(self, group: int, channel_id: int) -> None:
        data = self.load()
        data["guilds"].setdefault(str(group), {})["log_channel_id"] = int(channel_id)
        self.save(data)
