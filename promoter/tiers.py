"""
Typed tier configuration.

Guild documents used to carry promotion settings as loose nested fields
(``greet.role``, ``promoteroles.*``, ``promoterules.*``). ``TierConfig`` is the
single checked shape the engine accepts; ``from_dict`` reports every missing
or inconsistent field at once so the operator can fix them in one go.
"""

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Mapping, Optional

from .errors import ConfigurationError

CONFIG_VERSION = 1

ROLE_FIELDS = ("new_role", "junior_role", "full_role")
CHANNEL_FIELDS = ("new_chat_channel", "junior_chat_channel")
THRESHOLD_FIELDS = (
    "new_min_messages",
    "junior_min_messages",
    "junior_min_age_days",
    "new_message_max_age_days",
)
REQUIRED_FIELDS = ROLE_FIELDS + CHANNEL_FIELDS + THRESHOLD_FIELDS

# wording used when reporting a missing field back to the operator
FIELD_LABELS = {
    "new_role": ("role", "new member"),
    "junior_role": ("role", "junior member"),
    "full_role": ("role", "full member"),
    "new_chat_channel": ("channel", "new chat channel"),
    "junior_chat_channel": ("channel", "junior chat channel"),
    "new_min_messages": ("number", "new min messages"),
    "junior_min_messages": ("number", "junior min messages"),
    "junior_min_age_days": ("number", "junior min age"),
    "new_message_max_age_days": ("number", "new message max age"),
}

ROLE_LABELS = {"new_role": "New", "junior_role": "Junior", "full_role": "Full"}


@dataclass(frozen=True)
class TierConfig:
    new_role: int
    junior_role: int
    full_role: int
    new_chat_channel: int
    junior_chat_channel: int
    new_min_messages: int
    junior_min_messages: int
    junior_min_age_days: int
    new_message_max_age_days: int
    version: int = CONFIG_VERSION

    @classmethod
    def from_dict(cls, raw: Optional[Mapping[str, Any]]) -> "TierConfig":
        """Build a config from a stored mapping or raise ``ConfigurationError``."""
        if raw is None:
            raw = {}
        problems: List[str] = []

        version = raw.get("version", CONFIG_VERSION)
        if not isinstance(version, int) or version > CONFIG_VERSION:
            problems.append(f"unsupported promote config version {version!r}")

        values: Dict[str, int] = {}
        for name in REQUIRED_FIELDS:
            kind, label = FIELD_LABELS[name]
            value = raw.get(name)
            if value is None:
                problems.append(f"{kind} {label} not configured")
                continue
            try:
                number = int(value)
            except (TypeError, ValueError):
                problems.append(f"{kind} {label} is not a valid {kind} ({value!r})")
                continue
            if isinstance(value, bool) or number < 0:
                problems.append(f"{kind} {label} must be a non-negative integer ({value!r})")
                continue
            values[name] = number

        problems.extend(_duplicate_role_problems(values))

        if problems:
            raise ConfigurationError(problems)
        return cls(version=CONFIG_VERSION, **values)

    def to_dict(self) -> Dict[str, int]:
        return asdict(self)


def _duplicate_role_problems(values: Mapping[str, int]) -> List[str]:
    problems = []
    for i, first in enumerate(ROLE_FIELDS):
        for second in ROLE_FIELDS[i + 1:]:
            if first in values and second in values and values[first] == values[second]:
                problems.append(f"{ROLE_LABELS[first]} and {ROLE_LABELS[second]} roles are THE SAME ({values[first]})")
    return problems
