import datetime
import enum
from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, List, Optional


@dataclass(frozen=True)
class Member:
    id: int
    display_name: str
    joined_at: Optional[datetime.datetime] = None
    role_ids: FrozenSet[int] = frozenset()
    bot: bool = False
    # platform object used by the mutator; never compared
    handle: Any = field(default=None, compare=False, repr=False)

    def has_role(self, role_id: int) -> bool:
        return role_id in self.role_ids

    @property
    def mention(self) -> str:
        return f"<@{self.id}>"


@dataclass(frozen=True)
class RoleRef:
    id: int
    name: str
    handle: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class ChannelRef:
    id: int
    name: str
    handle: Any = field(default=None, compare=False, repr=False)


@dataclass(frozen=True)
class HistoryMessage:
    id: int
    author_id: int
    timestamp: datetime.datetime


@dataclass
class ActionBucket:
    dangling_new: List[Member] = field(default_factory=list)
    dangling_junior: List[Member] = field(default_factory=list)
    new_to_junior: List[Member] = field(default_factory=list)
    junior_to_full: List[Member] = field(default_factory=list)

    def is_empty(self) -> bool:
        return not (self.dangling_new or self.dangling_junior or self.new_to_junior or self.junior_to_full)

    def counts(self) -> Dict[str, int]:
        return {
            "dangling_new": len(self.dangling_new),
            "dangling_junior": len(self.dangling_junior),
            "new_to_junior": len(self.new_to_junior),
            "junior_to_full": len(self.junior_to_full),
        }


class Outcome(enum.Enum):
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    TIMED_OUT = "timed_out"


class PromotionStatus(enum.Enum):
    CONFIGURATION_ERROR = "configuration_error"
    RESOLUTION_ERROR = "resolution_error"
    NOTHING_TO_DO = "nothing_to_do"
    PROPOSED = "proposed"


@dataclass
class PromotionReport:
    status: PromotionStatus
    buckets: ActionBucket = field(default_factory=ActionBucket)
    outcomes: Dict[str, Optional[Outcome]] = field(default_factory=dict)
    problems: List[str] = field(default_factory=list)
    scanned: int = 0

    def summary(self) -> str:
        if self.status in (PromotionStatus.CONFIGURATION_ERROR, PromotionStatus.RESOLUTION_ERROR):
            return f"Promote {{ status: {self.status.value}, problems: {len(self.problems)} }}"
        parts = [f"status: {self.status.value}", f"scanned: {self.scanned}"]
        for name, count in self.buckets.counts().items():
            outcome = self.outcomes.get(name)
            if outcome is None:
                parts.append(f"{name}: {count}")
            else:
                parts.append(f"{name}: {count} ({outcome.value})")
        return "Promote { " + ", ".join(parts) + " }"
