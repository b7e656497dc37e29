"""Member tier promotion engine (new -> junior -> full)."""

from .config_store import JsonConfigStore
from .confirm import ACCEPT_EMOJI, REJECT_EMOJI, ConfirmationBroker
from .errors import ConfigurationError, PromotionError, ResolutionError, RetrievalError
from .models import ActionBucket, Member, Outcome, PromotionReport, PromotionStatus
from .orchestrator import PromotionOrchestrator
from .tiers import TierConfig

__all__ = [
    "ACCEPT_EMOJI",
    "REJECT_EMOJI",
    "ActionBucket",
    "ConfigurationError",
    "ConfirmationBroker",
    "JsonConfigStore",
    "Member",
    "Outcome",
    "PromotionError",
    "PromotionOrchestrator",
    "PromotionReport",
    "PromotionStatus",
    "ResolutionError",
    "RetrievalError",
    "TierConfig",
]
