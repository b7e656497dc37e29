from typing import List, Optional


class PromotionError(Exception):
    """Base class for errors that abort a promotion run."""


class ConfigurationError(PromotionError):
    """Tier configuration is missing fields or is inconsistent."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems) or "promotion not configured")


class ResolutionError(PromotionError):
    """A configured role or channel no longer exists on the platform."""

    def __init__(self, problems: List[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


class RetrievalError(PromotionError):
    """Roster or message history could not be fetched."""

    def __init__(self, message: str, channel_id: Optional[int] = None):
        self.channel_id = channel_id
        super().__init__(message)
