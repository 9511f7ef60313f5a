"""Errors raised by campaign operations.

Every error carries a short ``code`` so an HTTP layer can map it to a
response without inspecting the class hierarchy.
"""

from typing import Any, Optional


class CampaignError(Exception):
    """Base class for all campaign errors."""

    code = "campaign_error"

    def __init__(self, message: str = "", **context: Any) -> None:
        super().__init__(message or self.__class__.__name__)
        self.context = context


class NotFound(CampaignError):
    """An entity referenced by identifier does not exist."""

    code = "not_found"
    kind = "record"

    def __init__(self, identifier: Any = None, message: str = "") -> None:
        self.identifier = identifier
        super().__init__(
            message or f"{self.kind.capitalize()} {identifier} not found",
            identifier=identifier,
        )


class AgentNotFound(NotFound):
    kind = "agent"


class AreaNotFound(NotFound):
    kind = "area"


class BlockNotFound(NotFound):
    kind = "block"


class PropertyNotFound(NotFound):
    kind = "property"


class DailyLogNotFound(NotFound):
    kind = "daily log"


class WeeklyLogNotFound(NotFound):
    kind = "weekly log"


class InvalidReference(CampaignError):
    """A supplied identifier is not a well-formed key."""

    code = "invalid_reference"

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"Invalid identifier: {value!r}", value=value)


class AlreadyVisited(CampaignError):
    """The property was already visited in the current cycle."""

    code = "already_visited"


class InvalidStatusTransition(CampaignError):
    """A visit outcome would move a property to a state it cannot reach."""

    code = "invalid_status_transition"


class InvalidValue(CampaignError):
    """A supplied field value is out of its allowed range."""

    code = "invalid_value"


class InvalidVisitDetail(InvalidValue):
    """Visit detail fields failed validation."""

    code = "invalid_visit_detail"


class NoActivityFound(CampaignError):
    """No visits or worked blocks exist for a daily rollup key."""

    code = "no_activity_found"


class NoDailyLogsFound(CampaignError):
    """No daily logs exist for a weekly rollup key."""

    code = "no_daily_logs_found"


class Forbidden(CampaignError):
    """The caller's role does not allow the operation."""

    code = "forbidden"


class InvalidDate(CampaignError):
    """A date input could not be parsed."""

    code = "invalid_date"

    def __init__(self, value: Any) -> None:
        self.value = value
        super().__init__(f"Invalid date: {value!r}", value=value)


class PartialBatchFailure(CampaignError):
    """Some identifiers of a bulk operation failed while others succeeded.

    Attributes:
        result: The BatchResult holding both the updated records and the
            per-identifier failures.
    """

    code = "partial_batch_failure"

    def __init__(self, result: Any, message: Optional[str] = None) -> None:
        self.result = result
        super().__init__(
            message
            or f"{len(result.failures)} of {result.total} batch items failed",
        )
