"""Pydantic models for the archive gate and the proxy routes.

Defines the values produced by the closed-hours gate:
- Configuration: ClosedHoursConfig
- Derived values: CountdownValue, LaunchCountdownValue, GateSnapshot
- Decisions: GateState, NavigationDecision, RouteKind, PageType
- Proxy payloads forwarded to the Outside Observations service
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field


SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 60 * SECONDS_PER_MINUTE
SECONDS_PER_DAY = 24 * SECONDS_PER_HOUR


# =============================================================================
# Enums
# =============================================================================


class GateState(str, Enum):
    """Open/closed state of the archive."""

    OPEN = "open"
    CLOSED = "closed"


class NavigationDecision(str, Enum):
    """What the router should do for the current path."""

    NO_ACTION = "no_action"
    REDIRECT_TO_OPEN = "redirect_to_open"
    REDIRECT_TO_CLOSED = "redirect_to_closed"


class RouteKind(str, Enum):
    """Where a path sits relative to the gated routes."""

    CLOSED_ROUTE = "closed_route"
    GATED_ROUTE = "gated_route"
    UNTRACKED = "untracked"


class PageType(str, Enum):
    """Page type of a request path, exposed as the x-page-type header."""

    HOME = "home"
    ARCHIVE = "archive"
    ARCHIVE_ENTRY = "archive-entry"
    LAB = "lab"
    RADIO = "radio"


# =============================================================================
# Closed Hours
# =============================================================================


class ClosedHoursConfig(BaseModel):
    """Daily window during which the archive is closed."""

    model_config = ConfigDict(frozen=True)

    start_hour: Optional[int] = Field(
        None, ge=0, le=23, description="Wall-clock hour the window starts"
    )
    end_hour: Optional[int] = Field(
        None, ge=0, le=23, description="Wall-clock hour the window ends (exclusive)"
    )
    time_zone: Optional[str] = Field(
        None, description="IANA zone name; local time when unset"
    )
    zone_aware: bool = Field(
        True, description="Evaluate in time_zone; when False, always use local time"
    )

    @property
    def enabled(self) -> bool:
        """A window without both hours never closes the archive."""
        return self.start_hour is not None and self.end_hour is not None

    @property
    def effective_time_zone(self) -> Optional[str]:
        """Zone used for evaluation, or None for local time."""
        if not self.zone_aware or not self.time_zone or not self.time_zone.strip():
            return None
        return self.time_zone.strip()

    @property
    def wraps_midnight(self) -> bool:
        """True when the window spans midnight, e.g. 21 -> 9."""
        return self.enabled and self.start_hour > self.end_hour


class CountdownValue(BaseModel):
    """Time remaining until the next open/close boundary."""

    hours: int = Field(..., ge=0)
    minutes: int = Field(..., ge=0, le=59)
    seconds: int = Field(..., ge=0, le=59)

    @classmethod
    def from_seconds(cls, total: int) -> "CountdownValue":
        total = max(0, int(total))
        return cls(
            hours=total // SECONDS_PER_HOUR,
            minutes=(total % SECONDS_PER_HOUR) // SECONDS_PER_MINUTE,
            seconds=total % SECONDS_PER_MINUTE,
        )

    @property
    def total_seconds(self) -> int:
        return self.hours * SECONDS_PER_HOUR + self.minutes * SECONDS_PER_MINUTE + self.seconds

    def format(self) -> str:
        """Render as HH:MM:SS."""
        return f"{self.hours:02d}:{self.minutes:02d}:{self.seconds:02d}"


class LaunchCountdownValue(BaseModel):
    """Time remaining until the launch instant, clamped at zero."""

    days: int = Field(..., ge=0)
    hours: int = Field(..., ge=0, le=23)
    minutes: int = Field(..., ge=0, le=59)
    seconds: int = Field(..., ge=0, le=59)

    @classmethod
    def from_seconds(cls, total: int) -> "LaunchCountdownValue":
        total = max(0, int(total))
        return cls(
            days=total // SECONDS_PER_DAY,
            hours=(total % SECONDS_PER_DAY) // SECONDS_PER_HOUR,
            minutes=(total % SECONDS_PER_HOUR) // SECONDS_PER_MINUTE,
            seconds=total % SECONDS_PER_MINUTE,
        )

    @property
    def is_zero(self) -> bool:
        return not (self.days or self.hours or self.minutes or self.seconds)


class GateSnapshot(BaseModel):
    """Result of one evaluation of the gate."""

    is_closed: bool
    state: GateState
    remaining: Optional[CountdownValue] = Field(
        None, description="Time until the next boundary; None when the gate is disabled"
    )
    evaluated_at: datetime
    time_zone: Optional[str] = None
    closed_hours_label: Optional[str] = None


# =============================================================================
# Proxy Payloads
# =============================================================================


class CompareImagesRequest(BaseModel):
    """Two image payloads to compare."""

    image1: Optional[Any] = None
    image2: Optional[Any] = None


class CompareItemsRequest(BaseModel):
    """Two archive items to compare."""

    item1: Optional[Any] = None
    item2: Optional[Any] = None


class VectorStoreQueryRequest(BaseModel):
    """Semantic search against the vector store."""

    model_config = ConfigDict(populate_by_name=True)

    query: Optional[Any] = None
    max_items: Any = Field(10, alias="maxItems", description="Forwarded to the service unchanged")


class VectorStoreItemRequest(BaseModel):
    """An item (by id) and its description, for add/update."""

    id: Optional[Any] = None
    description: Optional[Any] = None
