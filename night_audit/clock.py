"""
Business-day clock.

The hotel closes its day at 04:00 on a fixed UTC offset wall clock: a run at
03:59 still belongs to the previous calendar day.
"""
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional, Union


DEFAULT_CUTOVER_HOUR = 4


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class BusinessDayClock:
    """
    Convert instants into business days for a fixed UTC offset.

    The offset is applied as plain arithmetic on the UTC instant, not as a
    timezone conversion, so no DST or calendar rules are involved.
    """

    def __init__(
        self,
        tz_offset_hours: int,
        cutover_hour: int = DEFAULT_CUTOVER_HOUR,
        now_fn: Callable[[], datetime] = _utc_now
    ):
        if not 0 <= cutover_hour < 24:
            raise ValueError(f"cutover_hour must be in [0, 24), got {cutover_hour}")
        self.tz_offset_hours = tz_offset_hours
        self.cutover_hour = cutover_hour
        self._now_fn = now_fn

    def now_in_offset(self, reference: Optional[datetime] = None) -> datetime:
        """
        Re-express an instant as wall-clock time at UTC+offset.

        Args:
            reference: Instant to convert (naive values are taken as UTC).
                Defaults to the current time.

        Returns:
            Naive datetime holding the offset wall-clock components
        """
        instant = reference if reference is not None else self._now_fn()
        if instant.tzinfo is not None:
            instant = instant.astimezone(timezone.utc).replace(tzinfo=None)
        return instant + timedelta(hours=self.tz_offset_hours)

    def business_day(self, reference: Optional[datetime] = None) -> datetime:
        """Midnight of the business day the instant belongs to."""
        local = self.now_in_offset(reference)
        if local.hour < self.cutover_hour:
            local = local - timedelta(days=1)
        return local.replace(hour=0, minute=0, second=0, microsecond=0)

    @staticmethod
    def business_day_key(day: Union[date, datetime]) -> str:
        """Format a business day as YYYY-MM-DD from its own calendar components."""
        return f"{day.year:04d}-{day.month:02d}-{day.day:02d}"

    def current_key(self, reference: Optional[datetime] = None) -> str:
        """Business-day key for an instant (default: now)."""
        return self.business_day_key(self.business_day(reference))
