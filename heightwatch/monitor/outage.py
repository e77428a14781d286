"""Full-outage timers for the scheduling loop."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass
class OutageTracker:
    """Two nested accumulators, in seconds, reset together when a peer answers.

    ``elapsed_since_last_success`` grows on every outage tick. Once it has
    reached ``grace_secs``, later ticks grow ``elapsed_since_last_notification``
    instead, and each time that reaches ``repeat_secs`` a notification is due
    and it restarts from zero.
    """

    grace_secs: float = 60.0
    repeat_secs: float = 60.0
    elapsed_since_last_success: float = 0.0
    elapsed_since_last_notification: float = 0.0

    def record_outage(self, interval_secs: float) -> bool:
        """Account for one tick with no reachable peer.

        Returns:
            True if the outage notification should be sent on this tick.
        """
        if self.elapsed_since_last_success < self.grace_secs:
            self.elapsed_since_last_success += interval_secs
            return False

        self.elapsed_since_last_success += interval_secs
        self.elapsed_since_last_notification += interval_secs
        if self.elapsed_since_last_notification >= self.repeat_secs:
            self.elapsed_since_last_notification = 0.0
            return True
        return False

    def reset(self) -> None:
        self.elapsed_since_last_success = 0.0
        self.elapsed_since_last_notification = 0.0

    @property
    def in_outage(self) -> bool:
        return self.elapsed_since_last_success > 0
