"""
Emotional context adviser.

Derives a coarse time-of-day bucket, weekday bucket and mood label for a
request. Purely advisory: the selector decides what, if anything, to do
with it.
"""

from dataclasses import dataclass
from datetime import datetime

from tierwise.config.schema import EmotionConfig


NEUTRAL = "neutral"


@dataclass(frozen=True)
class EmotionalContext:
    """Per-request mood/time context. Never persisted."""
    time_of_day: str  # morning, afternoon, evening, night
    weekday: str  # monday, friday, weekend, weekday
    mood: str = NEUTRAL


def bucket_time_of_day(hour: int) -> str:
    if 6 <= hour < 12:
        return "morning"
    if 12 <= hour < 18:
        return "afternoon"
    if 18 <= hour < 22:
        return "evening"
    return "night"


def bucket_weekday(weekday: int) -> str:
    """Bucket a datetime.weekday() value (Monday == 0)."""
    if weekday == 0:
        return "monday"
    if weekday == 4:
        return "friday"
    if weekday >= 5:
        return "weekend"
    return "weekday"


class EmotionalContextAdviser:
    """Keyword-to-mood lookup plus fixed hour/day bucketing."""

    def __init__(self, config: EmotionConfig | None = None):
        self.config = config or EmotionConfig()
        self._moods = [
            (mood, [k.lower() for k in keywords])
            for mood, keywords in self.config.mood_keywords.items()
        ]

    def detect_mood(self, message: str) -> str:
        """First mood (in table order) with a keyword hit, else neutral."""
        text = (message or "").lower()
        for mood, keywords in self._moods:
            if any(k in text for k in keywords):
                return mood
        return NEUTRAL

    def advise(self, message: str, timestamp: datetime | None = None) -> EmotionalContext:
        """
        Build the emotional context for a message.

        Args:
            message: The user message.
            timestamp: When the message arrived; defaults to now (local time).
        """
        ts = timestamp or datetime.now()
        return EmotionalContext(
            time_of_day=bucket_time_of_day(ts.hour),
            weekday=bucket_weekday(ts.weekday()),
            mood=self.detect_mood(message),
        )
