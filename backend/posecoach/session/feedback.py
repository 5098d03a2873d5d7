"""
Per-rep feedback decisions and dispatch to the coaching channel.

DISPATCH POLICY (per completed rep):
1. CORRECTIVE: any form metric carries a message
2. PRAISE: form score above 9.0 and at least 3 reps since the last praise
3. COUNT: lightweight rep count announcement (cues exist up to 30)

Corrective and praise events send a textual summary of the recent rep
history to the coaching channel as a system-context message. When the
channel is busy the event is skipped and the rep stays in the cache. A
skipped corrective event is held back: the next delivery that gets
through is upgraded to corrective and repeats its messages.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Deque, Dict, List, Optional, Protocol, Sequence

from posecoach.config import Settings, get_settings
from posecoach.cv.classifiers.base import VISIBILITY_METRIC
from posecoach.cv.exercises import ExerciseKind
from posecoach.cv.reps_counter import RepetitionData

logger = logging.getLogger(__name__)

EXCELLENT_FORM_KEY = "excellent_form"
COUNTING_KEY = "counting"


class CoachingChannel(Protocol):
    """Downstream coach (voice agent or pre-recorded cues)."""

    def is_busy(self) -> bool:
        ...

    async def send_system_message(self, text: str) -> None:
        ...

    async def announce_count(self, rep_number: int) -> None:
        ...


class FeedbackKind(Enum):
    CORRECTIVE = "corrective"
    PRAISE = "praise"
    COUNT = "count"


@dataclass(frozen=True)
class FeedbackDecision:
    """What to tell the user about one completed rep."""
    kind: FeedbackKind
    rep: RepetitionData
    cue_keys: List[str] = field(default_factory=list)
    messages: Dict[str, str] = field(default_factory=dict)

    @property
    def rep_number(self) -> int:
        return self.rep.rep_number


@dataclass(frozen=True)
class FeedbackEvent:
    """A decision that reached the coaching channel."""
    decision: FeedbackDecision
    exercise_name: str
    summary: Optional[str]
    sent_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.decision.kind.value,
            "rep_number": self.decision.rep_number,
            "cue_keys": list(self.decision.cue_keys),
            "messages": dict(self.decision.messages),
            "exercise_name": self.exercise_name,
            "summary": self.summary,
            "sent_at": self.sent_at.isoformat(),
        }


def feedback_key(kind: ExerciseKind, metric: str) -> str:
    """Key of the pre-recorded cue for a metric, e.g. sumo_squat_knee_tracking."""
    if metric == VISIBILITY_METRIC:
        return VISIBILITY_METRIC
    return f"{kind.feedback_prefix}_{metric}"


def decide_feedback(
    rep: RepetitionData,
    kind: ExerciseKind,
    last_excellent_rep: Optional[int],
    excellent_form_score: float = 9.0,
    min_gap: int = 3,
) -> FeedbackDecision:
    """Pick the feedback for a completed rep."""
    messages = rep.feedback_messages
    if messages:
        return FeedbackDecision(
            kind=FeedbackKind.CORRECTIVE,
            rep=rep,
            cue_keys=[feedback_key(kind, name) for name in messages],
            messages=messages,
        )

    if rep.form_score > excellent_form_score and (
        last_excellent_rep is None or rep.rep_number - last_excellent_rep >= min_gap
    ):
        return FeedbackDecision(kind=FeedbackKind.PRAISE, rep=rep, cue_keys=[EXCELLENT_FORM_KEY])

    return FeedbackDecision(kind=FeedbackKind.COUNT, rep=rep, cue_keys=[COUNTING_KEY])


def _describe_rep(rep: RepetitionData) -> str:
    return (
        f"Rep {rep.rep_number}: form {rep.form_score:.1f}/10 ({rep.quality.value}), "
        f"duration {rep.duration:.2f}s"
    )


def build_summary(
    exercise_name: str,
    recent_reps: Sequence[RepetitionData],
    current: RepetitionData,
    unaddressed: Sequence[RepetitionData] = (),
) -> str:
    """
    Render the coach's system-context message.

    Args:
        exercise_name: Display name of the exercise
        recent_reps: Earlier reps, oldest first
        current: The rep that triggered the message
        unaddressed: Earlier reps whose corrective feedback never reached the coach

    Returns:
        Summary wrapped in <system> tags
    """
    lines = [f"Exercise: {exercise_name}"]

    if recent_reps:
        lines.append("Recent reps:")
        lines.extend(f"- {_describe_rep(rep)}" for rep in recent_reps)

    lines.append(f"Current rep: {_describe_rep(current)}, confidence {current.confidence:.2f}")
    lines.append("Metrics:")
    lines.extend(f"- {name}: {metric.score:.2f}" for name, metric in current.form_metrics.items())

    messages = current.feedback_messages
    if messages:
        lines.append("Feedback:")
        lines.extend(f"- {message}" for message in messages.values())

    if unaddressed:
        lines.append("Unaddressed feedback from earlier reps:")
        for rep in unaddressed:
            lines.extend(f"- Rep {rep.rep_number}: {message}" for message in rep.feedback_messages.values())

    body = "\n".join(lines)
    return f"<system>\n{body}\n</system>"


class FeedbackDispatcher:
    """
    Rep cache plus rate-limited delivery of feedback to a coaching channel.

    record() runs on the frame path and only decides; deliver() does the I/O.
    A praise slot is reserved as soon as it is decided, so reps completing
    before the delivery runs still honour the rate limit. Corrective decisions
    skipped on a busy channel are carried into the next delivery that gets
    through.
    """

    def __init__(self, channel: Optional[CoachingChannel] = None, settings: Optional[Settings] = None):
        self.channel = channel
        self.settings = settings or get_settings()
        self.rep_cache: Deque[RepetitionData] = deque(maxlen=self.settings.rep_cache_size)
        self.events: Deque[FeedbackEvent] = deque(maxlen=self.settings.max_history_size)
        self.last_excellent_rep: Optional[int] = None
        self._last_dispatched_rep: Optional[int] = None
        # Praised rep -> last_excellent_rep before the reservation
        self._praise_reservations: Dict[int, Optional[int]] = {}
        self._undelivered: Deque[FeedbackDecision] = deque(maxlen=self.settings.rep_cache_size)

    @property
    def last_dispatched_rep(self) -> Optional[int]:
        return self._last_dispatched_rep

    @property
    def undelivered_corrections(self) -> List[FeedbackDecision]:
        return list(self._undelivered)

    def record(self, rep: RepetitionData, kind: ExerciseKind) -> FeedbackDecision:
        self.rep_cache.append(rep)
        decision = decide_feedback(
            rep,
            kind,
            self.last_excellent_rep,
            excellent_form_score=self.settings.excellent_form_score,
            min_gap=self.settings.excellent_feedback_min_gap,
        )
        if decision.kind == FeedbackKind.PRAISE:
            self._praise_reservations[rep.rep_number] = self.last_excellent_rep
            self.last_excellent_rep = rep.rep_number
        return decision

    def recent_reps(self, before: int) -> List[RepetitionData]:
        earlier = [rep for rep in self.rep_cache if rep.rep_number < before]
        return earlier[-self.settings.recent_reps_in_summary:]

    def _release_praise(self, rep_number: int) -> None:
        if rep_number not in self._praise_reservations:
            return
        previous = self._praise_reservations.pop(rep_number)
        if self.last_excellent_rep == rep_number:
            self.last_excellent_rep = previous

    def _skip(self, decision: FeedbackDecision) -> None:
        if decision.kind == FeedbackKind.CORRECTIVE:
            self._undelivered.append(decision)
            logger.info(f"Coaching channel busy; corrective feedback for rep {decision.rep_number} held back")
        elif decision.kind == FeedbackKind.PRAISE:
            self._release_praise(decision.rep_number)
            logger.info(f"Coaching channel busy; praise for rep {decision.rep_number} released")
        else:
            logger.info(f"Coaching channel busy; count cue for rep {decision.rep_number} skipped")

    def _merge_undelivered(self, decision: FeedbackDecision) -> FeedbackDecision:
        """Fold held-back corrective feedback into this decision; corrective wins over praise and count."""
        earlier = [d for d in self._undelivered if d.rep is not decision.rep]
        if not earlier:
            return decision
        if decision.kind == FeedbackKind.PRAISE:
            self._release_praise(decision.rep_number)

        cue_keys: List[str] = []
        messages: Dict[str, str] = {}
        sources = earlier + ([decision] if decision.kind == FeedbackKind.CORRECTIVE else [])
        for source in sources:
            cue_keys.extend(key for key in source.cue_keys if key not in cue_keys)
            messages.update(source.messages)
        return FeedbackDecision(kind=FeedbackKind.CORRECTIVE, rep=decision.rep, cue_keys=cue_keys, messages=messages)

    async def deliver(self, decision: FeedbackDecision, exercise_name: str) -> bool:
        """
        Send a decision to the coaching channel.

        Returns:
            True if the decision was delivered, False if it was skipped
        """
        rep = decision.rep
        if self.channel is not None and self.channel.is_busy():
            self._skip(decision)
            return False

        held = [d for d in self._undelivered if d.rep is not rep]
        decision = self._merge_undelivered(decision)

        summary = None
        if decision.kind == FeedbackKind.COUNT:
            if rep.rep_number > self.settings.max_count_announcement:
                logger.debug(f"No count cue for rep {rep.rep_number}")
                return False
            if self.channel is not None:
                await self.channel.announce_count(rep.rep_number)
        else:
            summary = build_summary(exercise_name, self.recent_reps(rep.rep_number), rep, [d.rep for d in held])
            if self.channel is not None:
                await self.channel.send_system_message(summary)
            # Corrections held back while this message was in flight stay queued
            for sent in held:
                if sent in self._undelivered:
                    self._undelivered.remove(sent)
            self._praise_reservations.pop(rep.rep_number, None)

        self._last_dispatched_rep = rep.rep_number
        self.events.append(
            FeedbackEvent(
                decision=decision,
                exercise_name=exercise_name,
                summary=summary,
                sent_at=datetime.now(timezone.utc),
            )
        )
        logger.debug(f"Delivered {decision.kind.value} feedback for rep {rep.rep_number}")
        return True

    def reset(self) -> None:
        """Forget reps and rate limits when the exercise changes."""
        if self._undelivered:
            numbers = [d.rep_number for d in self._undelivered]
            logger.warning(f"Discarding corrective feedback never delivered for reps {numbers}")
        self.rep_cache.clear()
        self._undelivered.clear()
        self._praise_reservations.clear()
        self.last_excellent_rep = None
        self._last_dispatched_rep = None
