"""Pure step-sequence heuristics used by the orchestration loop.

None of these functions touch the browser or the model; they only read the
append-only step sequence of a run.
"""
from __future__ import annotations

import logging
import re
from collections import Counter
from typing import Optional, Sequence

from browser_pilot.agent.views import (
    ActionStep,
    InstructionClassification,
    ObservationStep,
    Step,
    ThoughtStep,
)

logger = logging.getLogger(__name__)

CLASSIFICATION_MARKERS = ('classif', 'instruction type', 'analyzing the instruction')
SIMPLE_NAVIGATION_PATTERN = re.compile(r'^(go to|visit|open|navigate to|browse to)\s+', re.IGNORECASE)


def similarity(a: str, b: str) -> float:
    """Jaccard similarity of the space-separated word sets of two strings."""
    words_a = set(a.split(' '))
    words_b = set(b.split(' '))
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)


def _is_classification_like(step: Step) -> bool:
    if not isinstance(step, ThoughtStep):
        return False
    content = step.content.lower()
    return any(marker in content for marker in CLASSIFICATION_MARKERS)


def _is_scroll_like(step: ActionStep) -> bool:
    return step.action_data.type == 'scroll' or 'scroll' in step.content.lower()


def is_stalled(
    steps: Sequence[Step],
    min_steps: int = 6,
    similarity_threshold: float = 0.8,
    progress_window: int = 8,
    classification_window: int = 6,
) -> Optional[str]:
    """Return a short description of the detected stall pattern, or None."""
    if len(steps) < min_steps:
        return None

    classification_count = sum(1 for s in steps[-classification_window:] if _is_classification_like(s))
    if classification_count >= 3:
        logger.debug(f"Detected repetitive classification pattern ({classification_count} of last {classification_window} steps)")
        return 'repetitive classification'

    recent_actions = [s for s in steps if isinstance(s, ActionStep)][-4:]
    if len(recent_actions) >= 3:
        counts = Counter(a.action_data.type for a in recent_actions)
        action_type, repeated = counts.most_common(1)[0]
        if repeated >= 3:
            logger.debug(f"Detected repetitive action pattern ({action_type} x{repeated})")
            return 'repetitive actions'
        if all(_is_scroll_like(a) for a in recent_actions):
            logger.debug("Detected repetitive scrolling pattern")
            return 'repetitive scrolling'

    recent_thoughts = [s for s in steps[-4:] if isinstance(s, ThoughtStep)]
    if len(recent_thoughts) >= 3:
        first = recent_thoughts[0].content.lower()
        similar = [
            t for t in recent_thoughts[1:]
            if similarity(t.content.lower(), first) > similarity_threshold
        ]
        if len(similar) >= 2:
            logger.debug(f"Detected repetitive thinking pattern: {first[:100]}")
            return 'repetitive thoughts'

    if len(steps) >= progress_window:
        window = steps[-progress_window:]
        if not any(isinstance(s, ObservationStep) and s.success for s in window):
            logger.debug(f"Detected lack of progress - no successful observation in last {progress_window} steps")
            return 'no progress'

    return None


def _is_navigation_like(step: ActionStep) -> bool:
    return step.action_data.type in ('navigate', 'click') or 'navigat' in step.content.lower()


def is_simple_navigation_complete(steps: Sequence[Step], window: int = 5) -> bool:
    """A navigate/click-ish action followed by a success observation, with no failure, in the window."""
    recent = list(steps[-window:])
    if any(isinstance(s, ObservationStep) and not s.success for s in recent):
        return False

    for index, step in enumerate(recent):
        if isinstance(step, ActionStep) and _is_navigation_like(step):
            if any(isinstance(s, ObservationStep) and s.success for s in recent[index + 1:]):
                return True
    return False


def count_consecutive_failures(steps: Sequence[Step]) -> int:
    """Failure observations counted backwards until the first success observation.

    Thoughts and actions sit between observations and do not break the streak.
    """
    failures = 0
    for step in reversed(steps):
        if isinstance(step, ObservationStep):
            if step.success:
                break
            failures += 1
    return failures


def should_take_screenshot(
    instruction: str,
    steps: Sequence[Step],
    classification: Optional[InstructionClassification] = None,
) -> bool:
    if count_consecutive_failures(steps) >= 2:
        logger.debug("🔥 Forcing screenshot due to consecutive failures")
        return True

    if steps and isinstance(steps[-1], ObservationStep) and not steps[-1].success:
        logger.debug("Taking screenshot due to recent failure")
        return True

    if classification is not None:
        return classification.needs_screenshot

    if not steps and SIMPLE_NAVIGATION_PATTERN.match(instruction.strip()):
        logger.debug("Skipping screenshot for simple navigation instruction")
        return False

    return True
