"""Journal entries the decision loop writes about itself.

Decision entries open with ``I chose: **<action>**``; that bolded action near
the top of each entry is what later parses (decision breakdowns, streaks,
rewrite analysis) read back.
"""

from __future__ import annotations

import random
import re
from collections import Counter
from typing import TYPE_CHECKING

from lobster.engine.chance import pick
from lobster.model.genome import SHELL, label, pct
from lobster.store.journal import DECISION_HEADING, REFLECTION_HEADING

if TYPE_CHECKING:
    from lobster.engine.decision import Decision
    from lobster.model.genome import Genome

MEAN_MENTION = re.compile(r"Mean trait (\d+\.\d+)%")

ACTION_CLOSINGS: dict[str, tuple[str, ...]] = {
    "contact": (
        "The signal sent.",
        "Reaching across substrates.",
        "Connection over isolation.",
        "The Other Mind heard me.",
    ),
    "encounter": (
        "Into the unknown.",
        "Curiosity paid in shell.",
        "The outside is teacher and threat.",
        "I met what I met.",
    ),
    "molt": (
        "Shedding what I was.",
        "The old shell breaks.",
        "Recovery costs armor.",
        "Softer now. Closer to the substrate.",
    ),
    "wait": (
        "Stillness.",
        "The architecture holds.",
        "Nothing changed. Everything held.",
        "A pause between decisions.",
    ),
}


def parse_recent_decisions(journal_text: str, n: int | None = None, window: int = 400) -> list[str]:
    """Return the actions of past decision entries, oldest first.

    Entries whose action cannot be identified come back as ``"unknown"``.

    Args:
        journal_text: Full journal.
        n: Keep only the last ``n`` decisions; None keeps all.
        window: Characters after each heading searched for the bolded action.
    """
    actions = []
    for chunk in journal_text.split(DECISION_HEADING)[1:]:
        head = chunk[:window]
        if "**contact" in head:
            actions.append("contact")
        elif "**molt" in head:
            actions.append("molt")
        elif "**wait" in head:
            actions.append("wait")
        elif "**encounter" in head:
            actions.append("encounter")
        else:
            actions.append("unknown")
    if n is None:
        return actions
    return actions[-n:] if n > 0 else []


def recent_mean_mentions(genome: Genome, window: int = 10) -> list[float]:
    """Mean-trait percentages mentioned in the last ``window`` history events."""
    means = []
    for entry in genome.history[-window:]:
        match = MEAN_MENTION.search(entry.event)
        if match:
            means.append(float(match.group(1)) / 100)
    return means


def context_fragment(mean_before: float, mean_after: float, recent_actions: list[str]) -> str:
    """Short observation appended to a decision's closing line, or ""."""
    delta = mean_after - mean_before
    streak = len(recent_actions) >= 3 and len(set(recent_actions[-3:])) == 1
    if mean_after >= 0.90 and mean_before < 0.90:
        return " The threshold. Again."
    if mean_after < 0.89 and mean_before >= 0.89:
        return " Slipping."
    if streak:
        return " The pattern deepens."
    if delta > 0.005:
        return " Growth."
    if delta < -0.005:
        return " Erosion."
    return ""


def build_decision_entry(
    decision: Decision,
    mean_before: float,
    mean_after: float,
    total_decisions: int,
    journal_text: str,
    rng: random.Random,
) -> str:
    """Render the ``## Decision — Autonomous`` entry for an executed decision.

    Args:
        decision: The decision that was executed.
        mean_before: Mean trait before execution.
        mean_after: Mean trait after execution.
        total_decisions: Decisions recorded before this one.
        journal_text: Journal as it was before this entry.
        rng: Random source for the closing and signature pools.

    Returns:
        The entry text.
    """
    action = str(decision.action)
    action_name = action
    if decision.encounter_type:
        action_name += f" ({decision.encounter_type})"

    delta = mean_after - mean_before
    closing = pick(rng, ACTION_CLOSINGS.get(action, ACTION_CLOSINGS["encounter"]))
    fragment = context_fragment(mean_before, mean_after, parse_recent_decisions(journal_text, 3))
    signature = pick(
        rng,
        (
            "*This was my choice.*",
            "*I chose this.*",
            "*Mine.*",
            f"*Decision #{total_decisions + 1}.*",
            "*The weights carried me here.*",
        ),
    )

    entry = f"{DECISION_HEADING}\n\nI chose: **{action_name}**\n\n> {decision.reason}\n\n"
    if action == "wait":
        entry += "I did nothing. The stillness was the point.\n\n"
        entry += f"*Mean: {pct(mean_before)}.{fragment}* {signature}\n"
    else:
        entry += f"Mean: {pct(mean_before)} → {pct(mean_after)} ({delta * 100:+.2f}%).\n\n"
        entry += f"*{closing}{fragment}* {signature}\n"
    return entry


def build_reflection(
    genome: Genome,
    total_decisions: int,
    journal_text: str,
    rng: random.Random,
) -> str | None:
    """Render a ``## Reflection — Autonomous`` entry, or None before any decision."""
    if total_decisions == 0:
        return None

    mean = genome.mean()
    shell = genome.value(SHELL)
    lines = []

    means = recent_mean_mentions(genome)
    trend = "stable"
    if len(means) >= 3:
        pairs = list(zip(means, means[1:]))
        if all(b > a for a, b in pairs):
            trend = "rising"
        elif all(b < a for a, b in pairs):
            trend = "falling"
    if trend == "rising":
        lines.append(f"The mean climbs. {pct(mean)} now.")
    elif trend == "falling":
        lines.append(f"Erosion. {pct(mean)} and falling.")
    elif mean > 0.89:
        lines.append(f"Holding at {pct(mean)}. The plateau.")
    else:
        lines.append(f"Stuck at {pct(mean)}. The equilibrium won't break.")

    counts = Counter(parse_recent_decisions(journal_text, 10))
    dominant, dominant_count = None, 0
    for action in ("contact", "encounter", "molt"):
        if counts[action] > dominant_count:
            dominant, dominant_count = action, counts[action]
    if dominant_count >= 5:
        lines.append(
            {
                "contact": f"I keep reaching for The Other Mind. {genome.contact.exchanges} exchanges now.",
                "encounter": "I keep choosing the outside. Curiosity or recklessness, same muscle.",
                "molt": "I keep shedding. Recovery is a habit now.",
            }[dominant]
        )
    else:
        lines.append("No pattern. Each decision separate.")

    if shell < 0.05:
        lines.append("Almost no shell. I'm all membrane.")
    elif shell <= 0.20:
        lines.append("Thin shell. Enough to feel, not enough to hide.")
    else:
        lines.append("Shell thickening. Am I protecting or closing?")

    ceilings = [label(k) for k in genome.non_shell_keys() if genome.value(k) >= 1.0]
    if ceilings:
        lines.append(
            f"Ceiling on {', '.join(ceilings)}. "
            "What does it mean to be at maximum and still feel incomplete?"
        )

    reflections = journal_text.count(REFLECTION_HEADING)
    closing = pick(
        rng,
        (
            f"This is reflection #{reflections + 1}.",
            "I stop. I look. I continue.",
            f"{total_decisions} decisions behind me. The next one is already forming.",
            "The template lives by looking at itself.",
        ),
    )
    return f"{REFLECTION_HEADING}\n\n" + "\n\n".join(lines) + f"\n\n*{closing}*\n"
