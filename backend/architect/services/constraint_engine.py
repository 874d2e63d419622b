"""
Constraint Engine: turns a teacher's free-text notes into prioritized,
arbitrated constraints and explicit structural knobs.

Three steps, each a pure function:

  STEP 1: classify_constraints(text)
    Fragments the text on sentence punctuation and matches every fragment
    against CONSTRAINT_PATTERNS (ordered). One fragment may yield several
    constraints, but never two of the same type.

  STEP 2: resolve_constraint_conflicts(constraints)
    Pairs every ACTIVE constraint with every ACTIVE constraint of an opposing
    type (CONFLICT_RULES). The higher priority wins; the loser is DROPPED when
    the gap is >= 30, otherwise SOFTENED. Arbitration is one-pass and pairwise:
    all pairs are collected up front, so a later pair may re-mark a constraint
    an earlier pair already softened or dropped. That is a known limitation of
    the scheme, not something to paper over here.

  STEP 3: translate_to_knobs(constraints, current_ceiling)
    Every non-DROPPED meta/grading constraint whose text matches a rule family
    (rigor, simplicity, grading ease) writes into DerivedStructuralKnobs.
    Rules fire independently; a raise and a cap may both end up set. The
    rigor profile decides between them (cap wins).

Priority schema:
    time (100) > safety (80) > structural (60) > content (40)
    > grading (30) > meta (20) > style (10)
"""
from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from typing import NamedTuple

from architect.models.blueprint import (
    BLOOM_ORDER,
    ClassifiedConstraint,
    CognitiveLevel,
    ConstraintType,
    DerivedStructuralKnobs,
    Resolution,
)

logger = logging.getLogger("architect.constraint_engine")


PRIORITY_SCHEMA: dict[ConstraintType, int] = {
    ConstraintType.TIME: 100,
    ConstraintType.SAFETY: 80,
    ConstraintType.STRUCTURAL: 60,
    ConstraintType.CONTENT: 40,
    ConstraintType.GRADING: 30,
    ConstraintType.META: 20,
    ConstraintType.STYLE: 10,
}

# Priority gap at or above which the losing constraint is dropped outright.
DROP_GAP = 30

MIN_FRAGMENT_LENGTH = 4

_FRAGMENT_SPLIT_RE = re.compile(r"[.,;:\n!?]+")


# ════════════════════════════════════════════════════════════
# A) Classification
# ════════════════════════════════════════════════════════════


class PatternRule(NamedTuple):
    pattern: re.Pattern
    type: ConstraintType
    priority_override: int | None = None


def _rule(regex: str, ctype: ConstraintType, priority_override: int | None = None) -> PatternRule:
    return PatternRule(re.compile(regex, re.IGNORECASE), ctype, priority_override)


_UNIT = r"(min|minute|mins|second|sec|hour|hr)s?\b"

CONSTRAINT_PATTERNS: list[PatternRule] = [
    # ── time ──────────────────────────────────────────────────────────────
    _rule(r"\b(fits? in(to)?|finish(ed)? in|must take|no (more|longer) than|within|under)\b.*\b" + _UNIT, ConstraintType.TIME),
    _rule(r"\btimed assessment\b", ConstraintType.TIME),
    _rule(r"\bclocked?\b", ConstraintType.TIME),
    _rule(r"\b\d+\s*" + _UNIT + r".*\b(class|period|block|total)\b", ConstraintType.TIME),

    # ── safety ────────────────────────────────────────────────────────────
    _rule(r"\b(no sensitive|school.?appropriate|age.?appropriate|safe content|avoid (violence|mature|graphic|explicit))", ConstraintType.SAFETY, 90),
    _rule(r"\bno trick questions?\b", ConstraintType.SAFETY),
    _rule(r"\bavoid (offensive|inappropriate|sensitive)\b", ConstraintType.SAFETY, 90),

    # ── structural ────────────────────────────────────────────────────────
    _rule(r"\b(all|only|use only|purely)\b.*\b(multiple.?choice|mcq?|true.?false|matching|fill.?in)", ConstraintType.STRUCTURAL),
    _rule(r"\bexactly \d+ (question|item|problem)s?\b", ConstraintType.STRUCTURAL),
    _rule(r"\b\d+ (question|item|problem)s?\b", ConstraintType.STRUCTURAL),
    _rule(r"\bquestion count\b", ConstraintType.STRUCTURAL),
    _rule(r"\bbreak (up|down) multi.?part\b", ConstraintType.STRUCTURAL),
    _rule(r"\bno (part [a-z]|sub.?questions?)\b", ConstraintType.STRUCTURAL),

    # ── content ───────────────────────────────────────────────────────────
    _rule(r"\b(only cover|focus on|align to|based on|limit to|restrict to)\b.*\b(unit|chapter|lesson|topic|standard)s?\b", ConstraintType.CONTENT),
    _rule(r"\bdo not include\b", ConstraintType.CONTENT),
    _rule(r"\buse (only|just) (the )?sources?\b", ConstraintType.CONTENT),
    _rule(r"\bmust include\b", ConstraintType.CONTENT),

    # ── grading ───────────────────────────────────────────────────────────
    _rule(r"\b(easy|quick|fast(er)?|simpl(e|er)) (to )?grad(e|ing)\b", ConstraintType.GRADING),
    _rule(r"\bmake grading (quick|easy|fast)\b", ConstraintType.GRADING),
    _rule(r"\b(objective|auto.?grad(e|able|ed)|auto.?scor(e|ed|able))\b", ConstraintType.GRADING),
    _rule(r"\b(fewer|less|no) (constructed.?responses?|open.?ended|essays?|long.?answers?)\b", ConstraintType.GRADING),
    _rule(r"\bshorter (answers?|responses?)\b", ConstraintType.GRADING),
    _rule(r"\bminimi[sz]e (grading|marking) time\b", ConstraintType.GRADING),

    # ── meta ──────────────────────────────────────────────────────────────
    _rule(r"\b(more rigorous|increase rigou?r|rigorous assessment)\b", ConstraintType.META),
    _rule(r"\bhigher.?order(ed)?\b", ConstraintType.META),
    _rule(r"\b(push|raise|elevate) (bloom|thinking|cognitive|complexity)\b", ConstraintType.META),
    _rule(r"\b(more challenging|more difficult|increase difficulty|harder)\b", ConstraintType.META),
    _rule(r"\b(simpler|simplify|more (accessible|basic)|reduce difficulty|easier)\b", ConstraintType.META),
    _rule(r"\blower (bloom|cognitive|level|demand)\b", ConstraintType.META),
    _rule(r"\b(analy[sz]e|synthesis|evaluation).?level\b", ConstraintType.META),
    _rule(r"\b(remember|recall|understand).?level\b", ConstraintType.META),

    # ── style ─────────────────────────────────────────────────────────────
    _rule(r"\b(formal|academic|professional) tone\b", ConstraintType.STYLE),
    _rule(r"\b(avoid|no) (jargon|slang|colloquial)", ConstraintType.STYLE),
    _rule(r"\buse (simple|plain|clear) language\b", ConstraintType.STYLE),
    _rule(r"\bkid.?friendly\b", ConstraintType.STYLE),
]


def fragmentize(text: str) -> list[str]:
    """Split free text into trimmed sentence-like fragments of 4+ characters."""
    fragments = (f.strip() for f in _FRAGMENT_SPLIT_RE.split(text or ""))
    return [f for f in fragments if len(f) >= MIN_FRAGMENT_LENGTH]


def classify_constraints(text: str | None) -> list[ClassifiedConstraint]:
    """Classify every recognisable constraint phrase in ``text``; all start ACTIVE."""
    if not text or not text.strip():
        return []

    results: list[ClassifiedConstraint] = []
    seen: set[tuple[str, ConstraintType]] = set()

    for fragment in fragmentize(text):
        for rule in CONSTRAINT_PATTERNS:
            if not rule.pattern.search(fragment):
                continue
            key = (fragment.lower(), rule.type)
            if key in seen:
                continue
            seen.add(key)
            results.append(
                ClassifiedConstraint(
                    source_text=fragment,
                    type=rule.type,
                    priority=(
                        rule.priority_override
                        if rule.priority_override is not None
                        else PRIORITY_SCHEMA[rule.type]
                    ),
                )
            )

    logger.debug(
        "[constraint_engine] classified %d constraint(s): %s",
        len(results),
        dict(Counter(c.type.value for c in results)),
    )
    return results


# ════════════════════════════════════════════════════════════
# B) Conflict detection & resolution
# ════════════════════════════════════════════════════════════


class ConflictRule(NamedTuple):
    type_a: ConstraintType
    type_b: ConstraintType
    dimension: str


CONFLICT_RULES: list[ConflictRule] = [
    ConflictRule(ConstraintType.META, ConstraintType.GRADING, "rigor-vs-gradability"),
    ConflictRule(ConstraintType.META, ConstraintType.TIME, "rigor-vs-pacing"),
    ConflictRule(ConstraintType.STRUCTURAL, ConstraintType.META, "fixed-format-vs-rigor"),
    ConflictRule(ConstraintType.GRADING, ConstraintType.STRUCTURAL, "response-format-contradiction"),
]


class ConflictPair(NamedTuple):
    a: int  # index into the constraint list
    b: int
    dimension: str


def detect_constraint_conflicts(constraints: list[ClassifiedConstraint]) -> list[ConflictPair]:
    """Every ACTIVE type-A constraint paired with every ACTIVE type-B one, per rule."""
    pairs: list[ConflictPair] = []
    for rule in CONFLICT_RULES:
        a_idx = [
            i for i, c in enumerate(constraints)
            if c.type == rule.type_a and c.resolved == Resolution.ACTIVE
        ]
        b_idx = [
            i for i, c in enumerate(constraints)
            if c.type == rule.type_b and c.resolved == Resolution.ACTIVE
        ]
        for a in a_idx:
            for b in b_idx:
                pairs.append(ConflictPair(a, b, rule.dimension))
    return pairs


def resolve_constraint_conflicts(constraints: list[ClassifiedConstraint]) -> list[ClassifiedConstraint]:
    """
    Arbitrate conflicting pairs and return a new list; the input is untouched.

    Ties go to the first member of the pair (the rule's type A).
    """
    working = list(constraints)

    for pair in detect_constraint_conflicts(constraints):
        a, b = working[pair.a], working[pair.b]
        if a.priority >= b.priority:
            winner, loser_idx = a, pair.b
        else:
            winner, loser_idx = b, pair.a
        loser = working[loser_idx]

        gap = winner.priority - loser.priority
        if gap >= DROP_GAP:
            resolved = Resolution.DROPPED
            note = (
                f'Dropped (priority {loser.priority}): overridden by "{winner.source_text}" '
                f"(priority {winner.priority}, gap {gap}, dimension: {pair.dimension})"
            )
        else:
            resolved = Resolution.SOFTENED
            note = (
                f'Softened (priority {loser.priority}) in favour of "{winner.source_text}" '
                f"(priority {winner.priority}, gap {gap}, dimension: {pair.dimension})"
            )

        working[loser_idx] = loser.model_copy(update={"resolved": resolved, "resolution_note": note})
        logger.debug("[constraint_engine] %s", note)

    return working


# ════════════════════════════════════════════════════════════
# C) Meta → structural translation
# ════════════════════════════════════════════════════════════

_RIGOR_RE = re.compile(
    r"more rigorous|higher.?order|increase rigou?r|rigorous assessment|more challenging|"
    r"more difficult|harder|push bloom|raise bloom|elevate",
    re.IGNORECASE,
)
_SIMPLICITY_RE = re.compile(
    r"simpl(er|ify)|more (accessible|basic)|reduce difficult|easier|lower (bloom|cognitive|level|demand)",
    re.IGNORECASE,
)
_GRADING_EASE_RE = re.compile(
    r"easy|quick|fast(er)?|simpl(e|er|ify)|objective|auto.?grad|auto.?scor|fewer|less|\bno\b|shorter|minimi[sz]e",
    re.IGNORECASE,
)
_SHORT_ANSWER_RE = re.compile(r"short(er)? (answer|response)s?", re.IGNORECASE)

RIGOR_CEILING_STEPS = 2
RIGOR_BOOST = {CognitiveLevel.ANALYZE: 0.15, CognitiveLevel.EVALUATE: 0.08}
RIGOR_EXTRA_SLOTS = {CognitiveLevel.ANALYZE: 1, CognitiveLevel.APPLY: 1}
SIMPLICITY_SHIFT = 0.10
SIMPLICITY_CAP = CognitiveLevel.APPLY
GRADING_DEFAULT_CAP = CognitiveLevel.APPLY


def _add(mapping: dict, key, delta) -> None:
    mapping[key] = mapping.get(key, 0) + delta


def translate_to_knobs(
    constraints: list[ClassifiedConstraint],
    current_ceiling: CognitiveLevel = CognitiveLevel.UNDERSTAND,
) -> DerivedStructuralKnobs:
    """Map non-dropped meta/grading constraints onto structural knobs."""
    knobs = DerivedStructuralKnobs()

    for c in constraints:
        if c.resolved == Resolution.DROPPED:
            continue
        text = c.source_text.lower()

        if c.type == ConstraintType.META and _RIGOR_RE.search(text):
            target = CognitiveLevel.from_rank(current_ceiling.rank + RIGOR_CEILING_STEPS)
            if knobs.raise_ceiling is None or knobs.raise_ceiling.rank < target.rank:
                knobs.raise_ceiling = target
            for level, delta in RIGOR_BOOST.items():
                _add(knobs.distribution_boost, level, delta)
            for level, extra in RIGOR_EXTRA_SLOTS.items():
                _add(knobs.add_slots, level, extra)

        if c.type == ConstraintType.META and _SIMPLICITY_RE.search(text):
            knobs.cap_ceiling = SIMPLICITY_CAP
            knobs.raise_ceiling = None
            for level in (CognitiveLevel.REMEMBER, CognitiveLevel.UNDERSTAND):
                _add(knobs.distribution_boost, level, SIMPLICITY_SHIFT)
            for level in (CognitiveLevel.ANALYZE, CognitiveLevel.EVALUATE):
                _add(knobs.distribution_boost, level, -SIMPLICITY_SHIFT)

        if c.type == ConstraintType.GRADING and _GRADING_EASE_RE.search(text):
            knobs.prefer_multiple_choice = True
            knobs.reduce_constructed_response = True
            if _SHORT_ANSWER_RE.search(text):
                knobs.reduce_short_answer = True
                knobs.clamp_answer_length = True
            if knobs.cap_ceiling is None:
                knobs.cap_ceiling = GRADING_DEFAULT_CAP

    # Canonical level order keeps the knob record reproducible.
    knobs.distribution_boost = {
        level: round(knobs.distribution_boost[level], 4)
        for level in BLOOM_ORDER if level in knobs.distribution_boost
    }
    knobs.add_slots = {level: knobs.add_slots[level] for level in BLOOM_ORDER if level in knobs.add_slots}
    return knobs


# ════════════════════════════════════════════════════════════
# D) Convenience pipeline
# ════════════════════════════════════════════════════════════


@dataclass
class ConstraintEngineOutput:
    classified: list[ClassifiedConstraint]
    resolved: list[ClassifiedConstraint]
    knobs: DerivedStructuralKnobs
    summary: dict[str, int] = field(default_factory=dict)


def run_constraint_engine(
    text: str | None,
    current_ceiling: CognitiveLevel = CognitiveLevel.UNDERSTAND,
) -> ConstraintEngineOutput:
    """Classify → resolve → translate."""
    classified = classify_constraints(text)
    resolved = resolve_constraint_conflicts(classified)
    knobs = translate_to_knobs(resolved, current_ceiling)

    summary = dict(Counter(c.resolved.value for c in resolved))
    if resolved:
        logger.info(
            "[constraint_engine] %d constraint(s) → %s",
            len(resolved),
            summary,
        )
    return ConstraintEngineOutput(classified=classified, resolved=resolved, knobs=knobs, summary=summary)
