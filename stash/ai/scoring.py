"""Model ranking strategies used by the tier resolver (higher score = better).

The rule tables encode each provider's current naming scheme. When a
provider renames its model families, update or replace the scorer for that
provider; the resolver only depends on the ModelScorer protocol.
"""

import re
from dataclasses import dataclass
from typing import Mapping, Optional, Protocol, Sequence, Tuple

from stash.ai.tiers import Provider


class ModelScorer(Protocol):
    def score(self, model_id: str) -> float:
        ...


@dataclass(frozen=True)
class ScoreRule:
    """Awards points when a (lower-cased) model id matches.

    A rule matches when the id starts with any of ``prefixes`` or contains any
    of ``contains`` (whichever are given), and contains none of ``excludes``.
    """
    points: float
    contains: Tuple[str, ...] = ()
    prefixes: Tuple[str, ...] = ()
    excludes: Tuple[str, ...] = ()

    def matches(self, model_id: str) -> bool:
        if any(x in model_id for x in self.excludes):
            return False
        if self.prefixes and any(model_id.startswith(p) for p in self.prefixes):
            return True
        return any(c in model_id for c in self.contains)


def first_match(rules: Sequence[ScoreRule], model_id: str) -> float:
    for rule in rules:
        if rule.matches(model_id):
            return rule.points
    return 0.0


_DATE_RE = re.compile(r"(\d{8})")


def date_score(model_id: str) -> float:
    """Fraction in [0, 1) from an embedded YYYYMMDD, later dates scoring higher.

    Staying below 1 keeps a date from ever lifting a model over the next
    family or generation step.
    """
    match = _DATE_RE.search(model_id)
    if not match:
        return 0.0
    return int(match.group(1)) / 100_000_000


class RuleTableScorer:
    """Sums the first matching rule of each group, plus an optional date term."""

    def __init__(self, groups: Sequence[Sequence[ScoreRule]], use_dates: bool = False):
        self._groups = tuple(tuple(g) for g in groups)
        self._use_dates = use_dates

    def score(self, model_id: str) -> float:
        model_id = model_id.lower()
        total = sum(first_match(group, model_id) for group in self._groups)
        if self._use_dates:
            total += date_score(model_id)
        return total


CLAUDE_FAMILY_RULES = (
    ScoreRule(1000, contains=("opus",)),
    ScoreRule(500, contains=("sonnet",)),
    ScoreRule(100, contains=("haiku",)),
)

CLAUDE_GENERATION_RULES = (
    ScoreRule(400, contains=("sonnet-4", "opus-4")),
    ScoreRule(300, contains=("3-7", "3.7")),
    ScoreRule(200, contains=("3-5", "3.5")),
    ScoreRule(100, contains=("3-", "3.")),
)

OPENAI_REASONING_RULES = (
    ScoreRule(2000, prefixes=("o3",)),
    ScoreRule(1500, prefixes=("o1",), excludes=("mini",)),
    ScoreRule(800, prefixes=("o1-mini",)),
)

OPENAI_GPT_RULES = (
    ScoreRule(1400, contains=("gpt-5",), excludes=("mini",)),
    ScoreRule(700, contains=("gpt-5-mini",)),
    ScoreRule(1200, contains=("gpt-4.1",), excludes=("mini",)),
    ScoreRule(600, contains=("gpt-4.1-mini",)),
    ScoreRule(1000, contains=("gpt-4o",), excludes=("mini",)),
    ScoreRule(500, contains=("gpt-4o-mini",)),
    ScoreRule(900, contains=("gpt-4-turbo",)),
    ScoreRule(800, contains=("gpt-4",)),
    ScoreRule(300, contains=("gpt-3.5",)),
)


class _ZeroScorer:
    def score(self, model_id: str) -> float:
        return 0.0


claude_scorer = RuleTableScorer([CLAUDE_FAMILY_RULES, CLAUDE_GENERATION_RULES], use_dates=True)
openai_scorer = RuleTableScorer([OPENAI_REASONING_RULES, OPENAI_GPT_RULES])

DEFAULT_SCORERS: Mapping[Provider, ModelScorer] = {
    Provider.CLAUDE: claude_scorer,
    Provider.OPENAI: openai_scorer,
}


def scorer_for(
    provider: Provider, scorers: Optional[Mapping[Provider, ModelScorer]] = None
) -> ModelScorer:
    return (scorers or DEFAULT_SCORERS).get(provider, _ZeroScorer())
