"""
Fuzzy path matching for the browser's `search` command.

A keyword matches a candidate when its characters appear in the candidate in
order, ignoring case. Among all such alignments the best-scoring one counts:

* each keyword character matched right after the previous one earns
  BONUS_CONSECUTIVE, so contiguous substrings rank highest;
* the first matched character costs PENALTY_DISTANCE per character it sits
  from the start of the candidate, capped at MAX_LEADING_PENALTY;
* matches after a separator or on a capital letter earn BONUS_SEPARATOR and
  BONUS_CAPITAL, both zero for path search.
"""

from concurrent.futures import ProcessPoolExecutor
from dataclasses import dataclass
from functools import partial
from typing import Iterable

BONUS_CONSECUTIVE = 50
BONUS_SEPARATOR = 0
BONUS_CAPITAL = 0
PENALTY_DISTANCE = 20
MAX_LEADING_PENALTY = 300

SEPARATORS = frozenset("/\\_-. ")

# Below this many candidates a process pool costs more than it saves.
PARALLEL_THRESHOLD = 2000


@dataclass(frozen=True)
class Match:
    path: str
    score: int


def _position_bonus(candidate: str, index: int) -> int:
    bonus = 0
    if index > 0 and candidate[index - 1] in SEPARATORS:
        bonus += BONUS_SEPARATOR
    if candidate[index].isupper():
        bonus += BONUS_CAPITAL
    return bonus


def fuzzy_score(keyword: str, candidate: str) -> int | None:
    """Returns the best alignment score, or None when `keyword` does not match."""
    query = keyword.lower()
    target = candidate.lower()
    if not query or len(query) > len(target):
        return None

    # prev[j]: best score with the keyword so far matched and its last character at j
    prev: list[int | None] = [None] * len(target)
    for j, char in enumerate(target):
        if char == query[0]:
            leading = min(PENALTY_DISTANCE * j, MAX_LEADING_PENALTY)
            prev[j] = _position_bonus(candidate, j) - leading

    for qchar in query[1:]:
        current: list[int | None] = [None] * len(target)
        best_gapped = None
        for j in range(1, len(target)):
            if j >= 2 and prev[j - 2] is not None:
                if best_gapped is None or prev[j - 2] > best_gapped:
                    best_gapped = prev[j - 2]
            if target[j] != qchar:
                continue
            options = []
            if prev[j - 1] is not None:
                options.append(prev[j - 1] + BONUS_CONSECUTIVE)
            if best_gapped is not None:
                options.append(best_gapped)
            if options:
                current[j] = max(options) + _position_bonus(candidate, j)
        prev = current

    scores = [score for score in prev if score is not None]
    return max(scores) if scores else None


def rank(keyword: str, candidates: Iterable[str], workers: int = 1) -> list[Match]:
    """
    Scores every candidate and keeps the matches, best first.

    Equal scores keep the order the candidates were given in. With more than
    one worker the scoring is spread over a process pool; `map` preserves
    input order, so the result is the same either way.
    """
    candidates = list(candidates)
    scorer = partial(fuzzy_score, keyword)
    if workers > 1 and len(candidates) >= PARALLEL_THRESHOLD:
        chunksize = max(1, len(candidates) // (workers * 4))
        with ProcessPoolExecutor(max_workers=workers) as pool:
            scores = list(pool.map(scorer, candidates, chunksize=chunksize))
    else:
        scores = [scorer(candidate) for candidate in candidates]

    matches = [
        Match(path=candidate, score=score)
        for candidate, score in zip(candidates, scores)
        if score is not None
    ]
    matches.sort(key=lambda m: m.score, reverse=True)
    return matches
