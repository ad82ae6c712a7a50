"""
similarity.py — Heuristic "did you mean" ranking of model ids.

Not an edit distance. Scores accumulate from:
  exact match            1.0
  same family prefix    +0.5   (first token)
  shared size/quant tag +0.2   each, by substring containment
  token overlap         +0.3 × |common| / max(|tokens|)
clamped to 1.0. Exact matches still collect the bonuses, which only matters
once the clamp is applied.
"""

from __future__ import annotations

import re
from typing import Iterable, List, Tuple

from llm_preflight.models import SimilarityCandidate

COMMON_SUFFIXES: Tuple[str, ...] = ("3b", "7b", "13b", "70b", "q4", "q8", "instruct", "chat", "base")
MIN_SCORE = 0.1
MAX_RESULTS = 5

_TOKEN_SPLIT = re.compile(r"[-_\s]")


def tokenize(model_id: str) -> List[str]:
    return [t for t in _TOKEN_SPLIT.split(model_id.lower()) if t]


def score_candidate(target: str, candidate: str) -> Tuple[float, List[str]]:
    """Return (score, reasons) for one candidate, reasons in firing order."""
    t, c = target.lower(), candidate.lower()
    t_tokens, c_tokens = tokenize(t), tokenize(c)
    score = 0.0
    reasons: List[str] = []

    if t == c:
        score = 1.0
        reasons.append("Exact match")

    if t_tokens and c_tokens and t_tokens[0] == c_tokens[0]:
        score += 0.5
        reasons.append(f"Same family: {t_tokens[0]}")

    for suffix in COMMON_SUFFIXES:
        if suffix in t and suffix in c:
            score += 0.2
            reasons.append(f"Shared suffix: {suffix}")

    common = [tok for tok in t_tokens if tok in c_tokens]
    if common:
        score += len(common) / max(len(t_tokens), len(c_tokens)) * 0.3
        reasons.append(f"Common tokens: {', '.join(common)}")

    return min(score, 1.0), reasons


def rank_similar_models(
    target: str,
    candidates: Iterable[str],
    limit: int = MAX_RESULTS,
) -> List[SimilarityCandidate]:
    """Best matches for ``target``, descending score, at most ``limit``."""
    scored = []
    for candidate in candidates:
        score, reasons = score_candidate(target, candidate)
        if score > MIN_SCORE:
            scored.append(
                SimilarityCandidate(model_id=candidate, score=score, matched_reasons=reasons)
            )
    # sorted() is stable: ties keep candidate order
    scored = sorted(scored, key=lambda s: s.score, reverse=True)
    return scored[: max(0, min(limit, MAX_RESULTS))]
