# jobmatch/pipeline/normalize.py
import re
from typing import Iterable, Optional

# ---------------------------
# Company name normalization
# ---------------------------

_non_alnum_re = re.compile(r"[^a-z0-9]+")


def normalize_company_name(name: Optional[str]) -> str:
    """
    Canonical lookup key for a company name.
    "Acme, Inc." and "ACME INC" both become "acme inc". Never raises;
    garbage in gives an empty key.
    """
    return _non_alnum_re.sub(" ", (name or "").lower()).strip()


# ---------------------------------
# Partial matching (fallback only)
# ---------------------------------

# Words that say nothing about which employer is meant
GENERIC_COMPANY_WORDS = {
    "inc", "incorporated", "llc", "llp", "ltd", "limited", "corp", "corporation",
    "co", "company", "plc", "gmbh", "sa", "ag", "group", "holdings", "the",
    "and", "of", "technologies", "technology", "tech", "labs", "systems",
    "solutions", "services", "software", "global", "international", "us", "usa",
}

MIN_WORD_OVERLAP = 0.5


def significant_words(normalized: str) -> set[str]:
    return {w for w in normalized.split() if w not in GENERIC_COMPANY_WORDS and len(w) > 1}


def word_overlap_ratio(query: str, candidate: str) -> float:
    """
    Fraction of the query's significant words found in the candidate.
    Both arguments are normalized names.
    """
    q = significant_words(query)
    if not q:
        return 0.0
    return len(q & significant_words(candidate)) / len(q)


def best_partial_match(query: str, candidates: Iterable[str]) -> Optional[str]:
    """
    Pick the candidate key with the highest significant-word overlap,
    requiring at least MIN_WORD_OVERLAP. Ties keep the first seen.
    """
    best, best_ratio = None, 0.0
    for cand in candidates:
        ratio = word_overlap_ratio(query, cand)
        if ratio >= MIN_WORD_OVERLAP and ratio > best_ratio:
            best, best_ratio = cand, ratio
    return best
