from __future__ import annotations

import re
from collections import Counter
from typing import Iterable

STOP_WORDS = frozenset(
    """
    a about above after again against all also am an and any are aren't as at
    be because been before being below between both but by can can't cannot
    could couldn't did didn't do does doesn't doing don't down during each few
    for from further get got had hadn't has hasn't have haven't having he her
    here hers herself him himself his how i i'm if in into is isn't it it's its
    itself just let's like me more most mustn't my myself no nor not now of off
    on once only or other ought our ours ourselves out over own please same
    shan't she should shouldn't so some such than thank thanks that that's the
    their theirs them themselves then there there's these they they're this
    those through to too under until up us very was wasn't we we're were
    weren't what what's when where which while who whom why will with won't
    would wouldn't yes you you're your yours yourself yourselves hello hi hey
    okay ok want need know tell show give make sure
    """.split()
)

_TOKEN = re.compile(r"[a-z0-9][a-z0-9_']*")


def extract_keywords(
    texts: Iterable[str],
    *,
    top_k: int = 10,
    min_length: int = 3,
    stop_words: frozenset[str] = STOP_WORDS,
) -> list[str]:
    """
    Frequency-ranked keywords across ``texts``.

    Lower-cased; stop-words, pure numbers and tokens shorter than
    ``min_length`` are dropped. Equal counts are ordered lexicographically.
    """
    if top_k <= 0:
        return []

    counts: Counter[str] = Counter()
    for text in texts:
        if not text:
            continue
        for token in _TOKEN.findall(text.lower()):
            token = token.strip("'_")
            if len(token) < min_length or token in stop_words or token.isdigit():
                continue
            counts[token] += 1

    ranked = sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    return [token for token, _ in ranked[:top_k]]
