"""
Consolidated stopword sets — single source for keyword and theme filtering.

Used by:
  - storyline.trends.keywords (TF-IDF tokenization)
  - storyline.stories.narrative (chapter theme extraction)
"""
from __future__ import annotations

from spacy.lang.en.stop_words import STOP_WORDS

# Newsroom boilerplate that survives a generic English list but never
# discriminates between stories.
NEWS_STOP = frozenset({
    "said", "says", "say", "told", "according", "reported", "reports",
    "report", "news", "today", "yesterday", "tomorrow", "week", "year",
    "years", "month", "months", "day", "days", "time", "new", "latest",
    "update", "updated", "breaking", "live", "watch", "read", "video",
    "photo", "photos", "click", "mr", "mrs", "ms", "just", "like",
    "also", "amid", "via", "per", "get", "gets", "set",
})

# Full keyword stoplist: spaCy's English list + news boilerplate.
KEYWORD_STOP = frozenset(w.lower() for w in STOP_WORDS) | NEWS_STOP

# Chapter theme stopwords: words too generic to name a theme.
THEME_STOP = KEYWORD_STOP | frozenset({
    "about", "after", "before", "their", "there", "these", "those",
    "which", "while", "would", "could", "should", "with", "from",
    "this", "that", "have", "been", "were", "will", "into", "over",
})
