"""
Secondary named-entity pass (spaCy) for articles that arrive without entities.

Most articles are ingested with pre-extracted ``entities[]``. A minority
arrive bare; for those this pass recovers people, organizations and places
from ``title + description + content`` so they still feed entity trends.
It is a gap-filler only: articles that already carry entities are never
re-tagged.

MODEL CHOICE:
  en_core_web_sm (15MB, CPU): Fast, adequate for well-written news. Default.

LABEL MAPPING (spaCy → canonical):
  PERSON          → person
  ORG             → organization
  GPE, LOC, FAC   → location

REQUIRES: python -m spacy download en_core_web_sm
"""

import logging
from typing import Dict, List, Optional

import spacy

from ..config import get_settings
from ..schemas.news import Article, ArticleEntity
from .entity_normalizer import clean_entity_name, normalize_entity_type

logger = logging.getLogger(__name__)

# spaCy labels kept by the gap-filler
NER_LABELS = {"PERSON", "ORG", "GPE", "LOC", "FAC"}


class EntityExtractor:
    """
    Batch entity extraction for entity-less articles using spaCy.

    Uses spaCy's pipe() for batch processing. If the model cannot be
    loaded the extractor disables itself for the rest of the process
    and returns nothing — entity trends still run on pre-extracted data.
    """

    def __init__(self, model_name: Optional[str] = None, max_content_chars: Optional[int] = None):
        settings = get_settings()
        self.model_name = model_name or settings.spacy_model
        self.max_content_chars = max_content_chars or settings.ner_content_chars
        self._nlp = None
        self._disabled = False

    @property
    def nlp(self):
        """Lazy-load spaCy model (only when first used)."""
        if self._nlp is None:
            try:
                self._nlp = spacy.load(self.model_name)
                logger.info(f"Loaded spaCy model: {self.model_name}")
            except OSError:
                raise OSError(
                    f"spaCy model '{self.model_name}' not found. Run:\n"
                    f"  python -m spacy download {self.model_name}"
                )
        return self._nlp

    def article_text(self, article: Article) -> str:
        content = (article.content or "")[:self.max_content_chars]
        return " ".join(p for p in (article.title, article.description, content) if p)

    def extract_batch(self, articles: List[Article]) -> Dict[str, List[ArticleEntity]]:
        """
        Recover entities for a batch of articles.

        Returns {article_id: [ArticleEntity]} with one entry per distinct
        (name, type) per article, each weighted 1.
        """
        if not articles or self._disabled:
            return {}

        try:
            nlp = self.nlp
        except OSError as e:
            self._disabled = True
            logger.warning(f"NER gap-filler disabled: {e}")
            return {}

        texts = [self.article_text(a) for a in articles]
        docs = nlp.pipe(texts, batch_size=50, n_process=1)

        recovered: Dict[str, List[ArticleEntity]] = {}
        for article, doc in zip(articles, docs):
            seen = set()
            found = []
            for ent in doc.ents:
                if ent.label_ not in NER_LABELS:
                    continue
                name = clean_entity_name(ent.text)
                if len(name) < 2:
                    continue
                etype = normalize_entity_type(ent.label_).value
                key = (name.lower(), etype)
                if key in seen:
                    continue
                seen.add(key)
                found.append(ArticleEntity(name=name, type=etype, count=1))
            recovered[article.id] = found

        logger.debug(
            f"NER gap-filler: {sum(len(v) for v in recovered.values())} entities "
            f"from {len(articles)} articles"
        )
        return recovered
