"""
Long-form bilingual learning articles attached to questions.

Articles live per category and per language. Lookups fall back from the
requested language to the default one and then to whatever the article
declares first.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..infrastructure.exceptions import CatalogError, KnowledgeNotFoundError
from .catalog import QuestionCatalog
from .models import KnowledgeArticle
from .schemas import KnowledgeModuleSchema


@dataclass(frozen=True, slots=True)
class ResolvedArticle:
    question_id: str
    category: str
    language: str
    article: KnowledgeArticle


class KnowledgeBase:
    def __init__(
        self,
        articles: Mapping[str, Mapping[str, KnowledgeArticle]],
        categories: Mapping[str, str],
        default_language: str = "en",
    ):
        # question id -> language -> article; question id -> category
        self._articles = {qid: dict(by_lang) for qid, by_lang in articles.items()}
        self._categories = dict(categories)
        self.default_language = default_language

    @classmethod
    def load(
        cls,
        modules: Iterable[Mapping[str, Any]],
        catalog: QuestionCatalog,
        default_language: str = "en",
        logger: logging.Logger | None = None,
    ) -> KnowledgeBase:
        """
        Build the knowledge base from raw article modules.

        Articles for questions the catalog does not know are skipped with a
        warning; a malformed module raises CatalogError.
        """
        logger = logger or logging.getLogger(__name__)
        articles: dict[str, dict[str, KnowledgeArticle]] = {}
        categories: dict[str, str] = {}

        for raw in modules:
            try:
                module = KnowledgeModuleSchema.model_validate(raw)
            except PydanticValidationError as e:
                category = raw.get("category") if isinstance(raw, Mapping) else None
                raise CatalogError(
                    f"Invalid knowledge module '{category}': {e.errors()[0]['msg']}",
                    details={"category": category},
                ) from e

            for question_id, by_language in module.articles.items():
                if question_id not in catalog:
                    logger.warning(
                        "Skipping knowledge article for unknown question %s", question_id
                    )
                    continue
                if not by_language:
                    continue
                articles[question_id] = {
                    lang: schema.to_domain() for lang, schema in by_language.items()
                }
                categories[question_id] = catalog.get(question_id).category

        logger.info("Loaded %d knowledge articles", len(articles))
        return cls(articles, categories, default_language=default_language)

    def has_article(self, question_id: str) -> bool:
        return question_id in self._articles

    def languages(self, question_id: str) -> list[str]:
        return list(self._articles.get(question_id, {}))

    def article(self, question_id: str, language: str | None = None) -> ResolvedArticle:
        by_language = self._articles.get(question_id)
        if not by_language:
            raise KnowledgeNotFoundError(question_id)

        if language and language in by_language:
            chosen = language
        elif self.default_language in by_language:
            chosen = self.default_language
        else:
            chosen = next(iter(by_language))

        return ResolvedArticle(
            question_id=question_id,
            category=self._categories[question_id],
            language=chosen,
            article=by_language[chosen],
        )

    def for_category(self, category: str) -> list[str]:
        return [qid for qid, cat in self._categories.items() if cat == category]

    def __len__(self) -> int:
        return len(self._articles)
