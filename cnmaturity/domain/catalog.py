"""
Question catalog: the merged, validated, read-only question bank.

The catalog is built once from a sequence of category modules and checked
for duplicate ids, dangling dependency references and dependency cycles.
Declaration order (module order, then question order within a module) is
preserved and is the order every downstream listing uses.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from pydantic import ValidationError as PydanticValidationError

from ..infrastructure.exceptions import (
    CatalogError,
    CategoryNotFoundError,
    DanglingDependencyError,
    DependencyCycleError,
    DuplicateQuestionIdError,
    InvalidQuestionError,
    QuestionNotFoundError,
)
from .models import CategoryInfo, Question, QuestionModule
from .schemas import QuestionModuleSchema


def parse_module(raw: Mapping[str, Any], order: int = 0) -> QuestionModule:
    """Validate one raw category module and convert it to domain records."""
    try:
        schema = QuestionModuleSchema.model_validate(raw)
    except PydanticValidationError as e:
        category = raw.get("category") if isinstance(raw, Mapping) else None
        first = e.errors()[0]
        location = ".".join(str(x) for x in first["loc"])
        question_id = _question_id_at(raw, first["loc"])
        raise InvalidQuestionError(
            f"Invalid question module '{category}' at {location}: {first['msg']}",
            question_id=question_id,
            details={"category": category, "errors": e.errors(include_url=False)},
        ) from e
    return schema.to_domain(order)


def _question_id_at(raw: Mapping[str, Any], loc: Sequence[Any]) -> str | None:
    # loc looks like ("questions", 3, "options", ...)
    if len(loc) >= 2 and loc[0] == "questions" and isinstance(loc[1], int):
        questions = raw.get("questions") or []
        if loc[1] < len(questions) and isinstance(questions[loc[1]], Mapping):
            return questions[loc[1]].get("id")
    return None


def find_cycle(graph: Mapping[str, Sequence[str]]) -> list[str] | None:
    """
    Return one dependency cycle as a closed path, or None if the graph is acyclic.

    Iterative depth-first search with visiting/done marks. Every edge target
    must be a key of ``graph``.

    Example:
        >>> find_cycle({"a": ["b"], "b": ["a"]})
        ['a', 'b', 'a']
    """
    visiting, done = 1, 2
    state: dict[str, int] = {}

    for root in graph:
        if root in state:
            continue
        path = [root]
        state[root] = visiting
        stack: list[Iterator[str]] = [iter(graph[root])]
        while stack:
            nxt = next(stack[-1], None)
            if nxt is None:
                state[path.pop()] = done
                stack.pop()
                continue
            mark = state.get(nxt)
            if mark == visiting:
                return path[path.index(nxt) :] + [nxt]
            if mark is None:
                state[nxt] = visiting
                path.append(nxt)
                stack.append(iter(graph[nxt]))
    return None


class QuestionCatalog:
    """Immutable, in-memory question bank keyed by id and by category."""

    def __init__(self, modules: Sequence[QuestionModule], logger: logging.Logger | None = None):
        self.logger = logger or logging.getLogger(__name__)
        self._categories: dict[str, CategoryInfo] = {}
        self._by_category: dict[str, tuple[Question, ...]] = {}
        self._by_id: dict[str, Question] = {}

        for module in modules:
            category = module.info.id
            if category in self._categories:
                raise CatalogError(
                    f"Category '{category}' is declared by more than one module",
                    details={"category": category},
                )
            self._categories[category] = module.info
            self._by_category[category] = module.questions
            for question in module.questions:
                existing = self._by_id.get(question.id)
                if existing is not None:
                    raise DuplicateQuestionIdError(
                        question.id, (existing.category, question.category)
                    )
                self._by_id[question.id] = question

        self._validate_dependencies()

    @classmethod
    def load(
        cls,
        modules: Iterable[QuestionModule | Mapping[str, Any]],
        logger: logging.Logger | None = None,
    ) -> QuestionCatalog:
        """
        Merge category modules into a validated catalog.

        Args:
            modules: Domain modules or raw module mappings as stored in the
                content files, in declaration order

        Raises:
            DuplicateQuestionIdError: Two questions share an id
            DanglingDependencyError: A dependency names an unknown question
            DependencyCycleError: Dependencies form a cycle
            InvalidQuestionError: A module or question definition is malformed
        """
        parsed = [
            m if isinstance(m, QuestionModule) else parse_module(m, order)
            for order, m in enumerate(modules)
        ]
        catalog = cls(parsed, logger=logger)
        catalog.logger.info(
            "Loaded question catalog: %d questions in %d categories",
            len(catalog),
            len(catalog.categories),
        )
        return catalog

    def _validate_dependencies(self) -> None:
        graph: dict[str, list[str]] = {}
        for question in self._by_id.values():
            targets = []
            for dep in question.dependencies:
                if dep.question_id not in self._by_id:
                    raise DanglingDependencyError(question.id, dep.question_id)
                targets.append(dep.question_id)
            graph[question.id] = targets

        cycle = find_cycle(graph)
        if cycle:
            raise DependencyCycleError(cycle)

    # -- lookups -----------------------------------------------------------

    def get(self, question_id: str) -> Question:
        try:
            return self._by_id[question_id]
        except KeyError:
            raise QuestionNotFoundError(question_id) from None

    def category(self, category_id: str) -> CategoryInfo:
        try:
            return self._categories[category_id]
        except KeyError:
            raise CategoryNotFoundError(category_id) from None

    def questions_in(self, category_id: str) -> tuple[Question, ...]:
        if category_id not in self._by_category:
            raise CategoryNotFoundError(category_id)
        return self._by_category[category_id]

    @property
    def categories(self) -> list[CategoryInfo]:
        """Categories in declaration order."""
        return list(self._categories.values())

    @property
    def category_ids(self) -> list[str]:
        return list(self._categories)

    def dependents_of(self, question_id: str) -> list[Question]:
        """Questions that name ``question_id`` as a direct prerequisite."""
        self.get(question_id)
        return [
            q for q in self for dep in q.dependencies if dep.question_id == question_id
        ]

    def __contains__(self, question_id: object) -> bool:
        return question_id in self._by_id

    def __iter__(self) -> Iterator[Question]:
        for questions in self._by_category.values():
            yield from questions

    def __len__(self) -> int:
        return len(self._by_id)
