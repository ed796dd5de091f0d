"""
Bundled content loading with centralized configuration.

Reads the question modules, knowledge articles and issue rules shipped in
``source_data/`` (or the directory configured as ``ASSESSMENT_DATA_DIR``).
Only file access and JSON decoding happen here; validation belongs to the
domain loaders.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from .config import get_settings
from .exceptions import CatalogError
from .logging import get_logger

logger = get_logger(__name__)

QUESTIONS_DIR = "questions"
KNOWLEDGE_DIR = "knowledge"
INDEX_FILE = "index.json"
ISSUE_RULES_FILE = "issue_rules.json"


def resolve_data_dir(data_dir: str | Path | None = None) -> Path:
    """Return the content directory, defaulting to the configured one."""
    if data_dir is None:
        data_dir = get_settings().assessment.data_dir
    return Path(data_dir)


def read_json(path: Path) -> Any:
    """
    Read one JSON content file.

    Raises:
        CatalogError: If the file is missing or is not valid JSON
    """
    try:
        with open(path, encoding="utf-8") as f:
            return json.load(f)
    except FileNotFoundError as e:
        raise CatalogError(f"Content file not found: {path}", details={"path": str(path)}) from e
    except json.JSONDecodeError as e:
        raise CatalogError(
            f"Content file {path} is not valid JSON: {e.msg} (line {e.lineno})",
            details={"path": str(path), "line": e.lineno},
        ) from e


def load_question_modules(data_dir: str | Path | None = None) -> list[dict[str, Any]]:
    """
    Load raw question modules in the order listed by ``questions/index.json``.

    Example:
        >>> modules = load_question_modules()
        >>> modules[0]["category"]
        'foundations_culture'
    """
    base = resolve_data_dir(data_dir) / QUESTIONS_DIR
    index = read_json(base / INDEX_FILE)
    names = index.get("modules") if isinstance(index, dict) else None
    if not isinstance(names, list):
        raise CatalogError(
            f"{base / INDEX_FILE} must contain a 'modules' list",
            details={"path": str(base / INDEX_FILE)},
        )

    modules = [read_json(base / name) for name in names]
    logger.info(f"Read {len(modules)} question modules from {base}")
    return modules


def load_knowledge_modules(data_dir: str | Path | None = None) -> list[dict[str, Any]]:
    """Load every raw knowledge module; a missing directory means no articles."""
    base = resolve_data_dir(data_dir) / KNOWLEDGE_DIR
    if not base.is_dir():
        logger.info(f"No knowledge directory at {base}")
        return []
    modules = [read_json(path) for path in sorted(base.glob("*.json"))]
    logger.info(f"Read {len(modules)} knowledge modules from {base}")
    return modules


def load_issue_rules(data_dir: str | Path | None = None) -> list[dict[str, Any]]:
    """Load raw critical-issue rules; a missing file means no rules."""
    path = resolve_data_dir(data_dir) / ISSUE_RULES_FILE
    if not path.exists():
        logger.info(f"No issue rules at {path}")
        return []
    data = read_json(path)
    rules = data.get("rules") if isinstance(data, dict) else None
    if not isinstance(rules, list):
        raise CatalogError(f"{path} must contain a 'rules' list", details={"path": str(path)})
    return rules
