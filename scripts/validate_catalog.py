from __future__ import annotations

import argparse
import sys
from collections import Counter
from pathlib import Path

from cnmaturity.application.api import AssessmentService
from cnmaturity.domain.models import localize
from cnmaturity.infrastructure.config import get_settings
from cnmaturity.infrastructure.exceptions import CatalogError


def summarise(service: AssessmentService, language: str = "en") -> list[str]:
    lines: list[str] = []
    for info in service.catalog.categories:
        questions = service.catalog.questions_in(info.id)
        types = Counter(q.assessment_type for q in questions)
        base = sum(1 for q in questions if q.base_question)
        lines.append(
            f"{info.id:<32} {localize(info.title, language):<40} "
            f"questions={len(questions):>3} base={base:>2} "
            + " ".join(f"{t}={types[t]}" for t in ("quick", "standard", "comprehensive", "optional"))
            + f" articles={len(service.knowledge.for_category(info.id))}"
        )
    lines.append(
        f"total questions={len(service.catalog)} "
        f"articles={len(service.knowledge)} issue_rules={len(service.issues.rules)}"
    )
    return lines


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Load the question bank and report any catalog errors"
    )
    parser.add_argument(
        "--data-dir",
        default=str(get_settings().assessment.data_dir),
        help="Directory holding questions/, knowledge/ and issue_rules.json",
    )
    parser.add_argument("--language", default="en")
    parser.add_argument("--quiet", action="store_true", help="Only report errors")
    args = parser.parse_args(argv)

    data_dir = Path(args.data_dir)
    if not data_dir.is_dir():
        print(f"ERROR: data directory not found at {data_dir}", file=sys.stderr)
        return 1

    try:
        service = AssessmentService.from_data_dir(data_dir)
    except CatalogError as exc:
        print(f"ERROR: {exc}", file=sys.stderr)
        return 1

    if not args.quiet:
        for line in summarise(service, args.language):
            print(line)
    print("Catalog OK.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
