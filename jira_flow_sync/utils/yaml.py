"""Contains utility functions for working with YAML files."""

from pathlib import Path
from typing import Any

import structlog
from ruamel.yaml import YAML

from jira_flow_sync.schemas.task import CanonicalColumn

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)

yaml = YAML(typ="safe")


def load_yaml_file(path: Path) -> Any:
    """Loads a YAML file and returns its content."""
    with open(path, encoding="utf-8") as f:
        return yaml.load(f)


def load_status_overrides(path: Path) -> dict[str, CanonicalColumn]:
    """Load a mapping of status label to board column from a YAML file.

    The file is a flat mapping, e.g.::

        "Waiting for QA 等待测试": TESTING & REVIEW
        Blocked: TO DO

    Raises:
        FileNotFoundError: If the file doesn't exist
        ValueError: If the file isn't a mapping or names an unknown column
    """
    if not path.exists():
        raise FileNotFoundError(f"Status map file not found: {path.absolute()}")
    content = load_yaml_file(path)
    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ValueError(f"Status map file must contain a mapping of status label to column: {path}")

    overrides: dict[str, CanonicalColumn] = {}
    errors: list[str] = []
    for label, column in content.items():
        try:
            overrides[str(label)] = CanonicalColumn(str(column).strip().upper())
        except ValueError:
            errors.append(f"{label!r} -> {column!r}")
    if errors:
        valid = ", ".join(c.value for c in CanonicalColumn)
        raise ValueError(f"Unknown board column(s) in {path}: {'; '.join(errors)}. Valid columns: {valid}")
    logger.info("Loaded status overrides", path=str(path), count=len(overrides))
    return overrides
