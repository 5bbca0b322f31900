"""Maps free-text Jira status labels onto canonical board columns.

Labels are resolved through a cascade where the first match wins:

1. the exact bilingual label table,
2. a user-defined override for the label,
3. ordered keyword tiers matched as substrings,
4. the default column (TO DO).

The tables are immutable and injected at construction so alternative
workflows can supply their own vocabulary.
"""

from enum import Enum
from types import MappingProxyType
from typing import Callable, Mapping, NamedTuple

import structlog

from jira_flow_sync.schemas.task import CanonicalColumn
from jira_flow_sync.utils.helpers import normalize_label

logger: structlog.stdlib.BoundLogger = structlog.get_logger(__name__)


def _exact_table(entries: dict[str, CanonicalColumn]) -> Mapping[str, CanonicalColumn]:
    return MappingProxyType({normalize_label(label): column for label, column in entries.items()})


EXACT_STATUS_MAP: Mapping[str, CanonicalColumn] = _exact_table(
    {
        "Funnel 漏斗": CanonicalColumn.FUNNEL,
        "Defining 定义": CanonicalColumn.DEFINING,
        "Ready 就绪": CanonicalColumn.READY,
        "To Do 待办": CanonicalColumn.TO_DO,
        "Open 打开": CanonicalColumn.TO_DO,
        "Building 构建中": CanonicalColumn.EXECUTION,
        "In Progress 处理中": CanonicalColumn.EXECUTION,
        "Build Done 构建完成": CanonicalColumn.EXECUTED,
        "In Review 审核中": CanonicalColumn.TESTING_AND_REVIEW,
        "Testing 测试中": CanonicalColumn.TESTING_AND_REVIEW,
        "Integrating & Testing 集成测试中": CanonicalColumn.TESTING_AND_REVIEW,
        "Test Done 测试完成": CanonicalColumn.TEST_DONE,
        "Validating 验证": CanonicalColumn.VALIDATING,
        "Validating 验证中": CanonicalColumn.VALIDATING,
        "Resolved 已解决": CanonicalColumn.RESOLVED,
        "Done 完成": CanonicalColumn.DONE,
        "Closed 关闭": CanonicalColumn.CLOSED,
    }
)
"""Known bilingual workflow labels, keyed by normalized label."""


class KeywordRule(NamedTuple):
    """A substring that places any label containing it in a column."""

    keyword: str
    column: CanonicalColumn


class StatusTier(NamedTuple):
    """An ordered group of keyword rules."""

    name: str
    rules: tuple[KeywordRule, ...]


def _rules(column: CanonicalColumn, *keywords: str) -> tuple[KeywordRule, ...]:
    return tuple(KeywordRule(keyword, column) for keyword in keywords)


# Tier order matters: "构建完成" must reach EXECUTED before "完成" reaches DONE,
# and "未开始" must not be read as started work.
KEYWORD_TIERS: tuple[StatusTier, ...] = (
    StatusTier(
        "in-progress",
        _rules(
            CanonicalColumn.EXECUTION,
            "in progress",
            "progress",
            "building",
            "processing",
            "running",
            "doing",
            "执行中",
            "处理中",
            "构建中",
            "进行中",
            "开始任务",
        ),
    ),
    StatusTier(
        "executed",
        _rules(CanonicalColumn.EXECUTED, "build done", "executed", "构建完成", "执行完成"),
    ),
    StatusTier(
        "review",
        _rules(CanonicalColumn.TESTING_AND_REVIEW, "review", "testing", "integrating", "审核", "代码审查", "测试中", "集成")
        + _rules(CanonicalColumn.TEST_DONE, "test done", "测试完成", "测试通过"),
    ),
    StatusTier(
        "resolution",
        _rules(CanonicalColumn.RESOLVED, "resolved", "已解决")
        + _rules(CanonicalColumn.VALIDATING, "validating", "validation", "验证", "resolve", "解决")
        + _rules(CanonicalColumn.CLOSED, "closed", "关闭")
        + _rules(CanonicalColumn.DONE, "done", "已完成", "完成"),
    ),
    StatusTier(
        "pre-work",
        _rules(CanonicalColumn.FUNNEL, "funnel", "漏斗")
        + _rules(CanonicalColumn.DEFINING, "defin", "定义")
        + _rules(CanonicalColumn.READY, "ready", "就绪")
        + _rules(CanonicalColumn.TO_DO, "backlog", "todo", "to do", "open", "new", "待办", "新建", "未开始", "打开"),
    ),
)
"""Keyword rules, tried tier by tier and rule by rule."""


class MatchSource(Enum):
    """Which stage of the cascade produced a column."""

    EXACT = "exact"
    OVERRIDE = "override"
    KEYWORD = "keyword"
    DEFAULT = "default"


class StatusMatch(NamedTuple):
    """A resolved column together with the stage that produced it."""

    column: CanonicalColumn
    source: MatchSource


OverrideLookup = Callable[[str], str | None]


class StatusNormalizer:
    """Resolves status labels to canonical columns.

    The resolved column depends only on the label and the overrides visible
    through ``override_lookup``. Labels that fall through to the default are
    logged and collected in ``unmatched`` so a sync run can report them.
    """

    def __init__(
        self,
        override_lookup: OverrideLookup | None = None,
        exact_map: Mapping[str, CanonicalColumn] = EXACT_STATUS_MAP,
        keyword_tiers: tuple[StatusTier, ...] = KEYWORD_TIERS,
        default: CanonicalColumn = CanonicalColumn.TO_DO,
    ) -> None:
        """Initialize the normalizer.

        Args:
            override_lookup: Returns the user-chosen column name for a normalized label, or None
            exact_map: Exact label table keyed by normalized label
            keyword_tiers: Ordered substring rules
            default: Column used when nothing matches
        """
        self.override_lookup = override_lookup
        self.exact_map = MappingProxyType({normalize_label(label): column for label, column in exact_map.items()})
        self.keyword_tiers = tuple(keyword_tiers)
        self.default = default
        self.unmatched: set[str] = set()

    def normalize(self, label: str | None) -> CanonicalColumn:
        """Return the canonical column for a status label."""
        return self.resolve(label).column

    def resolve(self, label: str | None) -> StatusMatch:
        """Return the canonical column for a status label and the cascade stage that chose it."""
        if not label or not label.strip():
            return StatusMatch(self.default, MatchSource.DEFAULT)

        normalized = normalize_label(label)

        exact = self.exact_map.get(normalized)
        if exact is not None:
            return StatusMatch(exact, MatchSource.EXACT)

        override = self._lookup_override(normalized)
        if override is not None:
            return StatusMatch(override, MatchSource.OVERRIDE)

        for tier in self.keyword_tiers:
            for rule in tier.rules:
                if rule.keyword in normalized:
                    return StatusMatch(rule.column, MatchSource.KEYWORD)

        logger.warning("Unmatched status label, placing task in default column", status=label, column=self.default.value)
        self.unmatched.add(label)
        return StatusMatch(self.default, MatchSource.DEFAULT)

    def reset_unmatched(self) -> None:
        """Forget the labels collected so far."""
        self.unmatched.clear()

    def _lookup_override(self, normalized: str) -> CanonicalColumn | None:
        if self.override_lookup is None:
            return None
        value = self.override_lookup(normalized)
        if not value:
            return None
        try:
            return CanonicalColumn(value.strip().upper())
        except ValueError:
            logger.warning("Ignoring status override with unknown column", status=normalized, column=value)
            return None
