"""Country residency rules (midnight rule vs. partial-day rule)."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping

from residency_roll.models import DEFAULT_THRESHOLD_DAYS


class RuleKind(enum.Enum):
    """How a country decides whether a calendar date counts."""

    # A day counts only if physically present at local 00:00.
    MIDNIGHT = "midnight"
    # A day counts if physically present for any part of it.
    PARTIAL_DAY = "partial_day"


@dataclass(frozen=True, slots=True)
class ResidencyRule:
    """Residency counting configuration for one country."""

    country_code: str
    country_name: str
    kind: RuleKind
    threshold_days: int = DEFAULT_THRESHOLD_DAYS
    # Days present < 24h while transiting between two foreign points are exempt.
    # Only flagged here; the counter does not implement the exclusion yet.
    has_transit_exception: bool = False


_BUILTIN_RULES: tuple[tuple[str, ResidencyRule], ...] = (
    ("Canada", ResidencyRule("CA", "Canada", RuleKind.MIDNIGHT)),
    ("United Kingdom", ResidencyRule("GB", "United Kingdom", RuleKind.MIDNIGHT)),
    ("UK", ResidencyRule("GB", "United Kingdom", RuleKind.MIDNIGHT)),
    ("Australia", ResidencyRule("AU", "Australia", RuleKind.MIDNIGHT)),
    ("New Zealand", ResidencyRule("NZ", "New Zealand", RuleKind.MIDNIGHT)),
    (
        "United States",
        ResidencyRule("US", "United States", RuleKind.PARTIAL_DAY, has_transit_exception=True),
    ),
    ("USA", ResidencyRule("US", "United States", RuleKind.PARTIAL_DAY, has_transit_exception=True)),
)


class RuleRegistry:
    """Case-insensitive lookup from country name to residency rule."""

    def __init__(self, rules: Mapping[str, ResidencyRule] | None = None) -> None:
        source = dict(_BUILTIN_RULES) if rules is None else dict(rules)
        self._rules: dict[str, ResidencyRule] = {k.strip().casefold(): v for k, v in source.items()}

    def rule_for(self, country_name: str) -> ResidencyRule:
        """Return the rule for a country; unknown countries get the default midnight rule."""

        rule = self._rules.get(country_name.strip().casefold())
        if rule is not None:
            return rule
        return ResidencyRule(country_code="", country_name=country_name, kind=RuleKind.MIDNIGHT)

    def with_overrides(self, overrides: Mapping[str, ResidencyRule]) -> RuleRegistry:
        """Return a new registry with extra or replacement rules."""

        merged = dict(self._rules)
        merged.update({k.strip().casefold(): v for k, v in overrides.items()})
        return RuleRegistry(merged)

    def __contains__(self, country_name: object) -> bool:
        return isinstance(country_name, str) and country_name.strip().casefold() in self._rules

    def __len__(self) -> int:
        return len(self._rules)


def _rule_from_dict(name: str, raw: Any) -> ResidencyRule:
    if not isinstance(raw, dict):
        raise ValueError(f"规则格式错误：{name!r} 应为对象，实际为 {type(raw).__name__}")
    try:
        kind = RuleKind(str(raw.get("kind", RuleKind.MIDNIGHT.value)).lower())
    except ValueError as exc:
        choices = ", ".join(k.value for k in RuleKind)
        raise ValueError(f"规则 {name!r} 的 kind 无效：{raw.get('kind')!r}（可用：{choices}）") from exc
    try:
        threshold = int(raw.get("threshold_days", DEFAULT_THRESHOLD_DAYS))
    except (TypeError, ValueError) as exc:
        raise ValueError(f"规则 {name!r} 的 threshold_days 无效：{raw.get('threshold_days')!r}") from exc
    if threshold <= 0:
        raise ValueError(f"规则 {name!r} 的 threshold_days 必须为正数：{threshold}")
    return ResidencyRule(
        country_code=str(raw.get("country_code", "") or ""),
        country_name=str(raw.get("country_name", name) or name),
        kind=kind,
        threshold_days=threshold,
        has_transit_exception=bool(raw.get("has_transit_exception", False)),
    )


def parse_rules(payload: Mapping[str, Any]) -> dict[str, ResidencyRule]:
    """Parse a ``{country: {kind, threshold_days, ...}}`` mapping into rules.

    Raises:
        ValueError: If an entry is malformed.
    """

    return {name: _rule_from_dict(name, raw) for name, raw in payload.items()}


def load_rules(path: str | Path, base: RuleRegistry | None = None) -> RuleRegistry:
    """Load rule overrides from a JSON file on top of ``base`` (built-ins by default).

    Raises:
        ValueError: If the file is not a JSON object or an entry is malformed.
    """

    p = Path(path)
    try:
        payload = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ValueError(f"规则文件不是合法JSON：{p}") from exc
    if not isinstance(payload, dict):
        raise ValueError(f"规则文件顶层应为对象：{p}")
    return (base or DEFAULT_REGISTRY).with_overrides(parse_rules(payload))


def describe(rule: ResidencyRule) -> str:
    """Short human label, e.g. "Midnight" or "PartialDay"."""

    return "Midnight" if rule.kind is RuleKind.MIDNIGHT else "PartialDay"


DEFAULT_REGISTRY = RuleRegistry()


def rule_for(country_name: str) -> ResidencyRule:
    """Look up a rule in the built-in registry."""

    return DEFAULT_REGISTRY.rule_for(country_name)
