"""Load auto-reply rule sets from YAML files."""

from __future__ import annotations

from pathlib import Path

import yaml

from sessionrelay.replies.models import DEFAULT_RULES, ReplyRule, ReplyRules


def load_rules(path: str | Path) -> ReplyRules:
    """Load a rule set from a YAML file path."""
    text = Path(path).read_text(encoding="utf-8")
    return load_rules_from_string(text)


def load_rules_from_string(text: str) -> ReplyRules:
    data = yaml.safe_load(text)
    if not isinstance(data, dict):
        raise ValueError("Auto-reply YAML must be a mapping")
    return ReplyRules(
        name=data.get("name", "unnamed"),
        rules=tuple(_parse_rules(data.get("rules", []))),
    )


def load_rules_or_default(path: str | Path | None) -> ReplyRules:
    if path is None:
        return DEFAULT_RULES
    return load_rules(path)


def _parse_rules(rules_data: list) -> list[ReplyRule]:
    rules: list[ReplyRule] = []
    for r in rules_data:
        if not isinstance(r, dict):
            continue
        keywords = r.get("match", ())
        if isinstance(keywords, str):
            keywords = (keywords,)
        if not keywords or not r.get("reply"):
            raise ValueError(f"Auto-reply rule needs 'match' and 'reply': {r!r}")
        rules.append(
            ReplyRule(
                keywords=tuple(str(k) for k in keywords),
                reply=str(r["reply"]),
                reason=r.get("reason", ""),
            )
        )
    return rules
