"""Auto-reply data models — immutable keyword rules."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class ReplyRule:
    """Reply with ``reply`` when any keyword occurs in an inbound message."""

    keywords: tuple[str, ...]
    reply: str
    reason: str = ""

    def matches(self, body: str) -> bool:
        text = body.lower()
        return any(keyword.lower() in text for keyword in self.keywords)


@dataclass(frozen=True)
class ReplyRules:
    """An ordered rule set. First-match-wins."""

    name: str
    rules: tuple[ReplyRule, ...] = ()

    def reply_for(self, body: str) -> ReplyRule | None:
        if not body:
            return None
        for rule in self.rules:
            if rule.matches(body):
                return rule
        return None


DEFAULT_RULES = ReplyRules(
    name="default",
    rules=(
        ReplyRule(
            keywords=("signature", "engagement"),
            reply=(
                "🔐 Your signature request has been received. "
                "A link will be sent to you shortly."
            ),
            reason="Signature request acknowledgement",
        ),
    ),
)
