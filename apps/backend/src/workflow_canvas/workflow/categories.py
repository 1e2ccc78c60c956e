from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Sequence

GENERAL_CATEGORY = "General"
TRIGGER_CATEGORY = "Trigger"

_WORD_START = re.compile(r"\b\w")


@dataclass(frozen=True)
class CategoryRule:
    """Maps tool names to a toolbox category by name prefix or keyword."""

    category: str
    prefix: str | None = None
    keywords: tuple[str, ...] = field(default_factory=tuple)

    def matches(self, tool_name: str) -> bool:
        lower_name = tool_name.lower()
        if self.prefix and lower_name.startswith(self.prefix):
            return True
        return any(kw in lower_name for kw in self.keywords)


DEFAULT_CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        "Fintech",
        keywords=("payment", "mpesa", "airtel", "t_kash", "equity_jenga", "flutterwave", "paystack"),
    ),
    CategoryRule("E-commerce", keywords=("ecommerce", "jumia", "kilimall", "jiji")),
    CategoryRule("Accounting", keywords=("accounting", "kra", "itax", "quickbooks", "xero")),
    CategoryRule("Logistics", keywords=("logistics", "amitruck", "lori", "sendy")),
    CategoryRule("Slack", prefix="slack_"),
    CategoryRule("HubSpot", prefix="hubspot_"),
    CategoryRule("Analytics", prefix="ga4_"),
    CategoryRule("Communication", prefix="whatsapp_"),
    CategoryRule("File Management", prefix="file_"),
    CategoryRule("Web Tools", prefix="web_"),
    CategoryRule("Content Creation", prefix="content_"),
    CategoryRule("Advanced", prefix="advanced_"),
    CategoryRule("Enterprise", prefix="enterprise_"),
)


def category_of(tool_name: str, rules: Sequence[CategoryRule]) -> str:
    """Return the category of the first rule matching ``tool_name``.

    Rules are checked in order, so a keyword rule listed first wins over a
    later prefix rule. Falls back to ``General``.
    """
    for rule in rules:
        if rule.matches(tool_name):
            return rule.category
    return GENERAL_CATEGORY


def humanize_tool_name(tool_name: str) -> str:
    """``send_slack_message`` -> ``Send Slack Message``."""
    return _WORD_START.sub(lambda m: m.group(0).upper(), tool_name.replace("_", " "))
