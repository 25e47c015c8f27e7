"""
Plain-text mention markup: @[Display Name](id:type)

Used where a mention has to survive outside the rich-text document model
(stored post text, notification previews).
"""

from models.mention import MentionNode
from models.organization import ORGANIZATION_TYPE_LABELS
from typing import Dict, List, Tuple
import re

MENTION_PATTERN = re.compile(r"@\[([^\]]+)\]\(([^:)]+):([^)]+)\)")


def format_mention(node: MentionNode) -> str:
    return f"@[{node.label}]({node.id}:{node.type})"


def parse_mentions(text: str) -> List[Dict]:
    """Find every mention in text

    Returns:
        List of dicts with display_name, id, type, full_match, start, end
    """
    if not text:
        return []

    return [
        {
            "display_name": match.group(1),
            "id": match.group(2),
            "type": match.group(3),
            "full_match": match.group(0),
            "start": match.start(),
            "end": match.end(),
        }
        for match in MENTION_PATTERN.finditer(text)
    ]


def strip_mention_markup(text: str) -> str:
    """Replace @[Name](id:type) with @Name"""
    if not text:
        return ""
    return MENTION_PATTERN.sub(lambda m: f"@{m.group(1)}", text)


def extract_mentioned_user_ids(text: str) -> List[str]:
    return [m["id"] for m in parse_mentions(text) if m["type"] == "user"]


def extract_mentioned_organizations(text: str) -> List[Dict]:
    """Organization mentions with their "{type}-{id}" id split apart"""
    organizations = []
    for mention in parse_mentions(text):
        if mention["type"] != "organization":
            continue
        org_type, org_id = split_organization_id(mention["id"])
        organizations.append(
            {"id": org_id, "type": org_type, "display_name": mention["display_name"]}
        )
    return organizations


def split_organization_id(mention_id: str) -> Tuple[str, str]:
    """Split "{type}-{id}" into (type, id)

    Known types are matched longest first, so hyphenated types such as
    "for-profit" and hyphenated ids such as UUIDs both split correctly.
    """
    for org_type in sorted(ORGANIZATION_TYPE_LABELS, key=len, reverse=True):
        prefix = f"{org_type}-"
        if mention_id.startswith(prefix):
            return org_type, mention_id[len(prefix):]
    org_type, _, org_id = mention_id.partition("-")
    return org_type, org_id
