"""
Keyword topic classifier for employment questions.

Total and deterministic: the first matching rule wins and anything
unmatched maps to Topic.GENERAL.
"""

from typing import Optional, Union

from .models import Topic

# Order matters: "statutory sick pay for maternity" resolves to Maternity/Paternity
TOPIC_KEYWORDS: tuple[tuple[tuple[str, ...], Topic], ...] = (
    (("pension",), Topic.PENSIONS),
    (("maternity", "paternity"), Topic.MATERNITY_PATERNITY),
    (("holiday", "annual leave"), Topic.HOLIDAY),
    (("sick", "ssp"), Topic.SICK),
    (("tupe",), Topic.TUPE),
    (("visa", "right to work"), Topic.VISAS),
    (("redundancy",), Topic.REDUNDANCY),
    (("disciplinary", "dismissal"), Topic.DISCIPLINARY),
    (("working time", "minimum wage"), Topic.WORKING_TIME),
    (("discrimination", "equality"), Topic.EQUALITY),
    (("health", "safety"), Topic.HEALTH_SAFETY),
    (("contract", "employment"), Topic.EMPLOYMENT),
)

DEFAULT_TOPIC = Topic.GENERAL


def classify_topic(query: str) -> Topic:
    """Map a free-text query to one topic by substring keyword match."""
    lowered = (query or "").lower()
    for keywords, topic in TOPIC_KEYWORDS:
        if any(keyword in lowered for keyword in keywords):
            return topic
    return DEFAULT_TOPIC


def resolve_topic(query: str, topic: Optional[Union[Topic, str]] = None) -> Topic:
    """Explicit topic when given, otherwise the classified one."""
    if topic:
        return topic if isinstance(topic, Topic) else Topic(topic)
    return classify_topic(query)
