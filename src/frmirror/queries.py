"""
Query Loop sort variations for articles.

Query blocks carry a ``__frmCustomFieldFilter`` attribute naming the meta
field to sort by. The filters here rewrite the query vars built for those
blocks (front end) and for the editor's REST listing.
"""

from __future__ import annotations

from typing import Any, Dict, List, Mapping, Optional

FILTER_ATTRIBUTE = "__frmCustomFieldFilter"

MEETING_DATE_KEY = "_article_meeting_date"
VIEW_COUNT_KEY = "_article_view_count"

# Attribute values understood by the filters
HANDLED_FILTERS = ("meeting_date", MEETING_DATE_KEY, VIEW_COUNT_KEY)


QUERY_VARIATIONS: List[Dict[str, Any]] = [
    {
        "name": "filtered-by-meeting-date",
        "title": "Query: Filtered by Meeting Date",
        "description": "Displays articles filtered by meeting_date custom field.",
        "keywords": ["meeting date", "filter", "articles", "date"],
        "scope": ["inserter", "block"],
        "isDefault": False,
        "attributes": {
            "query": {
                "postType": "article",
                "perPage": 10,
                "offset": 0,
                "order": "desc",
                "inherit": False,
                FILTER_ATTRIBUTE: "meeting_date",
            },
            FILTER_ATTRIBUTE: "meeting_date",
        },
    },
    {
        "name": "filtered-by-view-count",
        "title": "Query: Sorted by View Count",
        "description": "Displays articles sorted by view count (most viewed first).",
        "keywords": ["views", "popular", "view count", "articles"],
        "scope": ["inserter", "block"],
        "isDefault": False,
        "attributes": {
            "query": {
                "postType": "article",
                "perPage": 10,
                "offset": 0,
                "order": "desc",
                "inherit": False,
                FILTER_ATTRIBUTE: VIEW_COUNT_KEY,
            },
            FILTER_ATTRIBUTE: VIEW_COUNT_KEY,
        },
    },
]


def _queries_articles(post_type: Any) -> bool:
    if isinstance(post_type, (list, tuple)):
        return "article" in post_type
    return post_type == "article"


def block_filter(block: Mapping[str, Any]) -> Optional[str]:
    """Filter attribute from block context, block attributes or parsed attrs."""
    for source in ("context", "attributes"):
        value = (block.get(source) or {}).get(FILTER_ATTRIBUTE)
        if value:
            return value
    parsed = block.get("parsed_block") or {}
    return (parsed.get("attrs") or {}).get(FILTER_ATTRIBUTE) or None


def _apply_sort(query: Dict[str, Any], custom_filter: str, order: str = "DESC") -> Dict[str, Any]:
    if custom_filter == VIEW_COUNT_KEY:
        meta_key, orderby = VIEW_COUNT_KEY, "meta_value_num"
    else:
        meta_key, orderby = MEETING_DATE_KEY, "meta_value"

    query["meta_key"] = meta_key
    query["meta_query"] = [{"key": meta_key, "compare": "EXISTS"}]
    query["orderby"] = orderby
    query["order"] = order
    return query


def filter_query_vars(
    query: Mapping[str, Any],
    block: Mapping[str, Any],
    default_filter: str = MEETING_DATE_KEY,
) -> Dict[str, Any]:
    """
    Sort article Query Loop vars by the block's custom field filter.

    Blocks without a filter attribute use ``default_filter``; an empty
    default leaves them untouched. Filters other than meeting date and view
    count are ignored.
    """
    query = dict(query)
    if not _queries_articles(query.get("post_type", "")):
        return query

    custom_filter = block_filter(block) or default_filter
    if not custom_filter or custom_filter not in HANDLED_FILTERS:
        return query

    return _apply_sort(query, custom_filter)


def filter_rest_query(
    args: Mapping[str, Any],
    params: Mapping[str, Any],
    default_filter: str = MEETING_DATE_KEY,
) -> Dict[str, Any]:
    """
    Editor-side equivalent of `filter_query_vars` for REST article listings.

    Only listings that page (``per_page`` set) come from Query Loop blocks.
    """
    args = dict(args)
    if not params.get("per_page"):
        return args

    custom_filter = params.get(FILTER_ATTRIBUTE) or default_filter
    if not custom_filter or custom_filter not in HANDLED_FILTERS:
        return args

    return _apply_sort(args, custom_filter, order=params.get("order") or "DESC")
