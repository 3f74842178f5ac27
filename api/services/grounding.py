"""
Typed store references from the planning call's location grounding
"""
from dataclasses import dataclass
from typing import Iterable, List, Optional
from urllib.parse import quote_plus

ALL_CATEGORIES = "All"

MAPS_SEARCH_URL = "https://www.google.com/maps/search/?api=1&query="


@dataclass(frozen=True)
class GroundingChunk:
    """One retrieval chunk as returned by the remote service. Any field may be missing."""

    title: Optional[str] = None
    uri: Optional[str] = None
    subtitle: Optional[str] = None


@dataclass(frozen=True)
class GroundingReference:
    """A store or place suggestion with a usable title and link."""

    title: str
    uri: str
    subtitle: Optional[str] = None


def extract_grounding_references(chunks: Optional[Iterable[GroundingChunk]]) -> List[GroundingReference]:
    """
    Keep chunks carrying both a title and a uri, in order, one per uri.
    """
    references: List[GroundingReference] = []
    seen_uris = set()
    for chunk in chunks or []:
        title = (chunk.title or "").strip()
        uri = (chunk.uri or "").strip()
        if not title or not uri or uri in seen_uris:
            continue
        seen_uris.add(uri)
        subtitle = (chunk.subtitle or "").strip() or None
        references.append(GroundingReference(title=title, uri=uri, subtitle=subtitle))
    return references


def categorize_store(title: str) -> str:
    """Rough store category from its name."""
    lower = title.lower()
    if "furniture" in lower:
        return "Furniture"
    if any(
        keyword in lower
        for keyword in ("decor", "home goods", "pottery", "crate", "barn", "world market")
    ):
        return "Home Decor"
    if any(keyword in lower for keyword in ("department", "target", "walmart", "kohls")):
        return "Department Store"
    return "General"


def available_categories(references: Iterable[GroundingReference]) -> List[str]:
    """Categories present in the references, in first-seen order, after "All"."""
    categories = [ALL_CATEGORIES]
    for reference in references:
        category = categorize_store(reference.title)
        if category not in categories:
            categories.append(category)
    return categories


def filter_by_category(references: Iterable[GroundingReference], category: str) -> List[GroundingReference]:
    if category == ALL_CATEGORIES:
        return list(references)
    return [reference for reference in references if categorize_store(reference.title) == category]


def build_map_search_url(reference: GroundingReference) -> str:
    """Google Maps search link for the store's title and address line."""
    query = f"{reference.title}, {reference.subtitle or ''}"
    return MAPS_SEARCH_URL + quote_plus(query)
