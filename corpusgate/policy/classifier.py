"""
Content classification.

Classification is explicit: a content item's category comes from its
declared metadata and nothing else. Missing or unrecognized values are
errors, never a default category.
"""

from typing import Callable, Optional

from corpusgate.core.exceptions import UnclassifiedContent, ValidationError
from corpusgate.core.models import Category, ContentItem, LicenseState


def classify(item: ContentItem) -> Category:
    """
    Return the item's category.

    Raises:
        UnclassifiedContent: category missing or not one of the known values.
    """
    if item.category is None or item.category == "":
        raise UnclassifiedContent(
            "Content item declares no category",
            {"content_id": item.content_id},
        )
    try:
        return Category.parse(item.category)
    except ValidationError as exc:
        raise UnclassifiedContent(
            f"Content item declares unrecognized category {item.category!r}",
            {"content_id": item.content_id},
        ) from exc


def classify_license(
    item:     ContentItem,
    category: Category,
    fallback: Optional[Callable[[Category], LicenseState]] = None,
) -> LicenseState:
    """
    Return the item's license state.

    A declared state wins. A missing one is taken from ``fallback`` (the
    tracked state of the category) and otherwise is ``no_permission``.

    Raises:
        UnclassifiedContent: declared license state is not a known value.
    """
    if item.license_state is None or item.license_state == "":
        if fallback is not None:
            return fallback(category)
        return LicenseState.NO_PERMISSION
    try:
        return LicenseState.parse(item.license_state)
    except ValidationError as exc:
        raise UnclassifiedContent(
            f"Content item declares unrecognized license state {item.license_state!r}",
            {"content_id": item.content_id},
        ) from exc


def effective_license_state(
    item:     ContentItem,
    fallback: Optional[Callable[[Category], LicenseState]] = None,
) -> Optional[LicenseState]:
    """The license state a decision would use, or None if the item is unclassifiable."""
    try:
        return classify_license(item, classify(item), fallback)
    except UnclassifiedContent:
        return None
