"""Hotel normalization for the hotels4 ``properties/v2/list`` payload."""
from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, List, Mapping, Optional

from models.common import Money, NOT_AVAILABLE, parse_amount
from models.errors import NoResultsFound, NormalizationFailure
from models.hotels import MAX_AMENITIES, HotelOption
from tools.flights import synthesize_id

logger = logging.getLogger(__name__)

MAX_HOTEL_RESULTS = 6
DEFAULT_HOTEL_IMAGE = "icone-hotel.jpg"
RATING_SCALE = Decimal("5")


def _dig(node: Any, *path: str) -> Any:
    for key in path:
        if not isinstance(node, Mapping):
            return None
        node = node.get(key)
    return node


def extract_properties(payload: Any) -> List[Any]:
    properties = _dig(payload, "data", "propertySearch", "properties")
    return list(properties) if isinstance(properties, list) else []


def _amenities(raw: Any) -> List[str]:
    names: List[str] = []
    for amenity in raw or []:
        name = amenity.get("name") if isinstance(amenity, Mapping) else amenity
        if name:
            names.append(str(name))
        if len(names) >= MAX_AMENITIES:
            break
    return names


def _rating(raw: Any) -> Decimal:
    """hotels4 review scores run 0-10; scores above 5 are halved onto the 0-5 scale."""
    score = parse_amount(raw)
    if score > RATING_SCALE:
        score = score / 2
    return score


def _images(raw: Any, placeholder: str) -> List[str]:
    urls = []
    for image in raw or []:
        url = _dig(image, "image", "url")
        if url:
            urls.append(str(url))
    return urls or [placeholder]


def normalize_hotel(
    item: Any,
    currency: str = "BRL",
    placeholder_image: str = DEFAULT_HOTEL_IMAGE,
) -> HotelOption:
    """Normalize one property. Numeric strings that fail to parse become 0."""
    if not isinstance(item, Mapping):
        raise NormalizationFailure(f"hotel item is not an object: {type(item).__name__}")

    amount = parse_amount(_dig(item, "price", "lead", "amount"))
    if amount < 0:
        raise NormalizationFailure(f"negative nightly price: {amount}")
    try:
        return HotelOption(
            id=str(item.get("id") or synthesize_id(item, prefix="hotel")),
            name=str(item.get("name") or NOT_AVAILABLE),
            rating_score=_rating(_dig(item, "reviews", "score")),
            price_per_night=Money(
                amount=amount,
                currency=_dig(item, "price", "lead", "currencyInfo", "code") or currency,
            ),
            address=str(_dig(item, "location", "address", "addressLine") or ""),
            description=str(_dig(item, "summary", "location") or ""),
            amenities=_amenities(item.get("amenities")),
            images=_images(_dig(item, "propertyGallery", "images"), placeholder_image),
        )
    except (TypeError, ValueError) as exc:
        raise NormalizationFailure(str(exc)) from exc


def normalize_hotels(
    payload: Optional[Any],
    currency: str = "BRL",
    limit: int = MAX_HOTEL_RESULTS,
    placeholder_image: str = DEFAULT_HOTEL_IMAGE,
) -> List[HotelOption]:
    """
    Normalize the first ``limit`` properties of a hotel payload.

    Raises NoResultsFound when the provider returned no properties.
    """
    properties = extract_properties(payload)
    if not properties:
        raise NoResultsFound(
            "No hotels were found for these dates. Try other dates or another destination.",
            slot="hotels",
        )

    options: List[HotelOption] = []
    for index, item in enumerate(properties[:limit]):
        try:
            options.append(normalize_hotel(item, currency, placeholder_image))
        except NormalizationFailure as exc:
            logger.warning("Dropping hotel item %d: %s", index, exc.user_message)

    if not options:
        raise NoResultsFound(
            "No hotels were found for these dates. Try other dates or another destination.",
            slot="hotels",
        )
    return options
