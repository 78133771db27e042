"""
Flight normalization.

Two provider shapes end up as the same FlightOption:

* legacy: ``{"best_flights": [{"departure_token", "price", "flights": [...]}],
  "other_flights": [...]}`` where each leg has ``departure_airport``/
  ``arrival_airport`` objects and a duration in minutes;
* segmented: ``{"flights": [{"flight_id", "price", "segments"?: [...]}]}``
  where segment fields are optional and may also sit flat on the item.
"""
from __future__ import annotations

import hashlib
import json
import logging
from typing import Any, Dict, List, Mapping, Optional

from models.common import NOT_AVAILABLE, Money, parse_amount
from models.errors import NoResultsFound, NormalizationFailure
from models.flights import FlightOption, FlightSegment

logger = logging.getLogger(__name__)

MAX_FLIGHT_RESULTS = 10


def duration_label(value: Any) -> str:
    """95 -> '1h35'; strings are kept as the provider wrote them."""
    if value is None or value == "":
        return NOT_AVAILABLE
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        minutes = int(value)
        return f"{minutes // 60}h{minutes % 60:02d}"
    return str(value)


def _text(value: Any) -> str:
    if value is None:
        return NOT_AVAILABLE
    text = str(value).strip()
    return text or NOT_AVAILABLE


def synthesize_id(item: Mapping[str, Any], prefix: str = "flight") -> str:
    """Stable id for items whose provider gave none: hash of the content."""
    digest = hashlib.sha1(
        json.dumps(item, sort_keys=True, default=str).encode("utf-8")
    ).hexdigest()
    return f"{prefix}-{digest[:12]}"


def _price(raw: Any, currency: str) -> Money:
    if isinstance(raw, Mapping):
        amount = parse_amount(raw.get("amount"))
        currency = raw.get("currency") or currency
    else:
        amount = parse_amount(raw)
    if amount < 0:
        raise NormalizationFailure(f"negative price: {amount}")
    return Money(amount=amount, currency=currency)


# ---------------------------------------------------------------------------
# Legacy shape
# ---------------------------------------------------------------------------


def _legacy_segment(leg: Mapping[str, Any]) -> FlightSegment:
    departure = leg.get("departure_airport") or {}
    arrival = leg.get("arrival_airport") or {}
    return FlightSegment(
        airline_name=_text(leg.get("airline")),
        flight_number=_text(leg.get("flight_number")),
        departure_airport=_text(departure.get("id")),
        arrival_airport=_text(arrival.get("id")),
        departure_time=_text(departure.get("time")),
        arrival_time=_text(arrival.get("time")),
        duration_label=duration_label(leg.get("duration")),
    )


def _normalize_legacy(item: Mapping[str, Any], currency: str) -> FlightOption:
    legs = item.get("flights") or []
    segments = [_legacy_segment(leg) for leg in legs if isinstance(leg, Mapping)]
    return FlightOption(
        id=str(item.get("departure_token") or item.get("booking_token") or synthesize_id(item)),
        segments=segments,
        price=_price(item.get("price"), currency),
    )


# ---------------------------------------------------------------------------
# Segmented shape
# ---------------------------------------------------------------------------


def _endpoint(seg: Mapping[str, Any], key: str) -> Dict[str, str]:
    """Airport code and time for 'departure' or 'arrival', flat or nested."""
    node = seg.get(key) or {}
    if not isinstance(node, Mapping):
        node = {"time": node}
    airport = node.get("airport") or {}
    if not isinstance(airport, Mapping):
        airport = {"code": airport}
    code = airport.get("code") or node.get("iata") or seg.get(f"{key}_airport")
    time = seg.get(f"{key}_time") or node.get("time") or node.get("scheduled")
    return {"code": _text(code), "time": _text(time)}


def segment_from_mapping(seg: Mapping[str, Any]) -> FlightSegment:
    """Segment from the nested provider form or from a canonical snapshot."""
    airline = seg.get("airline")
    if isinstance(airline, Mapping):
        airline = airline.get("name")
    airline = airline or seg.get("airline_name")

    flight_number = seg.get("flight_number")
    if not flight_number and isinstance(seg.get("flight"), Mapping):
        flight_number = seg["flight"].get("number")

    departure = _endpoint(seg, "departure")
    arrival = _endpoint(seg, "arrival")
    return FlightSegment(
        airline_name=_text(airline),
        flight_number=_text(flight_number),
        departure_airport=departure["code"],
        arrival_airport=arrival["code"],
        departure_time=departure["time"],
        arrival_time=arrival["time"],
        duration_label=duration_label(seg.get("duration") or seg.get("duration_label")),
    )


_FLAT_SEGMENT_KEYS = ("airline", "airline_name", "flight", "flight_number", "departure", "arrival")


def _normalize_segmented(item: Mapping[str, Any], currency: str) -> FlightOption:
    raw_segments = item.get("segments")
    if raw_segments:
        segments = [segment_from_mapping(s) for s in raw_segments if isinstance(s, Mapping)]
    elif any(item.get(k) for k in _FLAT_SEGMENT_KEYS):
        segments = [segment_from_mapping(item)]
    else:
        segments = []
    return FlightOption(
        id=str(item.get("flight_id") or item.get("id") or synthesize_id(item)),
        segments=segments,
        price=_price(item.get("price"), currency),
    )


# ---------------------------------------------------------------------------
# Entry points
# ---------------------------------------------------------------------------


def is_legacy_item(item: Mapping[str, Any]) -> bool:
    return "departure_token" in item or "flights" in item


def normalize_flight(item: Any, currency: str = "BRL") -> FlightOption:
    """Normalize one provider item. Raises NormalizationFailure."""
    if not isinstance(item, Mapping):
        raise NormalizationFailure(f"flight item is not an object: {type(item).__name__}")
    try:
        if is_legacy_item(item):
            return _normalize_legacy(item, currency)
        return _normalize_segmented(item, currency)
    except NormalizationFailure:
        raise
    except (TypeError, ValueError, AttributeError) as exc:
        raise NormalizationFailure(str(exc)) from exc


def _extract_items(payload: Any) -> List[Any]:
    if isinstance(payload, list):
        return payload
    if not isinstance(payload, Mapping):
        return []
    legacy = list(payload.get("best_flights") or []) + list(payload.get("other_flights") or [])
    if legacy:
        return legacy
    return list(payload.get("flights") or payload.get("data") or [])


def normalize_flights(
    payload: Optional[Any],
    currency: str = "BRL",
    limit: int = MAX_FLIGHT_RESULTS,
) -> List[FlightOption]:
    """
    Normalize a whole flight payload.

    Malformed items are dropped and logged. Raises NoResultsFound when the
    payload is absent, empty, or nothing in it survived normalization.
    """
    items = _extract_items(payload)
    if not items:
        raise NoResultsFound("No flights were found for this route and date.", slot="flights")

    options: List[FlightOption] = []
    seen = set()
    for index, item in enumerate(items):
        try:
            option = normalize_flight(item, currency)
        except NormalizationFailure as exc:
            logger.warning("Dropping flight item %d: %s", index, exc.user_message)
            continue
        if option.id in seen:
            continue
        seen.add(option.id)
        options.append(option)
        if len(options) >= limit:
            break

    if not options:
        raise NoResultsFound("No flights were found for this route and date.", slot="flights")
    return options
