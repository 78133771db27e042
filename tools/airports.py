"""City -> airport lookup and ranking of geocoded city candidates."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional

from models.errors import AirportNotFound
from models.tours import GeoPlace
from tools.activities import parse_places

CITY_TO_AIRPORT: Dict[str, str] = {
    "São Paulo": "GRU",
    "Rio de Janeiro": "GIG",
    "Brasília": "BSB",
    "Salvador": "SSA",
    "Fortaleza": "FOR",
    "Recife": "REC",
    "Porto Alegre": "POA",
    "Manaus": "MAO",
    "Belém": "BEL",
    "Curitiba": "CWB",
    "Florianópolis": "FLN",
    "Natal": "NAT",
    "Vitória": "VIX",
    "Cuiabá": "CGB",
    "Campo Grande": "CGR",
    "João Pessoa": "JPA",
    "Maceió": "MCZ",
    "Goiânia": "GYN",
}

MIN_CITY_POPULATION = 15000


def city_name(display_name: str) -> str:
    """'Rio de Janeiro, RJ' -> 'Rio de Janeiro'."""
    return (display_name or "").split(",")[0].strip()


def lookup_airport(display_name: str) -> Optional[str]:
    return CITY_TO_AIRPORT.get(city_name(display_name))


def resolve_airport(display_name: str) -> str:
    """IATA code for a city display name. Raises AirportNotFound."""
    code = lookup_airport(display_name)
    if not code:
        raise AirportNotFound(f"Airport not found for {city_name(display_name) or display_name!r}.")
    return code


def rank_city_candidates(
    raw_places: Iterable[Any],
    min_population: int = MIN_CITY_POPULATION,
) -> List[GeoPlace]:
    """Keep cities above ``min_population``, largest first, with IATA attached."""
    cities = [p for p in parse_places(raw_places) if p.population > min_population]
    for city in cities:
        city.iata = CITY_TO_AIRPORT.get(city.name)
    cities.sort(key=lambda p: p.population, reverse=True)
    return cities
