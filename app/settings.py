from pydantic import BaseModel
import os


class Settings(BaseModel):
    env: str = os.getenv("ENV", "dev")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # Fixed display currency; every price is summed in it
    display_currency: str = os.getenv("DISPLAY_CURRENCY", "BRL")

    # Providers
    flights_function_path: str = os.getenv(
        "FLIGHTS_FUNCTION_PATH", "/functions/v1/search-flights"
    )
    supabase_url: str = os.getenv("SUPABASE_URL", "http://localhost:54321")
    supabase_anon_key: str = os.getenv("SUPABASE_ANON_KEY", "")
    rapidapi_key: str = os.getenv("RAPIDAPI_KEY", "")
    rapidapi_hotels_host: str = os.getenv("RAPIDAPI_HOTELS_HOST", "hotels4.p.rapidapi.com")
    geonames_username: str = os.getenv("GEONAMES_USERNAME", "demo")
    geonames_country: str = os.getenv("GEONAMES_COUNTRY", "BR")
    google_maps_api_key: str = os.getenv("GOOGLE_MAPS_API_KEY", "")

    # Transport-level timeout; the engine itself never times out a search
    provider_timeout_seconds: float = float(os.getenv("PROVIDER_TIMEOUT_SECONDS", "30"))

    # Live sessions untouched for this long are dropped
    session_idle_seconds: float = float(os.getenv("SESSION_IDLE_SECONDS", "3600"))

    # Bounded result sizes
    max_flight_results: int = 10
    max_hotel_results: int = 6
    max_nearby_places: int = 20
    nearby_radius_km: int = 30
    geocode_min_population: int = 15000
    geocode_max_rows: int = 10

    hotel_placeholder_image: str = os.getenv("HOTEL_PLACEHOLDER_IMAGE", "icone-hotel.jpg")


settings = Settings()
