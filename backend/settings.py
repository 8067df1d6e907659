from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = "AgriGuru API"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    # CORS: "*" for dev; in production set to comma-separated origins, e.g. "https://agriguru.example.in"
    cors_origins: str = "*"

    # Static catalogs: path relative to backend root, or absolute
    soil_centers_path: str = "data/soil_testing_centers.json"
    mandis_path: str = "data/mandis.json"
    translations_path: str = "data/translations.json"
    default_language: str = "en"

    # Proximity search bounds (km)
    default_radius_km: float = 50.0
    max_radius_km: float = 2500.0
    mandi_max_radius_km: float = 200.0
    max_results: int = 100

    rate_limit: str = "100/minute"  # slowapi limit string, applied per client IP

    # Optional API key auth. When enabled, requests must include X-API-Key or Authorization: Bearer <key>.
    api_key_required: bool = False
    api_keys: str = ""  # Comma-separated list of valid keys (no spaces). Example: API_KEYS=key1,key2

    openweather_api_key: str = ""  # Enables /api/location/* (reverse and forward geocoding)


def get_settings() -> Settings:
    return Settings()
