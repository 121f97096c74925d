"""
Configuration de l'application / Application configuration.
Utilise pydantic-settings pour charger depuis .env ou variables d'environnement.
"""

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Application
    APP_NAME: str = "Routezy"
    APP_VERSION: str = "0.1.0"
    DEBUG: bool = True

    # Database - SQLite par défaut pour le développement
    # Database - SQLite by default for development
    DATABASE_URL: str = "sqlite+aiosqlite:///./routezy.db"

    # CORS - origines autorisées / allowed origins
    CORS_ORIGINS: list[str] = ["http://localhost:5173", "http://localhost:3000", "http://localhost:8080"]

    # JWT Authentication
    SECRET_KEY: str = "change-me-in-production"
    JWT_ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30
    REFRESH_TOKEN_EXPIRE_DAYS: int = 7

    # Superadmin initial / Initial superadmin
    SUPERADMIN_EMAIL: str = "admin@routezy.app"
    SUPERADMIN_PASSWORD: str = "admin"

    # Rate Limiting
    RATE_LIMIT_LOGIN: str = "5/minute"
    RATE_LIMIT_REGISTER: str = "3/minute"
    RATE_LIMIT_LOCATION: str = "30/minute"
    RATE_LIMIT_DEFAULT: str = "60/minute"

    # Emissions / Emissions defaults
    DEFAULT_FUEL_EFFICIENCY_LPK: float = 12.0  # L/100km
    DEFAULT_CO2_PER_KM: float = 0.25
    CARBON_SAVED_PER_KM: float = 0.15
    DEFAULT_DELIVERY_DISTANCE_KM: float = 50.0
    ECO_SCORE_MAX_RETRIES: int = 3

    # Facturation / Billing
    INVOICE_TAX_RATE: float = 0.18
    DEFAULT_SHIPMENT_COST: float = 250.0
    FALLBACK_BASE_FARE: float = 50.0
    FALLBACK_COST_PER_KM: float = 5.0

    # Paiement Razorpay / Razorpay payments
    RAZORPAY_KEY_ID: str = ""
    RAZORPAY_KEY_SECRET: str = ""
    RAZORPAY_API_URL: str = "https://api.razorpay.com/v1"
    PAYMENT_CURRENCY: str = "INR"

    # Geocodage / Geocoding (Nominatim compatible)
    GEOCODING_URL: str = "https://nominatim.openstreetmap.org"
    GEOCODING_COUNTRY_CODE: str = "in"
    GEOCODING_USER_AGENT: str = "routezy-backend/0.1"
    GEOCODING_TIMEOUT_SECONDS: float = 5.0

    # Assistant IA / AI assistant (OpenAI compatible gateway)
    AI_GATEWAY_URL: str = "https://ai.gateway.lovable.dev/v1/chat/completions"
    AI_API_KEY: str = ""
    AI_MODEL: str = "google/gemini-3-flash-preview"
    AI_TIMEOUT_SECONDS: float = 60.0

    # Temps reel / Realtime feed
    REALTIME_QUEUE_SIZE: int = 256

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
