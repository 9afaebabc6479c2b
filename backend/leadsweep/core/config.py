from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    # Database
    DATABASE_URL: str

    # Redis (upstream error log); empty disables it
    REDIS_URL: str = ""

    # Google Places (directory search)
    GOOGLE_PLACES_API_KEY: str = ""
    GOOGLE_PLACES_BASE_URL: str = "https://maps.googleapis.com/maps/api/place"
    GOOGLE_TEXTSEARCH_UNIT_COST_USD: float = 0.0
    GOOGLE_DETAILS_UNIT_COST_USD: float = 0.0
    GOOGLE_MONTHLY_FREE_CREDIT_USD: float = 200.0

    # Anymail Search (email verification)
    ANYMAIL_SEARCH_API_KEY: str = ""
    ANYMAIL_BASE_URL: str = "https://api.anymailsearch.com/v1"
    ANYMAIL_UNIT_COST_USD: float = 0.01
    VERIFICATION_COST_BUFFER_MULTIPLIER: float = 1.15

    # AI Ark (contact enrichment credits)
    AI_ARK_CREDIT_COST_USD: float = 0.01
    AI_ARK_LEAD_ENRICHMENT_CREDITS: float = 1.0
    AI_ARK_DEEP_PROFILE_CREDITS: float = 2.0

    # Ads library lookup: "dataforseo" or "custom_http"
    ADS_LIBRARY_PROVIDER: str = ""
    ADS_LIBRARY_UNIT_COST_USD: float = 0.002
    ADS_LIBRARY_COST_BUFFER_MULTIPLIER: float = 1.1
    ADS_LIBRARY_API_URL: str = ""
    ADS_LIBRARY_API_KEY: str = ""
    DATAFORSEO_LOGIN: str = ""
    DATAFORSEO_PASSWORD: str = ""
    DATAFORSEO_BASE_URL: str = "https://api.dataforseo.com/v3"
    DATAFORSEO_LOCATION_CODE: int = 2840  # United States

    # Outbound HTTP
    HTTP_TIMEOUT_SECONDS: float = 30.0
    CRAWLER_TIMEOUT_SECONDS: float = 10.0
    CRAWLER_USER_AGENT: str = "LocalLeadFinderBot/1.0"

    # Batch coordination
    BATCH_LEASE_SECONDS: int = 900  # a crashed batch frees its lease after 15 minutes

    # Batch runner worker
    RUNNER_POLL_INTERVAL: int = 10  # Seconds between sweeps over active jobs
    RUNNER_MAX_BATCHES_PER_SWEEP: int = 50

    # App
    APP_NAME: str = "LeadSweep"
    DEBUG: bool = False

    class Config:
        env_file = ".env"
        case_sensitive = True


settings = Settings()
