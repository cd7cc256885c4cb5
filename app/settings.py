import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    API_KEY: str = os.getenv("API_KEY", "")

    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")
    RQ_QUEUE_NAME: str = os.getenv("RQ_QUEUE_NAME", "analytics")

    CORS_ORIGINS: str = os.getenv("CORS_ORIGINS", "*")

    # Analytics delivery:
    # - "inline": append events to Redis in the request thread
    # - "rq": enqueue a job per event (worker writes it)
    # - "off": drop events (still logged)
    ANALYTICS_MODE: str = os.getenv("ANALYTICS_MODE", "inline").lower()
    ANALYTICS_EVENTS_KEY: str = os.getenv("ANALYTICS_EVENTS_KEY", "analytics:events")
    ANALYTICS_MAX_EVENTS: int = int(os.getenv("ANALYTICS_MAX_EVENTS", "10000"))

    # Verification
    # "exact": case-sensitive, surrounding whitespace trimmed
    # "relaxed": casefold + strip diacritics + collapse whitespace
    MOTHER_NAME_MATCH: str = os.getenv("MOTHER_NAME_MATCH", "exact").lower()
    # Lockout is a collaborator policy applied by the API layer; 0 disables it
    VERIFICATION_MAX_ATTEMPTS: int = int(os.getenv("VERIFICATION_MAX_ATTEMPTS", "0"))

    # Persistence
    PROTOCOL_MAX_RETRIES: int = int(os.getenv("PROTOCOL_MAX_RETRIES", "5"))
    SUBMISSION_TTL_DAYS: int = int(os.getenv("SUBMISSION_TTL_DAYS", "0"))
    LOCK_TTL_MS: int = int(os.getenv("LOCK_TTL_MS", "5000"))

    # Security & Privacy
    ENABLE_PII_REDACTION: bool = os.getenv("ENABLE_PII_REDACTION", "true").lower() == "true"
    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

settings = Settings()
