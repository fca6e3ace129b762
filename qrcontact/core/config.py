from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import List

class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    APP_ENV: str = "local"
    APP_NAME: str = "qr-vehicle-contact"
    LOG_LEVEL: str = "INFO"

    CORS_ORIGINS: str = "http://localhost:3000"
    PUBLIC_BASE_URL: str = "http://localhost:3000"

    DATABASE_URL: str
    REDIS_URL: str

    OTP_TTL_SECONDS: int = 300
    OTP_MAX_ATTEMPTS: int = 3
    OTP_RECORD_FAILED_ATTEMPTS: bool = True
    OTP_DELIVERY_PROVIDER: str = "dummy"  # dummy | webhook
    # Demo deployments only: echo the passcode back from the mock channel.
    OTP_DEMO_EXPOSE_PASSCODE: bool = False
    OTP_SMS_TEMPLATE: str = "Your vehicle contact code: {code}"
    OTP_SWEEP_INTERVAL_SECONDS: int = 600

    SMS_GATEWAY_URL: str = ""
    SMS_GATEWAY_TOKEN: str = ""
    SMS_GATEWAY_TIMEOUT_SECONDS: float = 5.0

    RATE_LIMIT_ENABLED: bool = True
    RATE_LIMIT_WINDOW_SECONDS: int = 300
    CHALLENGE_RATE_LIMIT: int = 8
    VERIFY_RATE_LIMIT: int = 20

    QR_IMAGE_SCALE: int = 8

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]

settings = Settings()
