from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    SERVICE_NAME: str = Field("rested-messaging", alias="SERVICE_NAME")
    SERVICE_VERSION: str = Field("0.1.0", alias="SERVICE_VERSION")
    LOG_LEVEL: str = Field("INFO", alias="LOG_LEVEL")

    MONGO_URI: str = Field("mongodb://localhost:27017", alias="MONGO_URI")
    MONGO_DB_NAME: str = Field("rested_messaging", alias="MONGO_DB_NAME")
    REDIS_URL: Optional[str] = Field(None, alias="REDIS_URL")

    # Legacy identity stores, one per app. Empty URI means "not configured".
    RESTED_LEGACY_MONGO_URI: str = Field("", alias="RESTED_LEGACY_MONGO_URI")
    RESTED_LEGACY_DB_NAME: str = Field("rested", alias="RESTED_LEGACY_DB_NAME")
    RESTED_FCM_SERVICE_ACCOUNT_FILE: str = Field("", alias="RESTED_FCM_SERVICE_ACCOUNT_FILE")
    RESTED_FCM_PROJECT_ID: str = Field("", alias="RESTED_FCM_PROJECT_ID")

    DOULACONNECT_LEGACY_MONGO_URI: str = Field("", alias="DOULACONNECT_LEGACY_MONGO_URI")
    DOULACONNECT_LEGACY_DB_NAME: str = Field("doulaconnect", alias="DOULACONNECT_LEGACY_DB_NAME")
    DOULACONNECT_FCM_SERVICE_ACCOUNT_FILE: str = Field("", alias="DOULACONNECT_FCM_SERVICE_ACCOUNT_FILE")
    DOULACONNECT_FCM_PROJECT_ID: str = Field("", alias="DOULACONNECT_FCM_PROJECT_ID")

    ONESIGNAL_API_URL: str = Field("https://onesignal.com/api/v1/notifications", alias="ONESIGNAL_API_URL")
    ONESIGNAL_RESTED_APP_ID: str = Field("", alias="ONESIGNAL_RESTED_APP_ID")
    ONESIGNAL_RESTED_API_KEY: str = Field("", alias="ONESIGNAL_RESTED_API_KEY")
    ONESIGNAL_DOULACONNECT_APP_ID: str = Field("", alias="ONESIGNAL_DOULACONNECT_APP_ID")
    ONESIGNAL_DOULACONNECT_API_KEY: str = Field("", alias="ONESIGNAL_DOULACONNECT_API_KEY")

    BUBBLE_API_TOKEN: str = Field("", alias="BUBBLE_API_TOKEN")
    BUBBLE_API_URL_DEV: str = Field("", alias="BUBBLE_API_URL_DEV")
    BUBBLE_API_URL_TEST: str = Field("", alias="BUBBLE_API_URL_TEST")
    BUBBLE_API_URL_LIVE: str = Field("", alias="BUBBLE_API_URL_LIVE")

    DEEP_LINK_BASE_URL: str = Field("https://app.rested.family", alias="DEEP_LINK_BASE_URL")
    DEEP_LINK_DEV_PATH: str = Field("/version-62es1", alias="DEEP_LINK_DEV_PATH")
    DEEP_LINK_TEST_PATH: str = Field("/version-test", alias="DEEP_LINK_TEST_PATH")

    # App that receives a synced token which was stored without an app tag.
    SYNCED_TOKEN_DEFAULT_APP: str = Field("rested", alias="SYNCED_TOKEN_DEFAULT_APP")
    TOKEN_CACHE_SECONDS: int = Field(300, alias="TOKEN_CACHE_SECONDS")
    HTTP_TIMEOUT_SECONDS: float = Field(10.0, alias="HTTP_TIMEOUT_SECONDS")
    EXPLORE_TIMEOUT_SECONDS: float = Field(10.0, alias="EXPLORE_TIMEOUT_SECONDS")

    @property
    def bubble_api_urls(self) -> list[str]:
        """Configured Bubble data API URLs, dev first."""
        urls = [self.BUBBLE_API_URL_DEV, self.BUBBLE_API_URL_TEST, self.BUBBLE_API_URL_LIVE]
        return [u for u in urls if u]


settings = Settings()
