"""
Order Service configuration using shared patterns
"""

from pathlib import Path
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict

# Get the order service directory path
ORDER_SERVICE_DIR = Path(__file__).parent.parent.parent
ENV_FILE = ORDER_SERVICE_DIR / ".env"


class OrderSettings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=str(ENV_FILE),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Petshop Order Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"

    # Service specific
    SERVICE_NAME: str = "order-service"

    # Database
    ORDER_DATABASE_URL: str = "sqlite+aiosqlite:///./orders.db"
    DATABASE_POOL_SIZE: int = 20
    DATABASE_MAX_OVERFLOW: int = 40

    # Kafka for events
    KAFKA_ENABLED: bool = True
    KAFKA_BOOTSTRAP_SERVERS: str = "localhost:9092"
    KAFKA_TOPIC_ORDER_EVENTS: str = "order.events"
    KAFKA_TOPIC_STOCK_EVENTS: str = "stock.events"
    KAFKA_TOPIC_INVENTORY_EVENTS: str = "inventory.events"

    # Inventory
    LOW_STOCK_THRESHOLD: int = 10

    # CORS
    CORS_ORIGINS: List[str] = ["*"]
    CORS_CREDENTIALS: bool = True
    CORS_METHODS: List[str] = ["GET", "POST", "PUT", "DELETE", "OPTIONS"]
    CORS_HEADERS: List[str] = ["*"]


# Create a singleton instance
_settings_instance = None


def get_settings() -> OrderSettings:
    """Get settings singleton instance"""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = OrderSettings()
    return _settings_instance
