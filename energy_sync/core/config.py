"""
Core configuration and settings for the energy sync services
Every service process reads the same settings; SERVICE_ROLE selects the wiring
"""

from enum import Enum
from typing import Optional
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class ServiceRole(str, Enum):
    """Deployable services that take part in synchronization"""

    IDENTITY = "identity"
    DEVICES = "devices"
    USERS_DATA = "users_data"
    MONITORING = "monitoring"


class SyncTransport(str, Enum):
    """How sync events travel between services"""

    EXCHANGE = "exchange"  # fanout exchange, one private queue per subscriber
    QUEUE = "queue"  # single shared point-to-point queue


class Config(BaseSettings):
    """Application configuration with environment variable support"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Service information
    service_name: str = Field(default="energy-sync")
    service_version: str = Field(default="1.0.0")
    environment: str = Field(default="development")
    service_role: ServiceRole = Field(default=ServiceRole.USERS_DATA)

    # Server configuration
    port: int = Field(default=8002)
    host: str = Field(default="0.0.0.0")

    # Message broker configuration
    message_broker_type: str = Field(default="rabbitmq")
    rabbit_host: str = Field(default="rabbitmq")
    rabbit_port: int = Field(default=5672)
    rabbit_user: str = Field(default="root")
    rabbit_pass: str = Field(default="test")
    sync_transport: SyncTransport = Field(default=SyncTransport.EXCHANGE)
    sync_exchange: str = Field(default="sync_events_exchange")
    sync_queue: str = Field(default="sync_events_queue")
    sync_queue_name: Optional[str] = Field(default=None)
    data_queue: str = Field(default="device_data_queue")
    prefetch_count: int = Field(default=1)
    reconnect_delay: float = Field(default=5.0)
    dead_letter_exchange: Optional[str] = Field(default=None)

    @property
    def rabbitmq_url(self) -> str:
        """Construct AMQP connection URL"""
        return f"amqp://{self.rabbit_user}:{self.rabbit_pass}@{self.rabbit_host}:{self.rabbit_port}/"

    @property
    def private_sync_queue(self) -> str:
        """Durable queue this service binds to the sync exchange"""
        return self.sync_queue_name or f"{self.service_role.value}_sync_queue"

    # Database configuration
    mongodb_host: str = Field(default="localhost")
    mongodb_port: int = Field(default=27017)
    mongodb_username: Optional[str] = Field(default=None)
    mongodb_password: Optional[str] = Field(default=None)
    mongodb_database: str = Field(default="users_data_db")

    @property
    def mongodb_url(self) -> str:
        """Construct MongoDB connection URL"""
        if self.mongodb_username and self.mongodb_password:
            return f"mongodb://{self.mongodb_username}:{self.mongodb_password}@{self.mongodb_host}:{self.mongodb_port}/{self.mongodb_database}?authSource=admin"
        return f"mongodb://{self.mongodb_host}:{self.mongodb_port}/{self.mongodb_database}"

    # Logging configuration
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="console")
    log_to_file: bool = Field(default=False)
    log_to_console: bool = Field(default=True)
    log_file_path: Optional[str] = Field(default=None)


# Global config instance
config = Config()
