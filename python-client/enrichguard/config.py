"""Configuration for enrichguard."""

from pydantic_settings import BaseSettings

from .resilience.circuit_breaker import CircuitBreakerConfig
from .resilience.retry import RetryConfig


class Settings(BaseSettings):
    """Application settings."""

    # Enrichment service
    external_service_url: str = "http://localhost:8081/enrich"
    external_service_timeout_ms: int = 1500  # Per attempt

    # Retry
    retry_max_attempts: int = 3  # Total attempts per guarded call
    retry_base_delay_ms: int = 100

    # Circuit breaker
    circuit_breaker_timeout_ms: int = 3000  # Whole guarded call
    circuit_breaker_reset_timeout_ms: int = 30000
    circuit_breaker_failure_threshold: int = 5  # Volume threshold
    circuit_breaker_error_threshold_percent: float = 50.0
    rolling_count_timeout_ms: int = 10000
    rolling_count_buckets: int = 10

    # Metrics server
    metrics_host: str = "0.0.0.0"
    metrics_port: int = 8000

    # Simulated enrichment service
    mock_port: int = 8081
    mock_service_failure_rate: float = 0.0
    mock_service_delay_ms: int = 0

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"

    @property
    def attempt_timeout(self) -> float:
        return self.external_service_timeout_ms / 1000

    @property
    def call_timeout(self) -> float:
        return self.circuit_breaker_timeout_ms / 1000

    def retry_config(self) -> RetryConfig:
        return RetryConfig(
            max_attempts=self.retry_max_attempts,
            base_delay=self.retry_base_delay_ms / 1000,
        )

    def breaker_config(self) -> CircuitBreakerConfig:
        return CircuitBreakerConfig(
            volume_threshold=self.circuit_breaker_failure_threshold,
            error_threshold_percent=self.circuit_breaker_error_threshold_percent,
            reset_timeout=self.circuit_breaker_reset_timeout_ms / 1000,
            window_span=self.rolling_count_timeout_ms / 1000,
            window_buckets=self.rolling_count_buckets,
        )


settings = Settings()
