"""Configuration management using Pydantic settings."""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "SKYOPTIMA"
    debug: bool = False

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Static front-end directory, mounted at / when it exists
    public_dir: str = "public"

    # Simulation engine
    simulation_enabled: bool = True
    simulation_autostart: bool = False     # start ticking at boot instead of on request
    simulation_aircraft_count: int = 5     # clamped to [3, 10]
    simulation_tick_ms: int = 1000         # clamped to >= 100
    simulation_world_size: int = 100       # clamped to [50, 1000]
    simulation_min_separation: int = 8     # clamped to [2, world_size / 2]
    simulation_seed: Optional[int] = None  # fixed seed for reproducible runs


settings = Settings()
