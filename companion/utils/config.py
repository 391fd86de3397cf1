"""Configuration management for the cooking companion core.

Loads environment variables from system environment and .env file.
Priority order: system environment > .env file > hardcoded defaults
"""

import os

from dotenv import load_dotenv


# Load .env file (if exists, silently continues if missing)
load_dotenv()


class Config:
    """Application configuration loaded from environment variables."""

    def __init__(self) -> None:
        """Initialize configuration from environment variables."""
        # Base URL of the AI edge functions (/extract, /caption, /mealplan, /scan)
        # Only required when an orchestrator is built without an explicit base URL
        self.AI_EDGE_BASE_URL: str = os.getenv("AI_EDGE_BASE_URL", "").rstrip("/")

        # Per-endpoint timeouts in seconds
        # extract and mealplan may run heavier pipelines server-side (transcripts, nutrition lookups)
        self.EXTRACT_TIMEOUT_SECONDS: float = float(os.getenv("EXTRACT_TIMEOUT_SECONDS", "30"))
        self.MEALPLAN_TIMEOUT_SECONDS: float = float(os.getenv("MEALPLAN_TIMEOUT_SECONDS", "30"))
        self.CAPTION_TIMEOUT_SECONDS: float = float(os.getenv("CAPTION_TIMEOUT_SECONDS", "10"))
        self.SCAN_TIMEOUT_SECONDS: float = float(os.getenv("SCAN_TIMEOUT_SECONDS", "10"))

        # Retry Configuration - transient failures only (timeouts, 5xx, connection errors)
        # MAX_ATTEMPTS: Total attempts per call, including the first one
        self.MAX_ATTEMPTS: int = int(os.getenv("MAX_ATTEMPTS", "3"))
        # RETRY_BASE_DELAY_SECONDS: Delay before the first retry
        self.RETRY_BASE_DELAY_SECONDS: float = float(os.getenv("RETRY_BASE_DELAY_SECONDS", "0.5"))
        # RETRY_BACKOFF_FACTOR: Multiplier applied to the delay after each retry
        self.RETRY_BACKOFF_FACTOR: float = float(os.getenv("RETRY_BACKOFF_FACTOR", "2"))

        # Meal planning
        # MEALS_PER_DAY: Divides the daily calorie target into a per-meal target
        self.MEALS_PER_DAY: int = int(os.getenv("MEALS_PER_DAY", "3"))
        # CALORIES_TARGET: Daily calorie target used when the caller gives none
        self.CALORIES_TARGET: float = float(os.getenv("CALORIES_TARGET", "2000"))
        # MISSING_CALORIES_PENALTY: Floor penalty for recipes without a calorie figure
        # (always raised above the worst scored recipe so they rank last)
        self.MISSING_CALORIES_PENALTY: float = float(os.getenv("MISSING_CALORIES_PENALTY", "10000"))
        # APPLIANCE_PENALTY: Soft demotion for recipes needing an appliance the kitchen lacks
        self.APPLIANCE_PENALTY: float = float(os.getenv("APPLIANCE_PENALTY", "500"))

        # Maximum image size (in MB) accepted for /caption and /scan. Default: 5 MB
        self.MAX_IMAGE_SIZE_MB: int = int(os.getenv("MAX_IMAGE_SIZE_MB", "5"))

    def timeout_for(self, endpoint: str) -> float:
        """Return the timeout in seconds for an endpoint name."""
        timeouts = {
            "extract": self.EXTRACT_TIMEOUT_SECONDS,
            "mealplan": self.MEALPLAN_TIMEOUT_SECONDS,
            "caption": self.CAPTION_TIMEOUT_SECONDS,
            "scan": self.SCAN_TIMEOUT_SECONDS,
        }
        if endpoint not in timeouts:
            raise ValueError(f"Unknown endpoint: {endpoint}")
        return timeouts[endpoint]

    def validate(self) -> None:
        """Validate configuration values.

        Raises:
            ValueError: If a value is outside its allowed range.
        """
        for name in (
            "EXTRACT_TIMEOUT_SECONDS",
            "MEALPLAN_TIMEOUT_SECONDS",
            "CAPTION_TIMEOUT_SECONDS",
            "SCAN_TIMEOUT_SECONDS",
        ):
            if getattr(self, name) <= 0:
                raise ValueError(f"{name} must be positive, got: {getattr(self, name)}")
        if self.MAX_ATTEMPTS < 1:
            raise ValueError(f"MAX_ATTEMPTS must be at least 1, got: {self.MAX_ATTEMPTS}")
        if self.RETRY_BASE_DELAY_SECONDS < 0:
            raise ValueError(
                f"RETRY_BASE_DELAY_SECONDS must not be negative, got: {self.RETRY_BASE_DELAY_SECONDS}"
            )
        if self.RETRY_BACKOFF_FACTOR < 1:
            raise ValueError(f"RETRY_BACKOFF_FACTOR must be at least 1, got: {self.RETRY_BACKOFF_FACTOR}")
        if self.MEALS_PER_DAY < 1:
            raise ValueError(f"MEALS_PER_DAY must be at least 1, got: {self.MEALS_PER_DAY}")
        if self.CALORIES_TARGET <= 0:
            raise ValueError(f"CALORIES_TARGET must be positive, got: {self.CALORIES_TARGET}")
        if self.MISSING_CALORIES_PENALTY < 0 or self.APPLIANCE_PENALTY < 0:
            raise ValueError(
                "MISSING_CALORIES_PENALTY and APPLIANCE_PENALTY must not be negative, got: "
                f"{self.MISSING_CALORIES_PENALTY}, {self.APPLIANCE_PENALTY}"
            )
        if self.MAX_IMAGE_SIZE_MB < 1:
            raise ValueError(f"MAX_IMAGE_SIZE_MB must be at least 1, got: {self.MAX_IMAGE_SIZE_MB}")


# Create module-level config instance and validate immediately
config = Config()
config.validate()
