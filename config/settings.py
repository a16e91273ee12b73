# caduceus/config/settings.py
#
# Centralized Application Configuration
# This file defines the entire application's configuration using Pydantic for
# validation and type safety. It loads settings from environment variables or
# a .env file so the same build runs against any hospital backend.

import logging
from pathlib import Path
from typing import Dict, List, Literal, Optional, Tuple

from pydantic import BaseModel, Field, computed_field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# --- Define Project Root ---
PROJECT_ROOT = Path(__file__).resolve().parent.parent

# --- Logger for Settings Module ---
settings_logger = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# 1. NESTED CONFIGURATION MODELS
# -----------------------------------------------------------------------------

class AppConfig(BaseModel):
    """Core application metadata and operational settings."""
    name: str = "Caduceus Operations Console"
    version: str = "1.4.0"
    organization_name: str = "Caduceus Hospital Group"
    support_contact: str = "it-support@caduceus-hospital.org"

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: str = "%(asctime)s - %(name)s.%(funcName)s - %(levelname)s - %(message)s"
    log_date_format: str = "%Y-%m-%d %H:%M:%S"


class ApiConfig(BaseModel):
    """Backend REST endpoints for every source collection the engine consumes."""
    base_url: str = "http://localhost:8080"
    timeout_seconds: float = 30.0
    # Bearer token issued by the (external) login flow. Session handling is
    # owned by the backend; the engine only forwards the token.
    auth_token: Optional[str] = None

    endpoints: Dict[str, str] = {
        "wards": "/api/wards/getAll",
        "active_admissions": "/api/admissions/active",
        "all_admissions": "/api/admissions/getAll",
        "appointments": "/api/appointments/getAll",
        "doctors": "/api/doctors/getAll",
        "patients": "/api/patients/all",
    }

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, value: str) -> str:
        if not value:
            raise ValueError("base_url must be provided")
        return value.rstrip("/")


class AgeBandConfig(BaseModel):
    """Ordered (label, inclusive lower bound) pairs for the age histogram."""
    bands: List[Tuple[str, int]] = [
        ("0-17", 0),
        ("18-34", 18),
        ("35-49", 35),
        ("50-64", 50),
        ("65+", 65),
    ]

    @model_validator(mode='after')
    def check_bands_ascending(self) -> 'AgeBandConfig':
        """Bands must start at 0 and ascend, otherwise the histogram would not partition."""
        bounds = [lower for _, lower in self.bands]
        if not bounds or bounds[0] != 0:
            raise ValueError("The first age band must start at 0.")
        if any(b <= a for a, b in zip(bounds, bounds[1:])):
            raise ValueError("Age band lower bounds must be strictly ascending.")
        return self

    @computed_field
    @property
    def labels(self) -> List[str]:
        return [label for label, _ in self.bands]


class AnalyticsConfig(BaseModel):
    """Defines fixed operational thresholds and chart windows."""
    bed_capacity: int = 20
    refresh_interval_seconds: int = 300

    busy_doctor_daily_threshold: int = 5

    admission_trend_days: int = 30
    appointment_trend_days: int = 14
    activity_trend_days: int = 7
    monthly_trend_months: int = 6

    top_doctors_count: int = 6
    top_doctors_trend_count: int = 3

    admission_window_options: Dict[str, int] = {"7days": 7, "30days": 30, "90days": 90}
    default_admission_window: str = "7days"

    age_bands: AgeBandConfig = Field(default_factory=AgeBandConfig)

    @model_validator(mode='after')
    def check_default_window(self) -> 'AnalyticsConfig':
        if self.default_admission_window not in self.admission_window_options:
            raise ValueError(
                f"default_admission_window '{self.default_admission_window}' is not one of "
                f"{sorted(self.admission_window_options)}"
            )
        return self


class ThemeConfig(BaseModel):
    """Centralizes all color and theme information for UI and plots."""
    primary: str = "#1D4ED8"
    background: str = "#F0F2F6"
    secondary_background: str = "#FFFFFF"
    text: str = "#1F2937"

    occupied: str = "#3B82F6"
    available: str = "#22C55E"
    completed: str = "#10B981"
    scheduled: str = "#6366F1"
    cancelled: str = "#EF4444"
    warning: str = "#F59E0B"

    status_colors: Dict[str, str] = {
        "COMPLETED": "#10B981",
        "SCHEDULED": "#3B82F6",
        "CONFIRMED": "#06B6D4",
        "IN_PROGRESS": "#F59E0B",
        "CANCELLED": "#EF4444",
        "NO_SHOW": "#F97316",
        "ACTIVE": "#3B82F6",
        "DISCHARGED": "#10B981",
        "TRANSFERRED": "#F59E0B",
    }

    @computed_field
    @property
    def plotly_colorway(self) -> List[str]:
        """Defines the default categorical color sequence for Plotly charts."""
        return ["#1D4ED8", "#10B981", "#F59E0B", "#EF4444", "#8B5CF6", "#06B6D4"]

# -----------------------------------------------------------------------------
# 2. MAIN SETTINGS CLASS
# -----------------------------------------------------------------------------

class Settings(BaseSettings):
    """
    Main settings class for the Caduceus console.
    Aggregates all configuration models and loads from environment variables,
    e.g. CADUCEUS_API__BASE_URL or CADUCEUS_ANALYTICS__BED_CAPACITY.
    """
    model_config = SettingsConfigDict(
        env_prefix='CADUCEUS_',
        case_sensitive=False,
        env_nested_delimiter='__',
        env_file=f"{PROJECT_ROOT}/.env",
        extra='ignore'
    )

    app: AppConfig = Field(default_factory=AppConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    analytics: AnalyticsConfig = Field(default_factory=AnalyticsConfig)
    theme: ThemeConfig = Field(default_factory=ThemeConfig)

    style_css_path: Path = PROJECT_ROOT / "assets" / "style.css"

    @computed_field
    @property
    def app_footer_text(self) -> str:
        """Generates the application footer text dynamically."""
        from datetime import datetime
        return f"© {datetime.now().year} {self.app.organization_name}. All Rights Reserved."

# -----------------------------------------------------------------------------
# 3. SINGLETON INSTANCE
# -----------------------------------------------------------------------------

try:
    settings = Settings()
    settings_logger.info(
        f"Settings loaded for '{settings.app.name}' v{settings.app.version}. "
        f"LOG_LEVEL={settings.app.log_level}. API='{settings.api.base_url}'"
    )
    if not settings.api.auth_token:
        settings_logger.warning(
            "No API token configured. Set 'CADUCEUS_API__AUTH_TOKEN' in your environment or .env file. "
            "Protected endpoints will report 'session expired'."
        )
except Exception as e:
    settings_logger.critical(f"FATAL: Could not initialize application settings. Error: {e}", exc_info=True)
    raise
