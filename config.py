"""Configuration for the FUV quote engine."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional, Tuple
import os

from dotenv import load_dotenv


@dataclass
class Config:
    """Configuration for the FUV quote engine."""

    # Code tables (durations, terms versions, workload labels, agency competence)
    code_tables_path: Path = field(
        default_factory=lambda: Path(__file__).parent / "knowledge" / "code_tables.json"
    )

    # Premium billing settles in 5 Rappen steps
    rounding_step: float = 0.05

    # Benefit factors applied to the insured annual income
    daily_benefit_factor: float = 0.8
    disability_pension_factor: float = 0.9

    # Minimum insured annual income at 100% workload
    min_income_family_member: int = 44460
    min_income_owner: int = 66690

    # Activity composition must total 100% within this tolerance
    percentage_tolerance: float = 0.001

    # Contract duration in whole years, always ending on 31 December
    allowed_durations: Tuple[int, ...] = (1, 2, 3, 4)
    default_duration_code: str = "Ablauf_4"

    # Checklist: age above this value is flagged
    max_insured_age: int = 60

    # Remote services
    assignment_api_url: str = ""
    bonity_api_url: str = ""
    income_ceiling_api_url: str = ""
    api_key: str = ""
    http_timeout: float = 30.0

    # Requester identity used when the caller supplies none (CLI only)
    default_user: str = "system"

    @classmethod
    def from_env(cls, env_file: Optional[Path] = None) -> "Config":
        """Build a configuration from FUV_* environment variables."""
        load_dotenv(env_file or Path(__file__).parent / ".env")

        config = cls()
        tables = os.getenv("FUV_CODE_TABLES")
        if tables:
            config.code_tables_path = Path(tables)
        config.assignment_api_url = os.getenv("FUV_ASSIGNMENT_API_URL", config.assignment_api_url)
        config.bonity_api_url = os.getenv("FUV_BONITY_API_URL", config.bonity_api_url)
        config.income_ceiling_api_url = os.getenv(
            "FUV_INCOME_CEILING_API_URL", config.income_ceiling_api_url
        )
        config.api_key = os.getenv("FUV_API_KEY", config.api_key)
        timeout = os.getenv("FUV_HTTP_TIMEOUT")
        if timeout:
            config.http_timeout = float(timeout)
        config.default_user = os.getenv("FUV_DEFAULT_USER", config.default_user)
        return config


# Global default configuration
_default_config: Optional[Config] = None


def get_config() -> Config:
    """Get the default configuration."""
    global _default_config
    if _default_config is None:
        _default_config = Config()
    return _default_config


def set_config(config: Config) -> None:
    """Set the default configuration."""
    global _default_config
    _default_config = config
