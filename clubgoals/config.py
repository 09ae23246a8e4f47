from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "postgresql+asyncpg://localhost:5432/clubgoals"
    api_key: str | None = None
    db_echo: bool = False
    log_level: str = "INFO"

    # Consistency scorer: hard cap on how many cadence steps are walked back.
    # For day cadence this truncates ranges longer than ~100 days.
    max_lookback_periods: int = 100

    # Weekly trend: fewer fully elapsed weeks than this yields an empty series
    trend_min_weeks: int = 2

    # Leaderboard / weekly reports default to the trailing 8 weeks
    default_report_window_days: int = 56

    model_config = {"env_file": ".env", "extra": "ignore"}


settings = Settings()
