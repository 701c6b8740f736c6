'''
Holds all the configurations
'''
from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    """
    Manages application configuration using environment variables.
    """
    # Application Metadata
    APP_NAME: str = "Academy Backend"
    APP_VERSION: str = "0.1.0"
    APP_DESCRIPTION: str = "Lesson packages, weekly scheduling and the lesson wallet ledger for a tutoring academy."
    TEST_MODE: bool = False

    # Database URL
    DATABASE_URL_PROD: str = "sqlite+aiosqlite:///./academy.db"
    DATABASE_URL_TEST: str = "sqlite+aiosqlite:///:memory:"
    CREATE_TABLES_ON_STARTUP: bool = False
    @property
    def database_url(self) -> str:
        """
        Dynamically returns the correct database URL based on the test_mode flag.
        """
        if self.TEST_MODE:
            return self.DATABASE_URL_TEST
        return self.DATABASE_URL_PROD

    # CORS
    BACKEND_CORS_ORIGINS: list[str] = []

    # Wallet thresholds
    # Active: balance > GRACE, Grace: BLOCK < balance <= GRACE, Blocked: balance <= BLOCK
    WALLET_GRACE_THRESHOLD: int = 2
    WALLET_BLOCK_THRESHOLD: int = 0

    # Scheduling
    ACADEMY_TIMEZONE: str = "Asia/Dubai"
    DEFAULT_LESSON_DURATION_MINUTES: int = 45
    MAX_LESSONS_PER_PACKAGE: int = 200
    NEXT_PAYMENT_INTERVAL_DAYS: int = 30

    class Config:
        env_file = ".env" # automatically loads the .env

# Create a single, importable instance of the settings
settings = Settings()
