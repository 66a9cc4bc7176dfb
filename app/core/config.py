import os

from pydantic_settings import BaseSettings

class Settings(BaseSettings):
    APP_NAME: str = "Cuephoria Tournaments API"
    API_PREFIX: str = "/api"
    LOG_LEVEL: str = "INFO"
    HOST: str = "0.0.0.0"
    PORT: int = 8000

    TOURNAMENTS_FILE: str = os.path.join("app/data", "tournaments.json")
    WINNERS_FILE: str = os.path.join("app/data", "tournament_winners.json")

    DEFAULT_MAX_PLAYERS: int = 16
    DEFAULT_ENTRY_FEE: float = 250

    class Config:
        env_file = ".env"

settings = Settings()
