import os
from pathlib import Path

from dotenv import load_dotenv
from pydantic import AliasChoices, Field, model_validator
from typing import List, Optional
from pydantic_settings import BaseSettings

DEFAULT_DATABASE_URL = "sqlite:///./handoff.db"
DEFAULT_TEST_DATABASE_URL = "sqlite:///./handoff_test.db"

DEFAULT_APOLOGY_MESSAGE = (
    "¡Uy! Parece que algo falló al procesar tu mensaje 😅\n\n"
    "¿Te parece si lo intentamos otra vez? Puedes repetir tu pregunta o "
    "escribirla de otra forma. ¡Estoy listo para ayudarte! 💬"
)

# Project root (parent of handoff/) - used so .env is found regardless of cwd
_PROJECT_ROOT = Path(__file__).resolve().parent.parent

# Explicitly load .env into os.environ so it works in tests and subprocesses
load_dotenv(_PROJECT_ROOT / ".env")


class Settings(BaseSettings):
    app_name: str = "handoff-api"
    database_url: Optional[str] = None  # Will be set dynamically
    environment: str = Field(
        default="development",
        validation_alias=AliasChoices("ENV", "ENVIRONMENT"),
    )
    log_level: str = Field(default="INFO", json_schema_extra={"env": "LOG_LEVEL"})
    port: int = Field(default=8000, json_schema_extra={"env": "PORT"})

    # Conversations platform
    twilio_account_sid: str = Field(
        default="", json_schema_extra={"env": "TWILIO_ACCOUNT_SID"}
    )
    twilio_auth_token: str = Field(
        default="", json_schema_extra={"env": "TWILIO_AUTH_TOKEN"}
    )
    conversations_api_url: str = Field(
        default="https://conversations.twilio.com/v1",
        json_schema_extra={"env": "CONVERSATIONS_API_URL"},
    )
    messaging_api_url: str = Field(
        default="https://api.twilio.com/2010-04-01",
        json_schema_extra={"env": "MESSAGING_API_URL"},
    )
    assistants_api_url: str = Field(
        default="https://assistants.twilio.com/v1",
        json_schema_extra={"env": "ASSISTANTS_API_URL"},
    )
    domain_name: str = Field(
        default="localhost:8000", json_schema_extra={"env": "DOMAIN_NAME"}
    )
    validate_platform_signature: bool = Field(
        default=False, json_schema_extra={"env": "VALIDATE_PLATFORM_SIGNATURE"}
    )
    http_timeout_seconds: float = Field(
        default=10.0, gt=0, json_schema_extra={"env": "HTTP_TIMEOUT_SECONDS"}
    )

    # Assistant callbacks
    callback_signing_secret: Optional[str] = Field(
        default=None, json_schema_extra={"env": "CALLBACK_SIGNING_SECRET"}
    )
    callback_token_ttl_seconds: int = Field(
        default=900, gt=0, json_schema_extra={"env": "CALLBACK_TOKEN_TTL_SECONDS"}
    )
    assistant_sid: Optional[str] = Field(
        default=None, json_schema_extra={"env": "ASSISTANT_SID"}
    )
    apology_message: str = Field(
        default=DEFAULT_APOLOGY_MESSAGE,
        json_schema_extra={"env": "APOLOGY_MESSAGE"},
    )

    # Human handover
    studio_flow_sid: Optional[str] = Field(
        default=None, json_schema_extra={"env": "STUDIO_FLOW_SID"}
    )
    identified_services: List[str] = Field(
        default_factory=list, json_schema_extra={"env": "IDENTIFIED_SERVICES"}
    )
    identified_areas: List[str] = Field(
        default_factory=list, json_schema_extra={"env": "IDENTIFIED_AREAS"}
    )
    notification_from: Optional[str] = Field(
        default=None, json_schema_extra={"env": "NOTIFICATION_FROM"}
    )

    @model_validator(mode="before")
    def set_database_url(cls, values):
        """Set the database_url dynamically based on the environment field."""
        environment = values.get("environment", os.getenv("ENV", "development"))
        if environment.lower() == "test":
            values["database_url"] = os.getenv(
                "TEST_DATABASE_URL", DEFAULT_TEST_DATABASE_URL
            )
        else:
            values["database_url"] = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

        return values

    @property
    def public_base_url(self) -> str:
        """Base URL the platform and the assistant use to reach this service."""
        return f"https://{self.domain_name}"

    class ConfigDict:
        env_file = str(_PROJECT_ROOT / ".env")
        env_file_encoding = "utf-8"
        extra = "allow"  # Allow extra environment variables


def get_settings() -> Settings:
    """Get application settings with required environment variables."""
    return Settings()
