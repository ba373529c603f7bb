from pydantic_settings import BaseSettings
from functools import lru_cache


PRODUCTION_ENVIRONMENTS = ("production", "prod")


class Settings(BaseSettings):
    # TrueLayer client credentials (empty means "not configured")
    truelayer_client_id: str = ""
    truelayer_client_secret: str = ""
    truelayer_redirect_uri: str = ""
    truelayer_env: str = "sandbox"
    truelayer_country_id: str = "NL"
    truelayer_providers: str = ""

    # Secret sources for sealing token cookies, in order of preference
    bank_token_encryption_key: str = ""
    turnstile_secret_key: str = ""

    environment: str = "development"

    # Where the callback redirects the browser back to; empty keeps it relative
    frontend_url: str = ""

    class Config:
        env_file = ".env"

    @property
    def is_production_provider(self) -> bool:
        return (self.truelayer_env or "sandbox").strip().lower() in PRODUCTION_ENVIRONMENTS

    @property
    def auth_base_url(self) -> str:
        if self.is_production_provider:
            return "https://auth.truelayer.com"
        return "https://auth.truelayer-sandbox.com"

    @property
    def api_base_url(self) -> str:
        if self.is_production_provider:
            return "https://api.truelayer.com"
        return "https://api.truelayer-sandbox.com"

    @property
    def encryption_secret(self) -> str:
        return (
            self.bank_token_encryption_key
            or self.turnstile_secret_key
            or self.truelayer_client_secret
        )

    @property
    def cookie_secure(self) -> bool:
        return self.environment.strip().lower() == "production"


@lru_cache()
def get_settings():
    return Settings()
