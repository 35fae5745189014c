"""
storefront/config.py - Application configuration and Firebase initialization.

This module defines a Pydantic BaseSettings class to load configuration from environment,
and lazily initializes the Firebase Admin SDK (Firestore DB) using the provided credentials.
All other modules can import `settings` from here and call `get_db()` for the Firestore client.
"""
from functools import lru_cache
from typing import Optional

import firebase_admin
from dotenv import load_dotenv
from firebase_admin import credentials, firestore
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    firebase_cred_file: str = Field('firebase_service_account.json', alias='FIREBASE_CRED_FILE')
    firebase_project_id: str = Field('storefront-dev', alias='FIREBASE_PROJECT_ID')
    firebase_collection_prefix: str = Field('', alias='FIREBASE_COLLECTION_PREFIX')

    # Firebase credentials from environment variables (for Cloud Run)
    firebase_private_key_id: Optional[str] = Field(None, alias='FIREBASE_PRIVATE_KEY_ID')
    firebase_private_key: Optional[str] = Field(None, alias='FIREBASE_PRIVATE_KEY')
    firebase_client_email: Optional[str] = Field(None, alias='FIREBASE_CLIENT_EMAIL')
    firebase_client_id: Optional[str] = Field(None, alias='FIREBASE_CLIENT_ID')
    firebase_token_uri: str = Field('https://oauth2.googleapis.com/token', alias='FIREBASE_TOKEN_URI')

    # Braintree (hosted payment gateway)
    braintree_environment: str = Field('sandbox', alias='BRAINTREE_ENVIRONMENT')   # sandbox | production
    braintree_merchant_id: str = Field('', alias='BRAINTREE_MERCHANT_ID')
    braintree_public_key: str = Field('', alias='BRAINTREE_PUBLIC_KEY')
    braintree_private_key: str = Field('', alias='BRAINTREE_PRIVATE_KEY')

    # Client half (storefront.client)
    storefront_base_url: str = Field('http://localhost:8000', alias='STOREFRONT_BASE_URL')
    gateway_timeout_seconds: float = Field(10.0, alias='GATEWAY_TIMEOUT_SECONDS')
    client_storage_file: str = Field('.storefront/local_storage.json', alias='CLIENT_STORAGE_FILE')

    # Orders
    order_strict_transitions: bool = Field(False, alias='ORDER_STRICT_TRANSITIONS')
    reconciliation_enabled: bool = Field(True, alias='RECONCILIATION_ENABLED')
    reconciliation_interval_minutes: int = Field(10, alias='RECONCILIATION_INTERVAL_MINUTES')

    debug: bool = Field(False, alias='DEBUG')
    log_level: str = Field('INFO', alias='LOG_LEVEL')
    allowed_origins: str = Field('*', alias='ALLOWED_ORIGINS')  # Comma-separated list or '*' for all

    @property
    def braintree_configured(self) -> bool:
        return bool(self.braintree_merchant_id and self.braintree_public_key and self.braintree_private_key)


# Load settings from environment (.env file, etc.)
settings = Settings()


def prefixed(name: str) -> str:
    """Collection name with FIREBASE_COLLECTION_PREFIX applied."""
    prefix = (settings.firebase_collection_prefix or "").strip()
    return f"{prefix}{name}" if prefix else name


def _credential():
    # Environment credentials (Cloud Run) win over the service account file (local development).
    if all([
        settings.firebase_private_key_id,
        settings.firebase_private_key,
        settings.firebase_client_email,
        settings.firebase_client_id,
    ]):
        return credentials.Certificate({
            "type": "service_account",
            "project_id": settings.firebase_project_id,
            "private_key_id": settings.firebase_private_key_id,
            "private_key": settings.firebase_private_key,
            "client_email": settings.firebase_client_email,
            "client_id": settings.firebase_client_id,
            "token_uri": settings.firebase_token_uri,
        })
    return credentials.Certificate(settings.firebase_cred_file)


@lru_cache(maxsize=1)
def get_db():
    """Firestore client, initializing the default Firebase app on first use."""
    try:
        firebase_admin.initialize_app(_credential(), {'projectId': settings.firebase_project_id})
    except ValueError as e:
        if "already exists" not in str(e):
            raise
        # Firebase app already initialized, reuse the default app
    return firestore.client()
