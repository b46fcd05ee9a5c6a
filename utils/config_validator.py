"""
Configuration Validation Module

Validates critical configuration values at startup to fail-fast
with clear error messages instead of runtime failures.
"""

import sys
from typing import Optional

from enums.runtime_environment import RuntimeEnvironment


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""
    pass


def validate_stripe_secret_key(secret_key: Optional[str]) -> None:
    """
    Validate the Stripe API secret key.

    Raises:
        ConfigValidationError: If the key is missing or not a secret/restricted key
    """
    if not secret_key or len(secret_key.strip()) == 0:
        raise ConfigValidationError(
            "STRIPE_SECRET_KEY is required when PAYMENT_GATEWAY=stripe!\n"
            "Get your secret key from the Stripe dashboard (Developers -> API keys).\n"
            "Add to .env: STRIPE_SECRET_KEY=sk_test_..."
        )

    if not secret_key.startswith(("sk_", "rk_")):
        raise ConfigValidationError(
            "STRIPE_SECRET_KEY must be a secret (sk_...) or restricted (rk_...) key.\n"
            "Publishable keys (pk_...) cannot create checkout sessions."
        )


def validate_stripe_webhook_secret(webhook_secret: Optional[str]) -> None:
    """
    Validate the Stripe webhook signing secret.

    Raises:
        ConfigValidationError: If secret is missing or malformed
    """
    if not webhook_secret or not webhook_secret.startswith("whsec_"):
        raise ConfigValidationError(
            "STRIPE_WEBHOOK_SECRET is required and must start with 'whsec_'!\n"
            "It is shown when the webhook endpoint is created in the Stripe dashboard\n"
            "(or printed by 'stripe listen' during local development).\n"
            "Add to .env: STRIPE_WEBHOOK_SECRET=whsec_..."
        )


def validate_required_config(value: Optional[str], name: str, example: str = "") -> None:
    """
    Validate that a required config value is set.

    Raises:
        ConfigValidationError: If value is missing
    """
    if not value:
        error_msg = f"{name} is required but not set!"
        if example:
            error_msg += f"\nAdd to .env: {name}={example}"
        raise ConfigValidationError(error_msg)


def validate_startup_config(config_module) -> None:
    """
    Validate all critical configuration at startup.

    Raises:
        ConfigValidationError: If any validation fails
    """
    gateway = getattr(config_module, 'PAYMENT_GATEWAY', 'stripe')
    if gateway not in ("stripe", "fake"):
        raise ConfigValidationError(f"PAYMENT_GATEWAY must be 'stripe' or 'fake' (got: {gateway})")

    if gateway == "stripe":
        validate_stripe_secret_key(config_module.STRIPE_SECRET_KEY)
        validate_stripe_webhook_secret(config_module.STRIPE_WEBHOOK_SECRET)
        expiry = getattr(config_module, 'CHECKOUT_SESSION_EXPIRY_MINUTES', 30)
        if not 30 <= expiry <= 24 * 60:
            raise ConfigValidationError(
                f"CHECKOUT_SESSION_EXPIRY_MINUTES must be between 30 and 1440 (got: {expiry})"
            )
    elif config_module.RUNTIME_ENVIRONMENT == RuntimeEnvironment.PROD:
        raise ConfigValidationError("PAYMENT_GATEWAY=fake is not allowed with RUNTIME_ENVIRONMENT=PROD")

    validate_required_config(config_module.REDIS_URL, 'REDIS_URL', 'redis://localhost:6379/0')
    validate_required_config(config_module.BASE_URL, 'BASE_URL', 'https://shop.example.com')


def validate_or_exit(config_module) -> None:
    """
    Validate configuration and exit with error code 1 if validation fails.

    This is the main entry point for startup validation.
    """
    try:
        validate_startup_config(config_module)
    except ConfigValidationError as e:
        print(f"\n ERROR: Configuration Validation Failed\n", file=sys.stderr)
        print(str(e), file=sys.stderr)
        print("\nStartup aborted. Please fix configuration and try again.\n", file=sys.stderr)
        sys.exit(1)
