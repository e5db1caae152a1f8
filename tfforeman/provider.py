import logging
import os
from typing import Tuple

from pydantic import ValidationError

import tfforeman.foreman
import tfforeman.logstreams
from tfforeman.models import ForemanConfig, ProviderConfig

# Convenience: global logger instance to avoid repetitive code.
logit = logging.getLogger("tfforeman")

# `ProviderConfig` field -> environment variable.
ENV_VARS = {
    "server_hostname": "FOREMAN_SERVER_HOSTNAME",
    "server_protocol": "FOREMAN_SERVER_PROTOCOL",
    "client_username": "FOREMAN_CLIENT_USERNAME",
    "client_password": "FOREMAN_CLIENT_PASSWORD",
    "client_tls_insecure": "FOREMAN_CLIENT_TLS_INSECURE",
    "location_id": "FOREMAN_LOCATION_ID",
    "organization_id": "FOREMAN_ORGANIZATION_ID",
    "loglevel": "FOREMAN_PROVIDER_LOGLEVEL",
    "logfile": "FOREMAN_PROVIDER_LOGFILE",
    "timeout": "FOREMAN_CLIENT_TIMEOUT",
    "per_page": "FOREMAN_PER_PAGE",
}


def compile_provider_config() -> Tuple[ProviderConfig, bool]:
    """Return the provider configuration defined by the environment.

    Only `FOREMAN_SERVER_HOSTNAME` is mandatory. Returns a dummy configuration
    and `True` if a variable is missing or invalid.

    """
    try:
        values = {
            field: os.environ[name]
            for field, name in ENV_VARS.items()
            if name in os.environ
        }
        values["server_hostname"] = os.environ["FOREMAN_SERVER_HOSTNAME"]
        return ProviderConfig.model_validate(values), False
    except KeyError:
        logit.error(
            "missing environment variable",
            {"component": "provider", "variables": ["FOREMAN_SERVER_HOSTNAME"]},
        )
    except ValidationError as err:
        names = sorted({ENV_VARS[str(_["loc"][0])] for _ in err.errors()})
        logit.error(
            "invalid environment variables",
            {"component": "provider", "variables": names},
        )
    return ProviderConfig(server_hostname=""), True


def base_url(config: ProviderConfig) -> str:
    """Return eg `https://foreman.example.com`."""
    return f"{config.server_protocol}://{config.server_hostname}"


def configure(config: ProviderConfig) -> ForemanConfig:
    """Set up logging and return the connection for `config`."""
    tfforeman.logstreams.setup(config.loglevel, config.logfile)

    client = tfforeman.foreman.make_client(
        base_url(config),
        config.client_username,
        config.client_password,
        insecure=config.client_tls_insecure,
        timeout=config.timeout,
    )
    fcfg = ForemanConfig(
        name=config.server_hostname,
        client=client,
        location_id=config.location_id,
        organization_id=config.organization_id,
        per_page=config.per_page,
    )
    logit.info(
        "provider configured",
        {
            "component": "provider",
            "url": base_url(config),
            "username": config.client_username,
            "insecure": config.client_tls_insecure,
        },
    )
    return fcfg
