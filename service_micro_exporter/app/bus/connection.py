"""
NATS connection factory for the exporter.
"""

import base64
from typing import Any, Dict

import nats
import nats.errors
import nkeys

from shared.config import ExporterConfig
from shared.errors import TransportUnavailableError
from shared.logging import get_logger

logger = get_logger("micro_exporter.bus.connection")


def connection_options(config: ExporterConfig) -> Dict[str, Any]:
    """Build ``nats.connect`` keyword arguments from the configuration."""
    options: Dict[str, Any] = {
        "servers": config.servers,
        "name": config.name,
    }

    if config.nats_jwt and config.nats_seed:
        jwt = config.nats_jwt.encode()
        seed = config.nats_seed.encode()

        def user_jwt_cb() -> bytes:
            return jwt

        def signature_cb(nonce: str) -> bytes:
            key_pair = nkeys.from_seed(seed)
            try:
                return base64.b64encode(key_pair.sign(nonce.encode()))
            finally:
                key_pair.wipe()

        options["user_jwt_cb"] = user_jwt_cb
        options["signature_cb"] = signature_cb

    if config.credentials_file:
        options["user_credentials"] = config.credentials_file

    return options


async def connect(config: ExporterConfig):
    """Open the NATS connection used for discovery."""
    options = connection_options(config)
    try:
        connection = await nats.connect(**options)
    except (nats.errors.Error, OSError) as e:
        logger.error("Failed to connect to NATS", servers=config.servers, error=str(e))
        raise TransportUnavailableError(f"Could not connect to NATS: {e}", {"servers": config.servers})

    logger.info("Connected to NATS", servers=config.servers, name=config.name)
    return connection
