"""Temporal client factory.

Creates connections to Temporal using credentials from environment. Temporal
Cloud is used when TEMPORAL_API_KEY or a client certificate is set; otherwise
a plain connection to a local development server.
"""

import os
from pathlib import Path
from typing import Union

# Load .env file if it exists
from dotenv import load_dotenv
env_path = Path(__file__).resolve().parent / ".env"
if env_path.exists():
    load_dotenv(env_path)

from temporalio.client import Client
from temporalio.service import TLSConfig


async def get_temporal_client() -> Client:
    """Create and return a Temporal client.

    Reads configuration from environment variables:
    - TEMPORAL_ENDPOINT: Temporal endpoint (default "localhost:7233")
    - TEMPORAL_NAMESPACE: Namespace (default "default")
    - TEMPORAL_API_KEY: API key for Temporal Cloud (optional)
    - TEMPORAL_CERT_PATH: Client certificate for mTLS (optional)
    - TEMPORAL_KEY_PATH: Client private key (defaults to TEMPORAL_CERT_PATH)

    Returns:
        Connected Temporal client
    """
    endpoint = os.getenv("TEMPORAL_ENDPOINT", "localhost:7233")
    namespace = os.getenv("TEMPORAL_NAMESPACE", "default")
    api_key = os.getenv("TEMPORAL_API_KEY")
    cert_path = os.getenv("TEMPORAL_CERT_PATH")
    key_path = os.getenv("TEMPORAL_KEY_PATH", cert_path)

    if not api_key and not cert_path:
        # Local dev server: no TLS
        return await Client.connect(endpoint, namespace=namespace)

    tls: Union[bool, TLSConfig] = True
    if cert_path:
        tls = TLSConfig(
            client_cert=Path(cert_path).read_bytes(),
            client_private_key=Path(key_path).read_bytes(),
        )

    return await Client.connect(
        endpoint,
        namespace=namespace,
        tls=tls,
        api_key=api_key,
    )
