# fleet_datafeed/common/truststore_context.py
"""
SSL Context Factory using the System Trust Store.

Builds SSL contexts that verify the telematics server certificate against the
operating system's native trust store rather than Python's bundled
certificates (certifi). Needed behind TLS-inspecting corporate proxies whose
root CA is only installed in the OS store.

The `truststore` library is imported lazily, so it is only required when
ServerConfig.use_truststore is enabled.
"""

import ssl
from ssl import SSLContext

__all__: list[str] = ['build_truststore_ssl_context']


def build_truststore_ssl_context() -> SSLContext:
    """
    Create an SSLContext using truststore for system certificate validation.

    Returns:
        SSLContext: Client-side context backed by the OS trust store.

    Raises:
        RuntimeError: If truststore is not installed.
    """
    try:
        import truststore  # noqa: PLC0415
    except ImportError as import_error:
        raise RuntimeError(
            'truststore is required when use_truststore=True; '
            'install it with: pip install fleet-datafeed[truststore]'
        ) from import_error

    ssl_context: SSLContext = truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    return ssl_context
