"""
SSL configuration for the chat-completion HTTP client.
"""

import os
from typing import Dict, Optional, Union

from ..logging import get_logger
from ..settings import config


def setup_ssl() -> Dict[str, Union[bool, Optional[str]]]:
    """
    Resolve SSL verification settings for outgoing API calls.

    Returns:
        Dictionary with:
        - "verify": bool - Whether to verify server certificates
        - "cert_path": str or None - Custom CA bundle when verification is on

    Raises:
        FileNotFoundError: If a certificate path is configured but missing.
    """
    logger = get_logger()

    if not config.ssl_verify:
        logger.debug("SSL verification disabled")
        return {"verify": False, "cert_path": None}

    cert_path = config.ssl_cert_path or None
    if cert_path:
        cert_path = os.path.expanduser(cert_path)
        if not os.path.exists(cert_path):
            error_msg = f"SSL certificate file not found: {cert_path}"
            logger.error(error_msg)
            raise FileNotFoundError(error_msg)
        logger.debug("SSL verification enabled with certificate", cert_path=cert_path)
    else:
        logger.debug("SSL verification enabled with system certificates")

    return {"verify": True, "cert_path": cert_path}
