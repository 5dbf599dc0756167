"""SSM Parameter Store access for Stripe secrets.

The Stripe API key and webhook signing secret live as SecureString
parameters under ``/parking/{env}/stripe/``. Values are cached for the
lifetime of the process (one warm Lambda container).
"""

import logging
from functools import lru_cache
from typing import ClassVar

import boto3
from botocore.exceptions import ClientError

logger = logging.getLogger(__name__)


class SSMServiceError(Exception):
    """Raised when SSM parameter retrieval fails."""


class SSMParameterNotFoundError(SSMServiceError):
    """Raised when the requested parameter does not exist."""


class SSMService:
    """Service for retrieving secrets from AWS SSM Parameter Store.

    Usage:
        ssm = get_ssm_service()
        secret = ssm.get_parameter("/parking/dev/stripe/webhook_secret")
    """

    _cache: ClassVar[dict[str, str]] = {}

    def __init__(self) -> None:
        self._client = boto3.client("ssm")

    def get_parameter(self, name: str, *, use_cache: bool = True) -> str:
        """Retrieve a decrypted parameter value.

        Args:
            name: Full parameter path (e.g., "/parking/dev/stripe/secret_key")
            use_cache: Whether to use cached value if available (default: True)

        Returns:
            The decrypted parameter value.

        Raises:
            SSMParameterNotFoundError: If the parameter does not exist.
            SSMServiceError: If the parameter cannot be retrieved.
        """
        if use_cache and name in self._cache:
            logger.debug("SSM cache hit for %s", name)
            return self._cache[name]

        try:
            logger.info("Fetching SSM parameter: %s", name)
            response = self._client.get_parameter(Name=name, WithDecryption=True)
        except ClientError as e:
            error_code = e.response.get("Error", {}).get("Code", "Unknown")
            if error_code == "ParameterNotFound":
                raise SSMParameterNotFoundError(f"SSM parameter not found: {name}") from e
            if error_code == "AccessDeniedException":
                raise SSMServiceError(
                    f"Access denied to SSM parameter: {name}. "
                    "Check IAM permissions for ssm:GetParameter."
                ) from e
            raise SSMServiceError(
                f"Failed to retrieve SSM parameter {name}: {e}"
            ) from e

        value: str = response["Parameter"]["Value"]
        self._cache[name] = value
        return value


@lru_cache(maxsize=1)
def get_ssm_service() -> SSMService:
    """Get the shared SSMService instance."""
    return SSMService()
