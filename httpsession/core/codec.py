"""Attribute codec: converts a session's attribute mapping to the stored payload and back."""

import json
import logging
from typing import Any, Dict

from httpsession.core.exceptions import StorageError

logger = logging.getLogger(__name__)


class JsonAttributeCodec:
    """
    Encodes session attributes as a JSON object.

    The store treats the payload as an opaque string; only the manager
    knows it is JSON.
    """

    def encode(self, attributes: Dict[str, Any]) -> str:
        # JSON object keys are always strings; other key types would not round-trip
        invalid = [key for key in attributes if not isinstance(key, str)]
        if invalid:
            raise StorageError(
                f"Attribute names must be str, got {type(invalid[0]).__name__}",
                operation="encode",
            )
        try:
            return json.dumps(attributes, separators=(",", ":"), sort_keys=True)
        except (TypeError, ValueError) as e:
            logger.error(f"Failed to encode session attributes: {e}")
            raise StorageError(str(e), operation="encode") from e

    def decode(self, payload: str) -> Dict[str, Any]:
        """
        Decode a stored payload.

        An empty payload is an empty session. Anything that is not a JSON
        object is treated as corrupt rather than silently discarded.
        """
        if not payload:
            return {}
        try:
            attributes = json.loads(payload)
        except ValueError as e:
            logger.error(f"Failed to decode session payload: {e}")
            raise StorageError(str(e), operation="decode") from e

        if not isinstance(attributes, dict):
            raise StorageError(
                f"Expected a JSON object, got {type(attributes).__name__}",
                operation="decode",
            )
        return attributes
