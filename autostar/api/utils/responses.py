"""JSON response class using orjson serialization.

``ORJSONResponse`` is used for every JSON payload the adapter writes: encoded
handler results, error documents and the OpenAPI document. orjson natively
handles datetime, UUID and dataclass values; pydantic models are dumped
first.
"""

from typing import Any

import orjson
from pydantic import BaseModel
from starlette.responses import JSONResponse


class ORJSONResponse(JSONResponse):
    """Starlette response class using orjson for JSON serialization.

    Attributes:
        media_type: The media type for the response.
    """

    media_type = "application/json"

    def render(self, content: Any) -> bytes:  # noqa: ANN401 - accepts any JSON-serializable content
        """Render the content as JSON using orjson.

        Args:
            content: The content to serialize to JSON.

        Returns:
            bytes: The JSON-encoded bytes.
        """
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json", exclude_none=True)

        # Consistent key ordering for predictable output
        return orjson.dumps(
            content,
            option=orjson.OPT_SORT_KEYS | orjson.OPT_NON_STR_KEYS,
        )
