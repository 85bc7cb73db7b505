import base64
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Union


class EnhancedJSONEncoder(json.JSONEncoder):
    def default(self, obj):
        # Amounts are exact; never go through float
        if isinstance(obj, Decimal):
            return str(obj)
        elif isinstance(obj, (datetime, date)):
            return obj.isoformat()
        elif isinstance(obj, Enum):
            return obj.value
        # Pydantic models serialize with their wire aliases
        elif hasattr(obj, "model_dump"):
            return obj.model_dump(mode="json", by_alias=True)
        return super().default(obj)


def dumps(obj: Any, **kwargs) -> str:
    """JSON dumps with Decimal, datetime and model support."""
    return json.dumps(obj, cls=EnhancedJSONEncoder, **kwargs)


def loads(s: Union[str, bytes, bytearray], **kwargs) -> Any:
    """Standard JSON loads function."""
    return json.loads(s, **kwargs)


def canonical_dumps(obj: Any) -> str:
    """Deterministic compact JSON (sorted keys) used for signing payloads."""
    return json.dumps(obj, cls=EnhancedJSONEncoder, sort_keys=True, separators=(",", ":"))


def b64_json(obj: Any) -> str:
    """Base64 of the JSON encoding, as carried in the X-PAYMENT header."""
    return base64.b64encode(dumps(obj).encode("utf-8")).decode("ascii")
