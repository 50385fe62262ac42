"""Base classes shared by Staccato contracts.

Conventions:
- Field names are snake_case in Python and camelCase on the wire
  (Firestore documents and API payloads alike).
- Datetimes are timezone-aware UTC; they are stored as Firestore timestamps
  and serialized as ISO 8601 in API responses.
- Enums are stored as their string values.
"""

from typing import Any

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class FirestoreModel(BaseModel):
    """Base model with Firestore-friendly serialization.

    - ``to_firestore()`` produces a generic document for the REST client
      (native datetimes, camelCase keys, no ``id``).
    - ``to_api()`` produces a JSON-safe dict for HTTP responses.
    - ``from_firestore()`` hydrates from a generic document dict.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_firestore(self) -> dict[str, Any]:
        """Dump to a Firestore generic document (the ID lives in the path)."""
        data = self.model_dump(by_alias=True, exclude_none=True)
        data.pop("id", None)
        return data

    def to_api(self) -> dict[str, Any]:
        """Dump to a JSON-safe dict for API responses."""
        return self.model_dump(mode="json", by_alias=True)

    @classmethod
    def from_firestore(cls, data: dict[str, Any]) -> "FirestoreModel":
        """Create model instance from a Firestore document dict."""
        return cls.model_validate(data)
