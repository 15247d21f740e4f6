from __future__ import annotations

from dataclasses import dataclass

# Clients may suffix field keys to keep them unique inside one view:
# "user_email--dk--a62a8247". Backends only know the part before the glue.
FIELD_ID_GLUE = "--dk--"


def strip_field_key(key: str) -> str:
    return str(key or "").split(FIELD_ID_GLUE, 1)[0]


def humanize_key(key: str) -> str:
    phrase = " ".join(token for token in str(key or "").replace("-", "_").split("_") if token)
    return phrase[:1].upper() + phrase[1:] if phrase else str(key or "")


@dataclass(frozen=True)
class Field:
    key: str
    label: str
    parent: str | None = None

    def to_dict(self) -> dict:
        return {"id": self.key, "label": self.label, "parent": self.parent}


def ensure_unique_keys(fields: list[Field]) -> list[Field]:
    """Raises ``ValueError`` naming the first key that appears twice."""
    seen: set[str] = set()
    for field in fields:
        if field.key in seen:
            raise ValueError(f'Duplicate field key "{field.key}"')
        seen.add(field.key)
    return fields
