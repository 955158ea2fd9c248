"""Base model and enum for voltwatch records.

Every record inherits from :class:`VoltBaseModel` which provides:

* ``frozen=True`` so snapshots can be shared between the polling engine
  and its consumers without defensive copies.
* ``extra="ignore"`` so vendor payload additions never break parsing.
* ``populate_by_name=True`` so aliased fields accept both spellings.

String enums inherit from :class:`VoltEnum` which resolves unmapped
values to its ``UNKNOWN`` member instead of raising ``ValueError``.
"""

from __future__ import annotations

import enum

from pydantic import BaseModel, ConfigDict


class VoltEnum(enum.StrEnum):
    """Base for vendor state enums.

    Subclasses that define ``UNKNOWN`` get it back for any value without a
    mapped member. Matching is retried case-insensitively first, because
    the vendor is not consistent about casing (``"online"`` vs ``"Online"``).
    """

    @classmethod
    def _missing_(cls, value: object) -> VoltEnum | None:
        if isinstance(value, str):
            folded = value.strip().lower()
            for member in cls:
                if member.value.lower() == folded:
                    return member
        if "UNKNOWN" in cls.__members__:
            unknown: VoltEnum = cls.__members__["UNKNOWN"]
            return unknown
        return None


class VoltBaseModel(BaseModel):
    """Base for voltwatch records."""

    model_config = ConfigDict(
        frozen=True,
        extra="ignore",
        populate_by_name=True,
    )
