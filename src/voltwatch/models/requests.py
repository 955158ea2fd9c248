"""Pydantic request models for client entrypoints.

These models provide a consistent "validate → normalize → execute" flow.
They are used by :class:`voltwatch.client.VoltwatchClient` and the HTTP API.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, field_validator

from voltwatch._constants import CHARGER_ID_ALPHABET, CHARGER_ID_LENGTH


class ChargerIdRequest(BaseModel):
    """Request containing a public charger code.

    Codes are printed on the chargers with a dash in the middle
    (``ABCD-EFGH``); dashes and surrounding whitespace are removed.
    """

    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        validate_default=True,
        str_strip_whitespace=True,
    )

    id: str

    @field_validator("id")
    @classmethod
    def _valid_charger_id(cls, value: str) -> str:
        charger_id = value.strip().replace("-", "")
        if not charger_id:
            raise ValueError("Charger ID is required")
        if len(charger_id) != CHARGER_ID_LENGTH or any(ch not in CHARGER_ID_ALPHABET for ch in charger_id):
            raise ValueError(
                f"Charger ID must be exactly {CHARGER_ID_LENGTH} characters using valid characters "
                "(no lowercase, no 0/O/I)"
            )
        return charger_id
