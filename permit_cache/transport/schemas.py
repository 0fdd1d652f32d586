"""
Response bodies returned by the decision backend.
"""

from typing import List

from pydantic import BaseModel, ConfigDict, Field, StrictBool

from ..constants import BULK_RESPONSE_FIELD


class SingleCheckResponse(BaseModel):
    """Body of a single permission check: ``{"permitted": bool}``."""

    model_config = ConfigDict(extra="ignore")

    permitted: StrictBool


class BulkCheckResponse(BaseModel):
    """Body of a bulk permission check: ``{"permittedList": [bool, ...]}``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    permitted_list: List[StrictBool] = Field(alias=BULK_RESPONSE_FIELD)
