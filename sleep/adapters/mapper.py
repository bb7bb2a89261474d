"""Source JSON ↔ SleepSample mapper.

Inbound anti-corruption layer: translates the health-data service's
sample payloads into SleepSample, and query arguments into its request
parameters.

Payload shape:
    {"data": [{"uuid": ..., "start_date": ISO-8601, "end_date": ISO-8601,
               "value": int, "metadata": {...}}]}
"""

from datetime import datetime
from typing import Any

from sleep.domain.models import SleepCategory, SleepSample


def _format_iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


class SampleMapper:
    def parse(self, raw_response: Any) -> list[SleepSample]:
        """Parse a sample listing into SleepSample records.

        Raises ValueError (pydantic ValidationError) if the payload is not an
        object or a record is malformed.
        """
        if not isinstance(raw_response, dict):
            raise ValueError("sample response is not a JSON object")
        records = raw_response.get("data")
        if not isinstance(records, list):
            raise ValueError("sample response has no 'data' array")
        return [SleepSample.model_validate(record) for record in records]

    def dump(self, samples: list[SleepSample]) -> dict[str, Any]:
        return {"data": [sample.model_dump(mode="json") for sample in samples]}

    def query_params(
        self,
        start: datetime | None,
        end: datetime | None,
        category: SleepCategory | None,
        limit: int | None,
        ascending: bool,
    ) -> dict[str, Any]:
        params: dict[str, Any] = {
            "start": _format_iso(start),
            "end": _format_iso(end),
            "value": int(category) if category is not None else None,
            "limit": limit,
            "sort": "start_date" if ascending else "-start_date",
        }
        return {k: v for k, v in params.items() if v is not None}
