"""Shipment row extraction from TMS screenshots using an Ollama vision model.

The model is asked to read the TMS table one row at a time and answer with
JSON only. The answer is parsed leniently (bare JSON, fenced code block or
the first object in the text) and validated with pydantic before being
turned into ``RawShipment`` rows.
"""

import base64
import json
import logging
import re
from collections.abc import Sequence
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from dispatch.config import settings
from dispatch.services.errors import ExtractionError
from dispatch.services.shipments import RawShipment

logger = logging.getLogger(__name__)


EXTRACTION_PROMPT = """You are analyzing a TMS (Transportation Management System) screenshot showing a table of shipment data.

CRITICAL INSTRUCTIONS:
1. Process the table ONE ROW AT A TIME - each row is a separate shipment
2. NEVER mix data from adjacent rows - align each data field to its correct row
3. Extract ALL visible rows in the screenshot (there may be 20-30+ rows)
4. Read column headers carefully as they may be abbreviated

COLUMN MAPPING (headers may vary slightly):
- "BOL" -> bol (e.g. "919628907", "H0752257"). If the cell is EMPTY or contains only the customer name, use "N/A"
- "Customer" -> customer, the full name (e.g. "VITAAUTX - Vital Farms")
- "Brokerage status" OR "Brokerage" -> brokerageStatus (COVRD, DISPATCH, IN-TRANS, DLVD, Accepted, etc.)
- "Last callin city" -> lastCallinCity, the current truck location (e.g. "South Amboy, NJ"). If empty or unclear, use "N/A"
- "Origin zip" -> originZip, the shipper zip code
- "Dest zip" -> destZip, the receiver zip code
- "Min temp" -> reeferTemp (e.g. "34F", "-10F"). ONLY if the cell has a value; leave it out when the cell is blank

If any other cell is empty or unclear, use "N/A" for that field only.

Respond with ONLY a valid JSON object in this exact format (no other text):
{"shipments": [{"bol": "...", "customer": "...", "lastCallinCity": "...", "brokerageStatus": "...", "originZip": "...", "destZip": "...", "reeferTemp": "..."}]}
"""


class ExtractedShipment(BaseModel):
    """One table row as returned by the vision model."""

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    bol: str = "N/A"
    customer: str
    last_callin_city: str = Field(default="N/A", alias="lastCallinCity")
    brokerage_status: str = Field(alias="brokerageStatus")
    origin_zip: str = Field(default="N/A", alias="originZip")
    dest_zip: str = Field(default="N/A", alias="destZip")
    reefer_temp: str | None = Field(default=None, alias="reeferTemp")

    @field_validator("bol", "last_callin_city", "origin_zip", "dest_zip", mode="before")
    @classmethod
    def null_cell_to_na(cls, v: Any) -> Any:
        """Treat a null cell like an empty one."""
        return "N/A" if v is None else v

    @field_validator("origin_zip", "dest_zip", mode="before")
    @classmethod
    def restore_zip_leading_zeros(cls, v: Any) -> Any:
        """Unquoted zips lose their leading zeros (08832 -> 8832)."""
        if isinstance(v, int) and not isinstance(v, bool):
            return str(v).zfill(5)
        return v

    def to_raw_shipment(self) -> RawShipment:
        return RawShipment.from_dict(self.model_dump())


class ExtractionResponse(BaseModel):
    """Top-level model answer."""

    shipments: list[ExtractedShipment] = Field(default_factory=list)


def parse_model_response(response: str) -> dict[str, Any]:
    """Parse the JSON object out of a model answer.

    Raises:
        ExtractionError: If no JSON object can be found.
    """
    response = response.strip()

    try:
        parsed = json.loads(response)
        if isinstance(parsed, dict):
            return parsed
    except json.JSONDecodeError:
        pass

    fenced = re.search(r"```(?:json)?\s*(\{.*\})\s*```", response, re.DOTALL)
    if fenced:
        try:
            parsed = json.loads(fenced.group(1))
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    start = response.find("{")
    end = response.rfind("}")
    if start != -1 and end > start:
        try:
            parsed = json.loads(response[start : end + 1])
            if isinstance(parsed, dict):
                return parsed
        except json.JSONDecodeError:
            pass

    raise ExtractionError(f"Could not parse JSON from response: {response[:200]}")


class ShipmentExtractor:
    """Client for extracting shipment rows with an Ollama vision model."""

    def __init__(
        self,
        base_url: str | None = None,
        model: str | None = None,
        timeout: int | None = None,
    ) -> None:
        """Initialize the extractor.

        Args:
            base_url: Ollama API base URL. Defaults to settings.ollama_base_url.
            model: Vision model name. Defaults to settings.ollama_vision_model.
            timeout: Request timeout in seconds. Defaults to settings.ollama_timeout.
        """
        self.base_url = (base_url or settings.ollama_base_url).rstrip("/")
        self.model = model or settings.ollama_vision_model
        self.timeout = timeout or settings.ollama_timeout

    async def _generate(self, image: bytes) -> str:
        url = f"{self.base_url}/api/generate"
        payload = {
            "model": self.model,
            "prompt": EXTRACTION_PROMPT,
            "images": [base64.b64encode(image).decode("ascii")],
            "format": "json",
            "stream": False,
            "options": {"temperature": 0},
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(url, json=payload)
                response.raise_for_status()
                data: dict[str, Any] = response.json()
        except httpx.TimeoutException as e:
            logger.error("Extraction request timed out: %s", e)
            raise ExtractionError(f"Request timed out after {self.timeout}s") from e
        except httpx.HTTPStatusError as e:
            logger.error("Extraction HTTP error: %s", e)
            raise ExtractionError(f"HTTP error: {e.response.status_code}") from e
        except httpx.RequestError as e:
            logger.error("Extraction request failed: %s", e)
            raise ExtractionError(f"Request failed: {e}") from e
        except ValueError as e:
            raise ExtractionError("Model returned a non-JSON envelope") from e

        return str(data.get("response", ""))

    async def extract(self, image: bytes) -> list[RawShipment]:
        """Extract shipment rows from one screenshot.

        Args:
            image: PNG/JPEG bytes of the TMS table.

        Returns:
            Raw rows in table order.

        Raises:
            ExtractionError: If the model cannot be reached or its answer
                does not match the expected shape.
        """
        logger.info("Starting shipment data extraction from image")
        answer = await self._generate(image)
        parsed = parse_model_response(answer)

        try:
            extracted = ExtractionResponse.model_validate(parsed)
        except ValidationError as e:
            raise ExtractionError(f"Unexpected extraction shape: {e.error_count()} errors") from e

        shipments = [row.to_raw_shipment() for row in extracted.shipments]
        logger.info("Extracted %d shipments", len(shipments))
        return shipments

    async def extract_many(self, images: Sequence[bytes]) -> list[RawShipment]:
        """Extract rows from several screenshots, concatenated in image order."""
        shipments: list[RawShipment] = []
        for image in images:
            shipments.extend(await self.extract(image))
        return shipments
