"""Turn a domain agent's tool-call trace into canonical records.

The trace is an unordered bag of tool invocations and tool outputs. Outputs
are correlated back to their invocation by call id, decoded according to one
of a closed set of payload encodings, and each row is normalised by the
normaliser registered for the agent's domain. Anything that cannot be decoded
is logged and skipped; extraction itself never raises.
"""
from __future__ import annotations

import hashlib
import json
import logging
import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from langchain_core.messages import AIMessage, BaseMessage, ToolMessage
from pydantic import ValidationError

from travel_concierge.core.errors import ExtractionFailure
from travel_concierge.core.schemas import (
    UNRATED,
    CanonicalRecord,
    ContactInfo,
    Coordinates,
    Domain,
    Location,
)

logger = logging.getLogger(__name__)

_CODE_BLOCK_PATTERN = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.DOTALL)


# ---------------------------------------------------------------------------
# Trace entries
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class ToolInvocation:
    call_id: str
    name: str
    args: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True, slots=True)
class ToolOutput:
    call_id: str
    payload: Any
    name: Optional[str] = None


TraceEntry = Union[ToolInvocation, ToolOutput]


def _entry_from_mapping(item: Mapping[str, Any]) -> Optional[TraceEntry]:
    """Accept plain-dict trace items from runners that do not speak LangChain."""

    kind = item.get("type")
    call_id = item.get("call_id") or item.get("callId") or item.get("tool_call_id")
    if not call_id:
        return None
    if kind in ("tool_call", "function_call"):
        args = item.get("args") or item.get("arguments") or {}
        if isinstance(args, str):
            try:
                args = json.loads(args)
            except json.JSONDecodeError:
                args = {}
        return ToolInvocation(call_id=str(call_id), name=str(item.get("name") or ""), args=args)
    if kind in ("tool_output", "function_call_output", "function_call_result"):
        payload = item["output"] if "output" in item else item.get("payload")
        return ToolOutput(call_id=str(call_id), payload=payload, name=item.get("name"))
    return None


def trace_from_messages(messages: Iterable[Union[BaseMessage, Mapping[str, Any]]]) -> List[TraceEntry]:
    """Flatten agent messages into invocation and output entries."""

    entries: List[TraceEntry] = []
    for message in messages:
        if isinstance(message, AIMessage):
            for call in message.tool_calls:
                if call.get("id"):
                    entries.append(
                        ToolInvocation(call_id=call["id"], name=call["name"], args=call.get("args") or {})
                    )
        elif isinstance(message, ToolMessage):
            payload = message.artifact if message.artifact is not None else message.content
            entries.append(ToolOutput(call_id=message.tool_call_id, payload=payload, name=message.name))
        elif isinstance(message, Mapping):
            entry = _entry_from_mapping(message)
            if entry is not None:
                entries.append(entry)
    return entries


# ---------------------------------------------------------------------------
# Payload encodings
# ---------------------------------------------------------------------------


class PayloadEncoding(str, Enum):
    """How a tool output payload reached us; classified in declaration order."""

    TEXT_ENVELOPE = "text_envelope"
    OBJECT = "object"
    JSON_TEXT = "json_text"


def _is_text_block(value: Any) -> bool:
    return (
        isinstance(value, Mapping)
        and isinstance(value.get("text"), str)
        and set(value) <= {"type", "text"}
        and value.get("type", "text") == "text"
    )


def classify_payload(payload: Any) -> Optional[PayloadEncoding]:
    if _is_text_block(payload):
        return PayloadEncoding.TEXT_ENVELOPE
    if isinstance(payload, list) and len(payload) == 1 and _is_text_block(payload[0]):
        return PayloadEncoding.TEXT_ENVELOPE
    if isinstance(payload, Mapping):
        return PayloadEncoding.OBJECT
    if isinstance(payload, str):
        return PayloadEncoding.JSON_TEXT
    return None


def _loads(text: str) -> Any:
    stripped = text.strip()
    fenced = _CODE_BLOCK_PATTERN.match(stripped)
    if fenced:
        stripped = fenced.group(1)
    try:
        return json.loads(stripped)
    except json.JSONDecodeError as exc:
        raise ExtractionFailure(f"Tool output is not valid JSON: {exc}") from exc


def _decode_envelope(payload: Any) -> Any:
    block = payload[0] if isinstance(payload, list) else payload
    return _loads(block["text"])


def _decode_object(payload: Any) -> Any:
    return dict(payload)


def _decode_json_text(payload: Any) -> Any:
    return _loads(payload)


_DECODERS: Dict[PayloadEncoding, Callable[[Any], Any]] = {
    PayloadEncoding.TEXT_ENVELOPE: _decode_envelope,
    PayloadEncoding.OBJECT: _decode_object,
    PayloadEncoding.JSON_TEXT: _decode_json_text,
}


def decode_payload(payload: Any) -> Dict[str, Any]:
    """Decode a tool output payload into the search response mapping."""

    encoding = classify_payload(payload)
    if encoding is None:
        raise ExtractionFailure(f"Unsupported tool output type: {type(payload).__name__}")
    decoded = _DECODERS[encoding](payload)
    if not isinstance(decoded, Mapping):
        raise ExtractionFailure(f"Decoded {encoding.value} payload is {type(decoded).__name__}, not an object")
    return dict(decoded)


# ---------------------------------------------------------------------------
# Field coercion
# ---------------------------------------------------------------------------


def _populated(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, dict)) and not value:
        return False
    return True


def first_populated(row: Mapping[str, Any], fields: Sequence[str]) -> Any:
    for name in fields:
        value = row.get(name)
        if _populated(value):
            return value
    return None


def coerce_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().replace(",", "."))
        except ValueError:
            return None
    else:
        return None
    return None if math.isnan(number) or math.isinf(number) else number


def coerce_rating(value: Any) -> float:
    rating = coerce_float(value)
    if rating is None:
        return UNRATED
    return min(max(rating, 0.0), 5.0)


def coerce_strings(value: Any) -> List[str]:
    if isinstance(value, str):
        return [value] if value.strip() else []
    if isinstance(value, (list, tuple)):
        return [str(item) for item in value if _populated(item)]
    return []


def coerce_price(value: Any) -> Optional[str]:
    if not _populated(value) or isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value).strip() or None


def coerce_coordinates(value: Any) -> Optional[Coordinates]:
    lat = lng = None
    if isinstance(value, Mapping):
        lat = coerce_float(first_populated(value, ("lat", "latitude")))
        lng = coerce_float(first_populated(value, ("lng", "lon", "long", "longitude")))
    elif isinstance(value, str) and "," in value:
        left, _, right = value.partition(",")
        lat, lng = coerce_float(left), coerce_float(right)
    elif isinstance(value, (list, tuple)) and len(value) == 2:
        lat, lng = coerce_float(value[0]), coerce_float(value[1])
    if lat is None or lng is None:
        return None
    try:
        return Coordinates(lat=lat, lng=lng)
    except ValidationError:
        return None


def stable_source_id(domain: Domain, name: str) -> str:
    digest = hashlib.sha256(f"{domain.value}:{name.strip().lower()}".encode("utf-8")).hexdigest()
    return f"anon-{digest[:16]}"


# ---------------------------------------------------------------------------
# Per-domain normalisers
# ---------------------------------------------------------------------------


def _plain_location(row: Mapping[str, Any], fields: Sequence[str]) -> str:
    value = first_populated(row, fields)
    return str(value).strip() if value is not None else ""


def _route_location(row: Mapping[str, Any], fields: Sequence[str]) -> str:
    departure = row.get("departure_location")
    arrival = row.get("arrival_location")
    if _populated(departure) and _populated(arrival):
        return f"{departure} → {arrival}"
    return _plain_location(row, fields)


@dataclass(frozen=True, slots=True)
class RecordNormalizer:
    """Synonym tables that map one domain's rows onto ``CanonicalRecord``."""

    domain: Domain
    amenity_fields: Tuple[str, ...]
    rating_fields: Tuple[str, ...] = ("rating", "average_rating")
    price_fields: Tuple[str, ...] = ("price_range", "price")
    location_fields: Tuple[str, ...] = ("location", "city", "address")
    website_fields: Tuple[str, ...] = ("website", "booking_url", "reservation_url")
    image_fields: Tuple[str, ...] = ("gallery_urls", "images", "primary_image_url")
    location_builder: Callable[[Mapping[str, Any], Sequence[str]], str] = _plain_location

    def normalize(self, row: Mapping[str, Any]) -> CanonicalRecord:
        name = str(row.get("name") or "").strip()
        if not name:
            raise ExtractionFailure("row has no name")

        raw_id = row.get("id")
        source_id = str(raw_id) if _populated(raw_id) else stable_source_id(self.domain, name)

        coordinates = coerce_coordinates(row.get("coordinates"))
        if coordinates is None:
            coordinates = coerce_coordinates(row)

        website = first_populated(row, self.website_fields)
        return CanonicalRecord(
            id=f"{self.domain.value}:{source_id}",
            source_id=source_id,
            name=name,
            domain=self.domain,
            description=str(row.get("description") or ""),
            location=Location(
                text=self.location_builder(row, self.location_fields),
                coordinates=coordinates,
            ),
            price_range=coerce_price(first_populated(row, self.price_fields)),
            rating=coerce_rating(first_populated(row, self.rating_fields)),
            amenities=coerce_strings(first_populated(row, self.amenity_fields)),
            images=coerce_strings(first_populated(row, self.image_fields)),
            contact=ContactInfo(
                phone=str(row["phone"]) if _populated(row.get("phone")) else None,
                email=str(row["email"]) if _populated(row.get("email")) else None,
                website=str(website) if website is not None else None,
            ),
        )


NORMALIZERS: Dict[Domain, RecordNormalizer] = {
    Domain.LODGING: RecordNormalizer(
        domain=Domain.LODGING,
        amenity_fields=("amenities", "features", "room_types"),
        rating_fields=("rating", "star_rating", "average_rating"),
        price_fields=("price_range", "price_per_night", "price"),
    ),
    Domain.DINING: RecordNormalizer(
        domain=Domain.DINING,
        amenity_fields=("menu_highlights", "amenities", "features", "dietary_options"),
        price_fields=("price_range", "price_per_person", "price"),
    ),
    Domain.ACTIVITY: RecordNormalizer(
        domain=Domain.ACTIVITY,
        amenity_fields=("includes", "highlights", "amenities", "features"),
        price_fields=("price_range", "price_per_person", "base_price", "price"),
    ),
    Domain.TRANSPORT: RecordNormalizer(
        domain=Domain.TRANSPORT,
        amenity_fields=("features", "amenities", "includes", "vehicle_types"),
        price_fields=("price_range", "base_price", "price_per_person", "price"),
        location_builder=_route_location,
    ),
}


# ---------------------------------------------------------------------------
# Extractor
# ---------------------------------------------------------------------------


@dataclass(slots=True)
class ExtractionReport:
    """Records pulled from a trace plus the outcome of each search call."""

    records: List[CanonicalRecord] = field(default_factory=list)
    succeeded_calls: int = 0
    failed_calls: List[str] = field(default_factory=list)

    @property
    def backend_failed(self) -> bool:
        """True when every search call that answered reported a failure."""

        return bool(self.failed_calls) and self.succeeded_calls == 0


def _as_entries(trace: Iterable[Union[TraceEntry, BaseMessage, Mapping[str, Any]]]) -> List[TraceEntry]:
    entries: List[TraceEntry] = []
    for item in trace:
        if isinstance(item, (ToolInvocation, ToolOutput)):
            entries.append(item)
        else:
            entries.extend(trace_from_messages([item]))
    return entries


class ResultExtractor:
    """Parse a domain agent's trace into canonical records."""

    def __init__(self, normalizers: Optional[Mapping[Domain, RecordNormalizer]] = None) -> None:
        self.normalizers = dict(normalizers or NORMALIZERS)

    def extract(
        self,
        domain: Domain,
        trace: Iterable[Union[TraceEntry, BaseMessage, Mapping[str, Any]]],
    ) -> List[CanonicalRecord]:
        return self.collect(domain, trace).records

    def collect(
        self,
        domain: Domain,
        trace: Iterable[Union[TraceEntry, BaseMessage, Mapping[str, Any]]],
    ) -> ExtractionReport:
        entries = _as_entries(trace)

        outputs: Dict[str, ToolOutput] = {}
        for entry in entries:
            if isinstance(entry, ToolOutput):
                outputs.setdefault(entry.call_id, entry)

        report = ExtractionReport()
        seen: set[str] = set()
        for entry in entries:
            if not isinstance(entry, ToolInvocation) or entry.name not in domain.search_tools:
                continue
            output = outputs.get(entry.call_id)
            if output is None:
                logger.debug(f"No output recorded for {entry.name} call {entry.call_id}")
                continue
            for record in self._records_from_output(domain, entry, output, report):
                if record.id not in seen:
                    seen.add(record.id)
                    report.records.append(record)

        logger.info(
            f"Extracted {len(report.records)} {domain.value} records from {len(entries)} trace entries"
        )
        return report

    def _records_from_output(
        self,
        domain: Domain,
        invocation: ToolInvocation,
        output: ToolOutput,
        report: ExtractionReport,
    ) -> List[CanonicalRecord]:
        try:
            response = decode_payload(output.payload)
        except ExtractionFailure as exc:
            logger.warning(f"Skipping {invocation.name} output {invocation.call_id}: {exc}")
            return []

        rows = response.get("data")
        if not response.get("success"):
            reason = response.get("error") or response.get("message") or "search failed"
            logger.debug(f"{invocation.name} call {invocation.call_id} failed: {reason}")
            report.failed_calls.append(str(reason))
            return []
        report.succeeded_calls += 1
        if not isinstance(rows, list):
            logger.debug(f"{invocation.name} call {invocation.call_id} returned no data list")
            return []

        normalizer = self.normalizers[domain]
        records: List[CanonicalRecord] = []
        for idx, row in enumerate(rows):
            if not isinstance(row, Mapping):
                logger.debug(f"Skipping {domain.value} row at position {idx}; got {type(row).__name__}")
                continue
            try:
                records.append(normalizer.normalize(row))
            except (ExtractionFailure, ValidationError) as exc:
                logger.warning(f"Skipping {domain.value} row at position {idx}: {exc}")
        return records
