from __future__ import annotations

from decimal import Decimal, InvalidOperation
from typing import Annotated, Any, Literal, Mapping, Union

from pydantic import BaseModel, ConfigDict, Field

from chat_search_sync.errors import ShapingError


class StringValue(BaseModel):
    """``{"S": "..."}``"""

    model_config = ConfigDict(frozen=True)

    tag: Literal["S"] = "S"
    value: str


class NumberValue(BaseModel):
    """``{"N": "123"}``; the number is kept as its decimal string."""

    model_config = ConfigDict(frozen=True)

    tag: Literal["N"] = "N"
    value: str

    def as_int(self) -> int:
        try:
            return int(Decimal(self.value))
        except (InvalidOperation, ValueError, OverflowError) as e:
            raise ShapingError(f"not a number: {self.value!r}") from e


class BoolValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: Literal["BOOL"] = "BOOL"
    value: bool


class NullValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: Literal["NULL"] = "NULL"


class StringSetValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: Literal["SS"] = "SS"
    value: tuple[str, ...]


class NumberSetValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: Literal["NS"] = "NS"
    value: tuple[str, ...]


class BinaryValue(BaseModel):
    """``{"B": "..."}``; the payload stays base64-encoded."""

    model_config = ConfigDict(frozen=True)

    tag: Literal["B"] = "B"
    value: str


class BinarySetValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: Literal["BS"] = "BS"
    value: tuple[str, ...]


class ListValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: Literal["L"] = "L"
    value: tuple[AttributeValue, ...]


class MapValue(BaseModel):
    model_config = ConfigDict(frozen=True)

    tag: Literal["M"] = "M"
    value: dict[str, AttributeValue]


AttributeValue = Annotated[
    Union[
        StringValue,
        NumberValue,
        BoolValue,
        NullValue,
        StringSetValue,
        NumberSetValue,
        BinaryValue,
        BinarySetValue,
        ListValue,
        MapValue,
    ],
    Field(discriminator="tag"),
]

ListValue.model_rebuild()
MapValue.model_rebuild()


def parse_attribute_value(raw: Any) -> AttributeValue:
    """Decode one stream-encoded value such as ``{"N": "42"}``.

    Args:
        raw (Any): a mapping holding exactly one type tag.

    Returns:
        AttributeValue: the matching tagged variant.

    Raises:
        ShapingError: unknown tag, several tags, or a payload of the wrong type.
    """
    if not isinstance(raw, Mapping) or len(raw) != 1:
        raise ShapingError(f"expected a single-tag attribute value, got {raw!r}")

    (tag, payload), = raw.items()
    if tag == "S" and isinstance(payload, str):
        return StringValue(value=payload)
    if tag == "N" and isinstance(payload, (str, int, float)) and not isinstance(payload, bool):
        number = NumberValue(value=str(payload))
        number.as_int()
        return number
    if tag == "BOOL" and isinstance(payload, bool):
        return BoolValue(value=payload)
    if tag == "NULL":
        return NullValue()
    if tag == "SS" and isinstance(payload, list) and all(isinstance(v, str) for v in payload):
        return StringSetValue(value=tuple(payload))
    if tag == "NS" and isinstance(payload, list):
        numbers = tuple(str(v) for v in payload)
        for number in numbers:
            NumberValue(value=number).as_int()
        return NumberSetValue(value=numbers)
    if tag == "B" and isinstance(payload, str):
        return BinaryValue(value=payload)
    if tag == "BS" and isinstance(payload, list) and all(isinstance(v, str) for v in payload):
        return BinarySetValue(value=tuple(payload))
    if tag == "L" and isinstance(payload, list):
        return ListValue(value=tuple(parse_attribute_value(item) for item in payload))
    if tag == "M" and isinstance(payload, Mapping):
        return MapValue(value=parse_attribute_map(payload))
    raise ShapingError(f"unsupported attribute value {tag!r}: {payload!r}")


def parse_attribute_map(raw: Mapping[str, Any]) -> dict[str, AttributeValue]:
    return {name: parse_attribute_value(value) for name, value in raw.items()}


class RecordImage(BaseModel):
    """A before/after snapshot of one record, keyed by field name."""

    model_config = ConfigDict(frozen=True)

    attributes: dict[str, AttributeValue] = Field(default_factory=dict)

    @classmethod
    def from_stream(cls, raw: Mapping[str, Any]) -> "RecordImage":
        return cls(attributes=parse_attribute_map(raw))

    def has(self, name: str) -> bool:
        """True when the field is present and not an explicit NULL."""
        value = self.attributes.get(name)
        return value is not None and not isinstance(value, NullValue)

    def is_null(self, name: str) -> bool:
        return not self.has(name)

    def get(self, name: str) -> AttributeValue | None:
        return self.attributes.get(name) if self.has(name) else None

    def string(self, name: str) -> str | None:
        """Return a string field, or None when absent.

        Raises:
            ShapingError: the field is present with another type.
        """
        value = self.get(name)
        if value is None:
            return None
        if not isinstance(value, StringValue):
            raise ShapingError(f"field {name!r} must be a string, got {value.tag}")
        return value.value

    def number(self, name: str) -> int | None:
        value = self.get(name)
        if value is None:
            return None
        if not isinstance(value, NumberValue):
            raise ShapingError(f"field {name!r} must be a number, got {value.tag}")
        return value.as_int()

    def items(self, name: str) -> tuple[AttributeValue, ...]:
        """Return the elements of a list field; an absent field is empty."""
        value = self.get(name)
        if value is None:
            return ()
        if not isinstance(value, ListValue):
            raise ShapingError(f"field {name!r} must be a list, got {value.tag}")
        return value.value


def to_python(value: AttributeValue) -> Any:
    """Unwrap a tagged value into plain Python data.

    Numbers become ``int`` when integral and ``float`` otherwise.
    """
    if isinstance(value, NumberValue):
        number = Decimal(value.value)
        return int(number) if number == number.to_integral_value() else float(number)
    if isinstance(value, NumberSetValue):
        return [to_python(NumberValue(value=item)) for item in value.value]
    if isinstance(value, (StringSetValue, BinarySetValue)):
        return list(value.value)
    if isinstance(value, ListValue):
        return [to_python(item) for item in value.value]
    if isinstance(value, MapValue):
        return {name: to_python(item) for name, item in value.value.items()}
    if isinstance(value, NullValue):
        return None
    return value.value
