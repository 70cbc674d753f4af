"""Unit tests for the property codec engine."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

import pytest
from bson import Binary, Decimal128, ObjectId
from pydantic import BaseModel

from doc_query.core.enums import UuidRepresentation
from doc_query.core.exceptions import DecodeError, DiscriminatorError, UnmappedTypeError
from doc_query.core.options import MapperOptions
from doc_query.mapping.builder import embedded, entity
from doc_query.mapping.codecs import decode_enum, decode_scalar, encode_key
from doc_query.mapping.mapper import Mapper

# --- Test models ---


class Color(Enum):
    RED = "r"
    GREEN = "g"


@dataclass
class Address:
    street: str = ""
    city: str = ""


@dataclass
class Kitchen:
    id: ObjectId | None = None
    title: str = ""
    count: int = 0
    price: Decimal | None = None
    token: UUID | None = None
    opened: date | None = None
    created: datetime | None = None
    color: Color = Color.RED
    tags: list[str] = field(default_factory=list)
    scores: set[int] = field(default_factory=set)
    pair: tuple[str, int] | None = None
    names: dict[int, str] = field(default_factory=dict)
    by_color: dict[Color, int] = field(default_factory=dict)
    address: Address | None = None


@dataclass
class Bag:
    id: str
    items: list[str]
    labels: dict[str, int] | None


@dataclass
class Shape:
    name: str = ""


@dataclass
class Circle(Shape):
    radius: float = 0.0


@dataclass
class Square(Shape):
    side: float = 0.0


@dataclass
class Drawing:
    id: str = ""
    shapes: list[Shape] = field(default_factory=list)
    main: Shape | None = None


class Animal(ABC):
    @abstractmethod
    def sound(self) -> str: ...


@dataclass
class Dog(Animal):
    name: str = ""

    def sound(self) -> str:
        return "woof"


@dataclass
class Zoo:
    id: str = ""
    animals: list[Animal] = field(default_factory=list)


@dataclass
class Loose:
    id: str = ""
    extra: Any = None


@dataclass
class Derived:
    id: str = ""
    width: int = 0
    area: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self.area = self.width * 2


class Wallet(BaseModel):
    id: str
    balance: Decimal = Decimal(0)


@pytest.fixture
def codec_mapper(simple_mapper: Mapper) -> Mapper:
    simple_mapper.map(
        entity(Kitchen).build(),
        entity(Drawing).build(),
        embedded(Shape).build(),
        embedded(Circle).build(),
        embedded(Square).build(),
    )
    return simple_mapper


# --- Scalars ---


class TestScalarCodec:
    def test_wire_native_values(self, codec_mapper: Mapper) -> None:
        token = UUID("12345678-1234-5678-1234-567812345678")
        kitchen = Kitchen(
            id=ObjectId(),
            price=Decimal("9.99"),
            token=token,
            opened=date(2024, 5, 1),
            color=Color.GREEN,
        )
        doc = codec_mapper.to_document(kitchen)
        assert doc["price"] == Decimal128("9.99")
        assert isinstance(doc["token"], Binary)
        assert doc["token"].subtype == 4
        assert doc["opened"] == datetime(2024, 5, 1)
        assert doc["color"] == "GREEN"

    def test_legacy_uuid_representation(self) -> None:
        mapper = Mapper(MapperOptions(uuid_representation=UuidRepresentation.PYTHON_LEGACY))
        mapper.map(entity(Kitchen).build())
        doc = mapper.to_document(Kitchen(id=ObjectId(), token=UUID(int=7)))
        assert doc["token"].subtype == 3
        assert mapper.from_document(Kitchen, doc).token == UUID(int=7)

    @pytest.mark.parametrize(
        ("raw", "target", "expected"),
        [
            ("42", int, 42),
            (42.0, int, 42),
            ("3.5", float, 3.5),
            ("true", bool, True),
            (7, str, "7"),
            ("5f1d7b9e8b3e4a2b1c0d9e8f", ObjectId, ObjectId("5f1d7b9e8b3e4a2b1c0d9e8f")),
            (
                "12345678-1234-5678-1234-567812345678",
                UUID,
                UUID("12345678-1234-5678-1234-567812345678"),
            ),
            ("2024-05-01T10:30:00", datetime, datetime(2024, 5, 1, 10, 30)),
            (86_400_000, datetime, datetime(1970, 1, 2)),
            ("2024-05-01", date, date(2024, 5, 1)),
            (datetime(2024, 5, 1, 8), date, date(2024, 5, 1)),
            (Decimal128("1.25"), Decimal, Decimal("1.25")),
            ("1.25", Decimal, Decimal("1.25")),
        ],
    )
    def test_decode_scalar_accepts_legacy_forms(self, raw: Any, target: type, expected: Any) -> None:
        assert decode_scalar(raw, target) == expected

    @pytest.mark.parametrize(
        ("raw", "target"),
        [("abc", int), ("nope", ObjectId), ([1], str), (True, float), ("x", UUID)],
    )
    def test_decode_scalar_failures(self, raw: Any, target: type) -> None:
        with pytest.raises(DecodeError):
            decode_scalar(raw, target)

    def test_enum_by_name_then_value(self) -> None:
        assert decode_enum("GREEN", Color) is Color.GREEN
        assert decode_enum("g", Color) is Color.GREEN
        with pytest.raises(DecodeError, match="no such constant"):
            decode_enum("BLUE", Color)

    def test_encode_key(self) -> None:
        oid = ObjectId()
        assert encode_key(1) == "1"
        assert encode_key(Color.RED) == "RED"
        assert encode_key(date(2024, 1, 2)) == "2024-01-02"
        assert encode_key(oid) == str(oid)


# --- Containers ---


class TestContainerCodec:
    def test_round_trip_every_shape(self, codec_mapper: Mapper) -> None:
        kitchen = Kitchen(
            id=ObjectId(),
            title="main",
            count=3,
            price=Decimal("12.50"),
            token=UUID(int=1),
            opened=date(2023, 1, 1),
            created=datetime(2023, 1, 1, 12, 0),
            color=Color.GREEN,
            tags=["a", "b"],
            scores={1, 2, 3},
            pair=("x", 1),
            names={1: "one", 2: "two"},
            by_color={Color.RED: 1, Color.GREEN: 2},
            address=Address("Main St", "Springfield"),
        )
        doc = codec_mapper.to_document(kitchen)
        assert codec_mapper.from_document(Kitchen, doc) == kitchen

    def test_int_keyed_map(self, codec_mapper: Mapper) -> None:
        kitchen = Kitchen(id=ObjectId(), names={1: "I'm 1", 2: "I'm 2"})
        doc = codec_mapper.to_document(kitchen)
        assert doc["names"] == {"1": "I'm 1", "2": "I'm 2"}
        assert codec_mapper.from_document(Kitchen, doc).names == {1: "I'm 1", 2: "I'm 2"}

    def test_fixed_tuple_and_set(self, codec_mapper: Mapper) -> None:
        doc = {"_id": ObjectId(), "pair": ["a", "2"], "scores": [3, 1, 3]}
        kitchen = codec_mapper.from_document(Kitchen, doc)
        assert kitchen.pair == ("a", 2)
        assert kitchen.scores == {1, 3}

    def test_empty_containers_omitted(self, codec_mapper: Mapper) -> None:
        doc = codec_mapper.to_document(Kitchen(id=ObjectId()))
        assert "tags" not in doc
        assert "names" not in doc

    def test_store_empties(self) -> None:
        mapper = Mapper(MapperOptions(store_empties=True))
        doc = mapper.to_document(Kitchen(id=ObjectId()))
        assert doc["tags"] == []
        assert doc["names"] == {}

    def test_nulls_omitted_unless_configured(self) -> None:
        assert "price" not in Mapper().to_document(Kitchen(id=ObjectId()))
        doc = Mapper(MapperOptions(store_nulls=True)).to_document(Kitchen(id=ObjectId()))
        assert doc["price"] is None

    def test_absent_sequence_decodes_empty(self, mapper: Mapper) -> None:
        mapper.map(entity(Bag).build())
        bag = mapper.from_document(Bag, {"_id": "b1"})
        assert bag.items == []
        assert bag.labels is None

    def test_null_sequence_decodes_empty(self, codec_mapper: Mapper) -> None:
        kitchen = codec_mapper.from_document(Kitchen, {"_id": ObjectId(), "tags": None})
        assert kitchen.tags == []

    def test_absent_field_keeps_default(self, codec_mapper: Mapper) -> None:
        kitchen = codec_mapper.from_document(Kitchen, {"_id": ObjectId()})
        assert kitchen.color is Color.RED
        assert kitchen.count == 0

    def test_wrong_shape(self, codec_mapper: Mapper) -> None:
        with pytest.raises(DecodeError, match="expected an array"):
            codec_mapper.from_document(Kitchen, {"_id": ObjectId(), "tags": "a"})


# --- Entities ---


class TestEntityCodec:
    def test_top_level_discriminator(self, codec_mapper: Mapper) -> None:
        doc = codec_mapper.to_document(Kitchen(id=ObjectId()))
        assert list(doc)[:2] == ["_id", "_t"]
        assert doc["_t"] == "Kitchen"

    def test_top_level_discriminator_disabled(self, simple_mapper: Mapper) -> None:
        simple_mapper.map(entity(Kitchen).use_discriminator(False).build())
        assert "_t" not in simple_mapper.to_document(Kitchen(id=ObjectId()))

    def test_nested_exact_type_has_no_discriminator(self, codec_mapper: Mapper) -> None:
        doc = codec_mapper.to_document(Kitchen(id=ObjectId(), address=Address("a", "b")))
        assert doc["address"] == {"street": "a", "city": "b"}

    def test_polymorphic_elements_carry_discriminator(self, codec_mapper: Mapper) -> None:
        drawing = Drawing("d1", [Circle("c", 1.0), Square("s", 2.0), Shape("plain")])
        doc = codec_mapper.to_document(drawing)
        assert doc["shapes"] == [
            {"_t": "Circle", "name": "c", "radius": 1.0},
            {"_t": "Square", "name": "s", "side": 2.0},
            {"_t": "Shape", "name": "plain"},
        ]
        assert codec_mapper.from_document(Drawing, doc) == drawing

    def test_subtype_in_single_slot(self, codec_mapper: Mapper) -> None:
        doc = codec_mapper.to_document(Drawing("d1", main=Square("s", 3.0)))
        assert doc["main"]["_t"] == "Square"
        assert codec_mapper.from_document(Drawing, doc).main == Square("s", 3.0)

    def test_missing_discriminator_uses_declared_type(self, codec_mapper: Mapper) -> None:
        doc = {"_id": "d1", "_t": "Drawing", "main": {"name": "x"}}
        assert codec_mapper.from_document(Drawing, doc).main == Shape("x")

    def test_unknown_discriminator(self, codec_mapper: Mapper) -> None:
        doc = {"_id": "d1", "main": {"_t": "Triangle", "name": "t"}}
        with pytest.raises(DiscriminatorError, match="Triangle"):
            codec_mapper.from_document(Drawing, doc)

    def test_abstract_type_needs_discriminator(self, simple_mapper: Mapper) -> None:
        simple_mapper.map(entity(Zoo).build(), embedded(Animal).build())
        zoo = Zoo("z", [Dog("rex")])
        doc = simple_mapper.to_document(zoo)
        assert doc["animals"] == [{"_t": "Dog", "name": "rex"}]
        assert simple_mapper.from_document(Zoo, doc) == zoo
        with pytest.raises(DiscriminatorError, match="no discriminator"):
            simple_mapper.from_document(Zoo, {"_id": "z", "animals": [{"name": "rex"}]})

    def test_also_load_names(self, simple_mapper: Mapper) -> None:
        simple_mapper.map(entity(Kitchen).field("title", "t", also_load=["name"]).build())
        kitchen = simple_mapper.from_document(Kitchen, {"_id": ObjectId(), "name": "old"})
        assert kitchen.title == "old"
        assert simple_mapper.to_document(kitchen)["t"] == "old"

    def test_dynamic_values(self, simple_mapper: Mapper) -> None:
        simple_mapper.map(entity(Loose).build())
        doc = simple_mapper.to_document(Loose("l", {"a": [1, Decimal("2")], "b": Address("x", "y")}))
        assert doc["extra"] == {
            "a": [1, Decimal128("2")],
            "b": {"_t": "Address", "street": "x", "city": "y"},
        }
        loose = simple_mapper.from_document(Loose, doc)
        assert loose.extra == {"a": [1, Decimal("2")], "b": Address("x", "y")}

    def test_dynamic_value_with_model_discriminator_key(self, simple_mapper: Mapper) -> None:
        simple_mapper.map(
            entity(Loose).build(),
            embedded(Address).discriminator_key("kind").build(),
        )
        doc = simple_mapper.to_document(Loose("l", [Address("x", "y")]))
        assert doc["extra"] == [{"kind": "Address", "street": "x", "city": "y"}]
        assert simple_mapper.from_document(Loose, doc).extra == [Address("x", "y")]

    def test_dynamic_document_with_unknown_model_key(self, simple_mapper: Mapper) -> None:
        simple_mapper.map(
            entity(Loose).build(),
            embedded(Address).discriminator_key("kind").build(),
        )
        loose = simple_mapper.from_document(Loose, {"_id": "l", "extra": {"kind": "Other"}})
        assert loose.extra == {"kind": "Other"}

    def test_unmapped_dynamic_value(self, simple_mapper: Mapper) -> None:
        simple_mapper.map(entity(Loose).build())
        with pytest.raises(UnmappedTypeError):
            simple_mapper.to_document(Loose("l", object()))

    def test_init_false_fields_not_persisted(self, mapper: Mapper) -> None:
        mapper.map(entity(Derived).build())
        doc = mapper.to_document(Derived("d", width=4))
        assert "area" not in doc
        assert mapper.from_document(Derived, doc).area == 8

    def test_pydantic_model(self, mapper: Mapper) -> None:
        mapper.map(entity(Wallet).build())
        doc = mapper.to_document(Wallet(id="w", balance=Decimal("1.5")))
        assert doc["balance"] == Decimal128("1.5")
        wallet = mapper.from_document(Wallet, doc)
        assert isinstance(wallet, Wallet)
        assert wallet.id == "w"
        assert wallet.balance == Decimal("1.5")

    def test_not_a_document(self, codec_mapper: Mapper) -> None:
        with pytest.raises(DecodeError, match="expected a document"):
            codec_mapper.from_document(Drawing, {"_id": "d", "main": "circle"})
