"""Tests for populate/bind/get_file — form payloads onto dataclasses."""

import dataclasses
import json
import logging
from dataclasses import dataclass, field

import pytest

from former import (
    Binder,
    BinderConfig,
    ConversionError,
    DestinationError,
    FormData,
    NoMultipartDataError,
    PayloadParseError,
    SchemaError,
    StructuredDecodeError,
    bind,
    formfield,
    get_file,
    populate,
    populate_form,
)
from former.binding.fields import clear_cache
from former.testing import build_request, encode_multipart, encode_urlencoded
from former.types import Float32, Int8, Int16, Int32, UInt, UInt8

URLENCODED = "application/x-www-form-urlencoded"


def _request(fields: dict, method: str = "POST", path: str = "/"):
    return build_request(method, path, body=encode_urlencoded(fields), content_type=URLENCODED)


def _multipart(fields: dict, files: dict | None = None):
    body, ct = encode_multipart(fields, files)
    return build_request("POST", "/", body=body, content_type=ct)


@pytest.fixture(autouse=True)
def _fresh_cache():
    clear_cache()
    yield
    clear_cache()


# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


@dataclass
class Address:
    street: str = formfield("street", default="")
    city: str = formfield("city", default="")


@dataclass
class User:
    name: str = formfield("name", default="")
    address: Address = field(default_factory=Address)


@dataclass
class Contact:
    phone: str = formfield("phone", default="")
    email: str = formfield("email", default="")


@dataclass
class Person:
    name: str = formfield("name", default="")
    contact: Contact = formfield("contact", default_factory=Contact)


@dataclass
class Settings:
    theme: str = formfield("theme", default="")
    notifications: bool = formfield("notifications", default=False)


@dataclass
class Account:
    settings: Settings = formfield("settings", default_factory=Settings)


@dataclass
class Scalars:
    text: str = formfield("string", default="")
    number: int = formfield("int", default=0)
    small: Int8 = formfield("int8", default=0)
    medium: Int16 = formfield("int16", default=0)
    wide: Int32 = formfield("int32", default=0)
    count: UInt = formfield("uint", default=0)
    byte: UInt8 = formfield("uint8", default=0)
    ratio: Float32 = formfield("float32", default=0.0)
    amount: float = formfield("float64", default=0.0)
    flag: bool = formfield("bool", default=False)


@dataclass
class Collections:
    tags: list[str] = formfield("slice", default_factory=list)
    numbers: list[int] = formfield("numbers", default_factory=list)
    letters: tuple[str, str, str] = formfield("array", default=("", "", ""))
    pairs: dict[str, str] = formfield("map", default_factory=dict)


@dataclass
class Optionals:
    nickname: str | None = formfield("nickname", default=None)
    age: int | None = formfield("age", default=None)
    contact: Contact | None = formfield("contact", default=None)


@dataclass
class Level3:
    value: str = formfield("value", default="")


@dataclass
class Level2:
    level3: Level3 = formfield("level3", default_factory=Level3)


@dataclass
class Level1:
    level2: Level2 = formfield("level2", default_factory=Level2)


@dataclass
class Deep:
    level1: Level1 = formfield("level1", default_factory=Level1)


@dataclass
class Guarded:
    name: str = formfield("name", default="")
    role: str = formfield("-", default="user")
    _token: str = formfield("token", default="")
    notes: str = ""


@dataclass
class Upload:
    title: str = formfield("title", default="")


@dataclass
class Required:
    name: str = formfield("name")
    age: int = formfield("age")


@dataclass(frozen=True)
class FrozenForm:
    name: str = formfield("name", default="")


# ---------------------------------------------------------------------------
# Scalars
# ---------------------------------------------------------------------------


class TestScalars:
    async def test_all_scalar_kinds(self) -> None:
        request = _request(
            {
                "string": "test",
                "int": "42",
                "int8": "8",
                "int16": "16",
                "int32": "32",
                "uint": "64",
                "uint8": "255",
                "float32": "3.5",
                "float64": "6.4",
                "bool": "true",
            }
        )
        target = Scalars()
        await populate(request, target)

        assert target == Scalars(
            text="test",
            number=42,
            small=8,
            medium=16,
            wide=32,
            count=64,
            byte=255,
            ratio=3.5,
            amount=6.4,
            flag=True,
        )

    @pytest.mark.parametrize(("raw", "expected"), [("on", True), ("1", True), ("false", False), ("off", False)])
    async def test_checkbox_values(self, raw: str, expected: bool) -> None:
        target = Scalars(flag=not expected)
        await populate(_request({"bool": raw}), target)
        assert target.flag is expected

    async def test_absent_fields_keep_defaults(self) -> None:
        target = Scalars(text="keep", number=7)
        await populate(_request({"other": "x"}), target)
        assert target.text == "keep"
        assert target.number == 7

    async def test_first_value_wins(self) -> None:
        target = Scalars()
        await populate(_request({"string": ["first", "second"]}), target)
        assert target.text == "first"


# ---------------------------------------------------------------------------
# Collections
# ---------------------------------------------------------------------------


class TestCollections:
    async def test_sequence_in_order(self) -> None:
        target = Collections()
        await populate(_request({"slice": ["a", "b", "c"], "numbers": ["3", "1", "2"]}), target)
        assert target.tags == ["a", "b", "c"]
        assert target.numbers == [3, 1, 2]

    async def test_array_discards_overflow(self) -> None:
        target = Collections()
        await populate(_request({"array": ["a", "b", "c", "d", "e"]}), target)
        assert target.letters == ("a", "b", "c")

    async def test_array_short_input_keeps_zero(self) -> None:
        target = Collections()
        await populate(_request({"array": ["a"]}), target)
        assert target.letters == ("a", "", "")

    async def test_mapping(self) -> None:
        target = Collections()
        await populate(_request({"map": ["key1:value1", "key2:value2"]}), target)
        assert target.pairs == {"key1": "value1", "key2": "value2"}

    async def test_mapping_drops_entries_without_colon(self) -> None:
        target = Collections()
        await populate(_request({"map": ["invalid", "key:value"]}), target)
        assert target.pairs == {"key": "value"}

    async def test_mapping_later_duplicate_key_wins(self) -> None:
        target = Collections()
        await populate(_request({"map": ["a:1", "b:2", "a:3"]}), target)
        assert target.pairs == {"a": "3", "b": "2"}

    async def test_absent_collections_untouched(self) -> None:
        target = Collections(tags=["keep"])
        await populate(_request({}), target)
        assert target.tags == ["keep"]


# ---------------------------------------------------------------------------
# Nested records
# ---------------------------------------------------------------------------


class TestEmbedded:
    async def test_flattened_into_parent(self) -> None:
        target = User()
        await populate(_request({"name": "John", "street": "123 Main St", "city": "New York"}), target)
        assert target.name == "John"
        assert target.address == Address(street="123 Main St", city="New York")


class TestNestedDotPath:
    async def test_dot_path(self) -> None:
        target = Person()
        await populate(
            _request({"name": "Ann", "contact.phone": "123-456-7890", "contact.email": "a@b.c"}),
            target,
        )
        assert target.contact == Contact(phone="123-456-7890", email="a@b.c")

    async def test_bare_key_fallback(self) -> None:
        target = Person()
        await populate(_request({"phone": "555"}), target)
        assert target.contact.phone == "555"

    async def test_deep_nesting(self) -> None:
        target = Deep()
        await populate(_request({"level1.level2.level3.value": "deep"}), target)
        assert target.level1.level2.level3.value == "deep"

    async def test_non_json_value_falls_through(self) -> None:
        target = Person()
        await populate(_request({"contact": "not json", "contact.phone": "1"}), target)
        assert target.contact.phone == "1"


class TestNestedJson:
    async def test_whole_value(self) -> None:
        target = Person()
        payload = json.dumps({"phone": "555", "email": "a@b"})
        await populate(_request({"contact": payload}), target)
        assert target.contact == Contact(phone="555", email="a@b")

    async def test_json_takes_precedence_over_dot_path(self) -> None:
        target = Account()
        payload = json.dumps({"theme": "dark", "notifications": True})
        await populate(_request({"settings": payload, "settings.theme": "light"}), target)
        assert target.settings == Settings(theme="dark", notifications=True)

    async def test_invalid_json_names_field(self) -> None:
        target = Account()
        with pytest.raises(StructuredDecodeError, match="failed to parse JSON for field settings") as info:
            await populate(_request({"settings": "{invalid}"}), target)
        assert info.value.field == "settings"
        assert isinstance(info.value.__cause__, ValueError)

    async def test_json_type_mismatch(self) -> None:
        with pytest.raises(StructuredDecodeError):
            await populate(_request({"settings": '{"notifications": "yes"}'}), Account())

    async def test_json_array_for_record(self) -> None:
        with pytest.raises(StructuredDecodeError, match="array"):
            await populate(_request({"settings": "[1, 2]"}), Account())

    async def test_deeply_nested_json(self) -> None:
        depth = 100_000
        payload = "[" * depth + "]" * depth
        with pytest.raises(StructuredDecodeError, match="nests too deeply") as info:
            await populate(_request({"contact": payload}), Person())
        assert info.value.field == "contact"
        assert isinstance(info.value.__cause__.__cause__, RecursionError)

    async def test_logs_json_decode(self, caplog: pytest.LogCaptureFixture) -> None:
        with caplog.at_level(logging.DEBUG, logger="former.binder"):
            await populate(_request({"settings": "{}"}), Account())
        assert "decoding 'settings' as JSON" in caplog.text


# ---------------------------------------------------------------------------
# Optional fields
# ---------------------------------------------------------------------------


class TestOptionals:
    async def test_absent_stays_none(self) -> None:
        target = Optionals()
        await populate(_request({"unrelated": "x"}), target)
        assert target == Optionals()

    async def test_scalar_allocated(self) -> None:
        target = Optionals()
        await populate(_request({"nickname": "bob", "age": "30"}), target)
        assert target.nickname == "bob"
        assert target.age == 30

    async def test_blank_value_allocates(self) -> None:
        target = Optionals()
        await populate(_request({"nickname": ""}), target)
        assert target.nickname == ""

    async def test_record_allocated_from_child_key(self) -> None:
        target = Optionals()
        await populate(_request({"contact.email": "x@y"}), target)
        assert target.contact == Contact(email="x@y")

    async def test_record_not_allocated_by_bare_child_key(self) -> None:
        target = Optionals()
        await populate(_request({"email": "x@y"}), target)
        assert target.contact is None

    async def test_existing_record_reused(self) -> None:
        existing = Contact(phone="keep")
        target = Optionals(contact=existing)
        await populate(_request({"contact.email": "x@y"}), target)
        assert target.contact is existing
        assert existing == Contact(phone="keep", email="x@y")

    async def test_bad_value(self) -> None:
        with pytest.raises(ConversionError, match="age"):
            await populate(_request({"age": "old"}), Optionals())


# ---------------------------------------------------------------------------
# Excluded fields
# ---------------------------------------------------------------------------


class TestExcluded:
    async def test_skip_marker(self) -> None:
        target = Guarded()
        await populate(_request({"name": "x", "role": "admin", "-": "admin"}), target)
        assert target.role == "user"

    async def test_private_field(self) -> None:
        target = Guarded()
        await populate(_request({"token": "secret", "_token": "secret"}), target)
        assert target._token == ""

    async def test_keyless_field(self) -> None:
        target = Guarded()
        await populate(_request({"notes": "x"}), target)
        assert target.notes == ""


# ---------------------------------------------------------------------------
# Errors
# ---------------------------------------------------------------------------


class TestErrors:
    @pytest.mark.parametrize("dest", [None, 42, "text", {"name": "x"}, User])
    async def test_destination_not_a_record(self, dest: object) -> None:
        request = build_request(body=b"%zz", content_type=URLENCODED)
        # Raised before the (malformed) body is read
        with pytest.raises(DestinationError):
            await populate(request, dest)
        assert request.parsed_form is None

    async def test_frozen_destination(self) -> None:
        with pytest.raises(DestinationError, match="frozen"):
            await populate(_request({"name": "x"}), FrozenForm())

    async def test_conversion_error_names_field(self) -> None:
        with pytest.raises(ConversionError, match="failed to set field number") as info:
            await populate(_request({"int": "notanumber"}), Scalars())
        assert info.value.field == "number"
        assert isinstance(info.value, ValueError)

    async def test_out_of_range(self) -> None:
        with pytest.raises(ConversionError, match="small"):
            await populate(_request({"int8": "128"}), Scalars())

    async def test_bad_sequence_element(self) -> None:
        with pytest.raises(ConversionError, match="numbers"):
            await populate(_request({"numbers": ["1", "two"]}), Collections())

    async def test_malformed_payload(self) -> None:
        request = build_request(body=b"name=%zz", content_type=URLENCODED)
        with pytest.raises(PayloadParseError):
            await populate(request, Scalars())

    async def test_unsupported_field_type(self) -> None:
        @dataclass
        class Odd:
            value: complex = formfield("value", default=0j)

        with pytest.raises(SchemaError, match="Odd.value"):
            await populate(_request({"value": "1"}), Odd())


# ---------------------------------------------------------------------------
# Payload sources
# ---------------------------------------------------------------------------


class TestSources:
    async def test_multipart_text_fields(self) -> None:
        target = Person()
        await populate(_multipart({"name": "Ann", "contact.phone": "9"}), target)
        assert target == Person(name="Ann", contact=Contact(phone="9"))

    async def test_query_string_on_get(self) -> None:
        target = Person()
        await populate(build_request("GET", "/?name=Ann&contact.email=a@b"), target)
        assert target.name == "Ann"
        assert target.contact.email == "a@b"

    async def test_body_value_before_query_value(self) -> None:
        target = Person()
        await populate(_request({"name": "body"}, path="/?name=query"), target)
        assert target.name == "body"

    async def test_query_with_multipart(self) -> None:
        body, ct = encode_multipart({"name": "part"})
        request = build_request("POST", "/?name=query", body=body, content_type=ct)
        target = Person()
        await populate(request, target)
        assert target.name == "query"

    def test_populate_form(self) -> None:
        target = Person()
        populate_form(FormData({"name": ["Ann"], "contact.phone": ["1"]}), target)
        assert target == Person(name="Ann", contact=Contact(phone="1"))


# ---------------------------------------------------------------------------
# bind / Binder
# ---------------------------------------------------------------------------


class TestBind:
    async def test_bind_creates_instance(self) -> None:
        person = await bind(_request({"name": "Ann", "contact.phone": "1"}), Person)
        assert person == Person(name="Ann", contact=Contact(phone="1"))

    async def test_bind_required_fields(self) -> None:
        result = await bind(_request({"name": "Ann"}), Required)
        assert result == Required(name="Ann", age=0)

    async def test_bind_rejects_non_dataclass(self) -> None:
        with pytest.raises(DestinationError):
            await bind(_request({}), dict)


class TestBinderConfig:
    async def test_custom_tag_and_separator(self) -> None:
        @dataclass
        class Inner:
            value: str = field(default="", metadata={"form": "v"})

        @dataclass
        class Outer:
            inner: Inner = field(default_factory=Inner, metadata={"form": "in"})

        binder = Binder(BinderConfig(tag="form", separator="__"))
        target = Outer()
        await binder.populate(_request({"in__v": "ok", "in.v": "wrong"}), target)
        assert target.inner.value == "ok"

    async def test_custom_skip_marker(self) -> None:
        @dataclass
        class Form:
            name: str = formfield("name", default="")
            hidden: str = formfield("skip", default="")

        binder = Binder(BinderConfig(skip_marker="skip"))
        target = Form()
        await binder.populate(_request({"name": "x", "skip": "y"}), target)
        assert target == Form(name="x")

    async def test_max_memory_forwarded(self) -> None:
        binder = Binder(BinderConfig(max_memory=4))
        request = _multipart({"title": "t"}, {"doc": ("d.bin", b"0123456789", "application/octet-stream")})
        await binder.populate(request, Upload())
        assert binder.get_file(request, "doc").file._rolled is True  # type: ignore[attr-defined]

    def test_schema_uses_config(self) -> None:
        assert Binder().schema(Person).keys == ("name", "contact")


# ---------------------------------------------------------------------------
# Files
# ---------------------------------------------------------------------------


class TestGetFile:
    async def test_after_populate(self) -> None:
        request = _multipart({"title": "Doc"}, {"upload": ("test.txt", b"test file content", "text/plain")})
        target = Upload()
        await populate(request, target)

        assert target.title == "Doc"
        upload = get_file(request, "upload")
        assert upload.filename == "test.txt"
        assert upload.content_type == "text/plain"
        assert await upload.read() == b"test file content"

    async def test_from_form_data(self) -> None:
        request = _multipart({}, {"upload": ("a.txt", b"A", "text/plain")})
        form = await request.form()
        assert get_file(form, "upload").filename == "a.txt"

    async def test_missing_file(self) -> None:
        request = _multipart({"title": "x"})
        await request.form()
        with pytest.raises(KeyError):
            get_file(request, "upload")

    async def test_not_multipart(self) -> None:
        request = _request({"title": "x"})
        await populate(request, Upload())
        with pytest.raises(NoMultipartDataError, match="no multipart form data"):
            get_file(request, "upload")

    def test_form_not_parsed(self) -> None:
        with pytest.raises(NoMultipartDataError):
            get_file(_multipart({}), "upload")


# ---------------------------------------------------------------------------
# Whole-flow properties
# ---------------------------------------------------------------------------


@dataclass
class Registration:
    username: str = formfield("username", default="")
    age: Int8 = formfield("age", default=0)
    newsletter: bool = formfield("newsletter", default=False)
    interests: list[str] = formfield("interests", default_factory=list)
    scores: tuple[int, int, int] = formfield("scores", default=(0, 0, 0))
    meta: dict[str, str] = formfield("meta", default_factory=dict)
    referrer: str | None = formfield("referrer", default=None)
    contact: Contact = formfield("contact", default_factory=Contact)
    settings: Settings = formfield("settings", default_factory=Settings)
    address: Address = field(default_factory=Address)
    password_hash: str = formfield("-", default="")


REGISTRATION = {
    "username": "ann",
    "age": "29",
    "newsletter": "on",
    "interests": ["python", "go"],
    "scores": ["1", "2", "3", "4"],
    "meta": ["src:ad", "bogus"],
    "contact.phone": "555",
    "settings": '{"theme": "dark"}',
    "street": "1 Loop",
    "city": "Cupertino",
    "password_hash": "x",
}


class TestIntegration:
    async def test_full_form(self) -> None:
        target = Registration()
        await populate(_request(REGISTRATION), target)

        assert target == Registration(
            username="ann",
            age=29,
            newsletter=True,
            interests=["python", "go"],
            scores=(1, 2, 3),
            meta={"src": "ad"},
            referrer=None,
            contact=Contact(phone="555"),
            settings=Settings(theme="dark"),
            address=Address(street="1 Loop", city="Cupertino"),
            password_hash="",
        )

    async def test_idempotent(self) -> None:
        first, second = Registration(), Registration()
        await populate(_request(REGISTRATION), first)
        await populate(_request(REGISTRATION), second)
        assert dataclasses.asdict(first) == dataclasses.asdict(second)

    async def test_same_payload_twice_into_one_target(self) -> None:
        request = _request(REGISTRATION)
        target = Registration()
        await populate(request, target)
        snapshot = dataclasses.asdict(target)
        await populate(request, target)
        assert dataclasses.asdict(target) == snapshot

    async def test_multipart_matches_urlencoded(self) -> None:
        a, b = Registration(), Registration()
        await populate(_request(REGISTRATION), a)
        await populate(_multipart(REGISTRATION), b)
        assert a == b
