import json
import tempfile
import unittest
from pathlib import Path

from solcall.codec import encode, encode_arguments, encode_instruction, encode_seed, encode_value
from solcall.errors import (
    ArgumentCountMismatch,
    InvalidBoolLiteral,
    LengthMismatch,
    MalformedInput,
    OutOfRange,
    UnknownVariant,
)
from solcall.schema import (
    PUBKEY,
    ArrayType,
    BoolType,
    BytesType,
    IntType,
    OptionType,
    StringType,
    VecType,
    load_schema_file,
)

FIXTURES = Path(__file__).parent / "fixtures"

NEW = [135, 44, 205, 198, 25, 1, 72, 188]


def _instruction(fixture: str, name: str):
    return load_schema_file(FIXTURES / fixture).lookup_instruction(name)


class InstructionDataTests(unittest.TestCase):
    """Byte-exact instruction data for known programs."""

    def test_flipper_new(self):
        data = encode_instruction(_instruction("flipper.json", "new"), ["true"])
        self.assertEqual(list(data), NEW + [1])

    def test_flipper_get(self):
        data = encode_instruction(_instruction("flipper.json", "get"), [])
        self.assertEqual(list(data), [161, 224, 50, 61, 5, 210, 122, 216])

    def test_unsigned_integers(self):
        args = [
            "12",
            "1234",
            "12345678",
            "123456789012345",
            "123456789012345678901234",
            "1234567890123456789012345678901234567890",
        ]
        data = encode_instruction(_instruction("unsigned_int.json", "new"), args)
        self.assertEqual(list(data), NEW + [
            12, 210, 4, 78, 97, 188, 0, 121, 223, 13, 134, 72,
            112, 0, 0, 242, 175, 150, 108, 160, 16, 31, 155, 36, 26, 0, 0, 0, 0, 0, 0, 210, 10, 63,
            206, 150, 95, 188, 172, 184, 243, 219, 192, 117, 32, 201, 160, 3, 0, 0, 0, 0, 0, 0, 0,
            0, 0, 0, 0, 0, 0, 0, 0,
        ])

    def test_signed_integers(self):
        args = [
            "12",
            "-1234",
            "12345678",
            "-123456789012345",
            "123456789012345678901234",
            "-1234567890123456789012345678901234567890",
        ]
        data = encode_instruction(_instruction("signed_int.json", "new"), args)
        self.assertEqual(list(data), NEW + [
            12, 46, 251, 78, 97, 188, 0, 135, 32, 242, 121, 183,
            143, 255, 255, 242, 175, 150, 108, 160, 16, 31, 155, 36, 26, 0, 0, 0, 0, 0, 0, 46, 245,
            192, 49, 105, 160, 67, 83, 71, 12, 36, 63, 138, 223, 54, 95, 252, 255, 255, 255, 255,
            255, 255, 255, 255, 255, 255, 255, 255, 255, 255, 255,
        ])

    def test_array(self):
        ix = _instruction("collections.json", "setArray")
        self.assertEqual(encode_arguments(ix, ["1,2,3,4"]), bytes([1, 2, 3, 4]))
        self.assertEqual(encode_arguments(ix, ["[1, 2, 3, 4]"]), bytes([1, 2, 3, 4]))

    def test_vector(self):
        ix = _instruction("collections.json", "setVector")
        self.assertEqual(encode_arguments(ix, ["1,2,3"]), bytes([3, 0, 0, 0, 1, 2, 3]))
        self.assertEqual(encode_arguments(ix, [""]), bytes([0, 0, 0, 0]))

    def test_bytes(self):
        ix = _instruction("collections.json", "setBytes")
        self.assertEqual(encode_arguments(ix, ["123456"]), bytes([3, 0, 0, 0, 18, 52, 86]))
        self.assertEqual(encode_arguments(ix, ["0x123456"]), bytes([3, 0, 0, 0, 18, 52, 86]))

    def test_address(self):
        ix = _instruction("collections.json", "setOwner")
        data = encode_arguments(ix, ["1111111QLbz7JHiBTspS962RLKV8GndWFwiEaqKM"])
        self.assertEqual(list(data), [0, 0, 0, 0, 0, 0, 0, 1] + [0] * 24)

    def test_struct_argument(self):
        ix = _instruction("defined_types.json", "new")
        person = '{"name": "Alice", "age": 30, "favoriteColor": "Red"}'
        data = encode_instruction(ix, [person])
        self.assertEqual(list(data), NEW + [5, 0, 0, 0, 65, 108, 105, 99, 101, 30, 0])

    def test_struct_field_order_is_irrelevant(self):
        ix = _instruction("defined_types.json", "new")
        a = encode_arguments(ix, ['{"name": "Ada", "age": 37, "favoriteColor": "Blue"}'])
        b = encode_arguments(ix, ['{"favoriteColor": "Blue", "age": "37", "name": "Ada"}'])
        self.assertEqual(a, b)

    def test_struct_from_file(self):
        ix = _instruction("defined_types.json", "new")
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "person.json"
            path.write_text(json.dumps({"name": "Ada", "age": 37, "favoriteColor": "Green"}))
            data = encode_arguments(ix, [str(path)])
        self.assertEqual(data, bytes([3, 0, 0, 0]) + b"Ada" + bytes([37, 1]))


class ScalarEncodingTests(unittest.TestCase):
    def test_u256_always_32_bytes(self):
        data = encode(IntType(256), "1")
        self.assertEqual(len(data), 32)
        self.assertEqual(data[0], 1)
        self.assertEqual(data[1:], bytes(31))

    def test_hex_integers(self):
        self.assertEqual(encode(IntType(16), "0x1234"), bytes([0x34, 0x12]))
        self.assertEqual(encode(IntType(16, signed=True), "-0x1"), bytes([0xff, 0xff]))

    def test_integer_bounds(self):
        self.assertEqual(encode(IntType(8), "255"), bytes([255]))
        self.assertEqual(encode(IntType(8, signed=True), "-128"), bytes([0x80]))
        for descriptor, text in [
            (IntType(8), "256"),
            (IntType(8), "-1"),
            (IntType(8, signed=True), "128"),
            (IntType(8, signed=True), "-129"),
            (IntType(256), str(1 << 256)),
        ]:
            with self.assertRaises(OutOfRange, msg=f"{descriptor.label} {text}"):
                encode(descriptor, text)

    def test_malformed_integer(self):
        for text in ["abc", "1.5", "", "12a"]:
            with self.assertRaises(MalformedInput, msg=text):
                encode(IntType(32), text)

    def test_bool_literals(self):
        self.assertEqual(encode(BoolType(), "true"), b"\x01")
        self.assertEqual(encode(BoolType(), "FALSE"), b"\x00")
        self.assertEqual(encode(BoolType(), True), b"\x01")
        with self.assertRaises(InvalidBoolLiteral):
            encode(BoolType(), "yes")
        with self.assertRaises(InvalidBoolLiteral):
            encode(BoolType(), "1")

    def test_string_is_length_prefixed(self):
        self.assertEqual(encode(StringType(), "héllo"), bytes([6, 0, 0, 0]) + "héllo".encode())

    def test_address_length(self):
        with self.assertRaises(LengthMismatch):
            encode(PUBKEY, "1111")
        with self.assertRaises(MalformedInput):
            encode(PUBKEY, "0OIl")

    def test_invalid_hex(self):
        with self.assertRaises(MalformedInput):
            encode(BytesType(), "xyz")

    def test_option(self):
        descriptor = OptionType(IntType(32))
        self.assertEqual(encode(descriptor, "null"), b"\x00")
        self.assertEqual(encode(descriptor, None), b"\x00")
        self.assertEqual(encode(descriptor, "7"), bytes([1, 7, 0, 0, 0]))

    def test_option_literals_only_apply_to_text(self):
        descriptor = OptionType(StringType())
        self.assertEqual(encode(descriptor, "none"), b"\x00")
        self.assertEqual(encode(descriptor, "none", parsed=True), b"\x01\x04\x00\x00\x00none")
        self.assertEqual(encode(descriptor, "", parsed=True), b"\x01\x00\x00\x00\x00")

    def test_option_items(self):
        self.assertEqual(encode(VecType(OptionType(IntType(8))), "1,none"), bytes([2, 0, 0, 0, 1, 1, 0]))
        self.assertEqual(
            encode(VecType(OptionType(StringType())), '[null, ""]'),
            bytes([2, 0, 0, 0, 0, 1, 0, 0, 0, 0]),
        )

    def test_encode_value_keeps_descriptor(self):
        value = encode_value(IntType(16), "1")
        self.assertEqual(len(value), 2)
        self.assertEqual(value.hex(), "0100")
        self.assertEqual(value.descriptor, IntType(16))


class CompoundEncodingTests(unittest.TestCase):
    def setUp(self):
        self.schema = load_schema_file(FIXTURES / "defined_types.json")

    def test_array_length_mismatch(self):
        with self.assertRaises(LengthMismatch):
            encode(ArrayType(IntType(8), 4), "1,2,3")

    def test_element_error_names_position(self):
        with self.assertRaises(MalformedInput) as ctx:
            encode(ArrayType(IntType(8), 3), "1,x,3")
        self.assertIn("element 1", str(ctx.exception))

    def test_missing_field(self):
        with self.assertRaises(MalformedInput) as ctx:
            encode(self.schema.lookup_type("Person"), '{"name": "Ada", "age": 37}')
        self.assertIn("favoriteColor", str(ctx.exception))

    def test_unknown_fields_warn(self):
        person = {"name": "Ada", "age": 37, "favoriteColor": "Red", "nickname": "A"}
        with self.assertLogs("solcall.codec.encoder", level="WARNING") as logs:
            encode(self.schema.lookup_type("Person"), person)
        self.assertIn("nickname", logs.output[0])

    def test_unknown_variant(self):
        with self.assertRaises(UnknownVariant) as ctx:
            encode(self.schema.lookup_type("Color"), "Purple")
        self.assertIn("Red", str(ctx.exception))

    def test_enum_variants(self):
        color = self.schema.lookup_type("Color")
        self.assertEqual(encode(color, "Blue"), b"\x02")
        self.assertEqual(encode(color, '"Green"'), b"\x01")

    def test_enum_payloads(self):
        shape = self.schema.lookup_type("Shape")
        self.assertEqual(encode(shape, "Empty"), b"\x00")
        self.assertEqual(encode(shape, '{"Circle": 5}'), bytes([1, 5, 0]))
        self.assertEqual(encode(shape, {"Rect": {"w": 2, "h": 3}}), bytes([2, 2, 0, 3, 0]))

    def test_enum_payload_required(self):
        with self.assertRaises(MalformedInput):
            encode(self.schema.lookup_type("Shape"), "Circle")


class ArgumentListTests(unittest.TestCase):
    def test_argument_count(self):
        with self.assertRaises(ArgumentCountMismatch):
            encode_instruction(_instruction("flipper.json", "new"), [])
        with self.assertRaises(ArgumentCountMismatch):
            encode_instruction(_instruction("flipper.json", "get"), ["true"])

    def test_error_carries_argument_context(self):
        with self.assertRaises(InvalidBoolLiteral) as ctx:
            encode_instruction(_instruction("flipper.json", "new"), ["maybe"])
        error = ctx.exception
        self.assertEqual(error.position, 0)
        self.assertEqual(error.argument, "initvalue")
        self.assertEqual(error.type_label, "bool")
        self.assertTrue(str(error).startswith("argument 1 (initvalue: bool)"))
        self.assertEqual(error.to_dict()["kind"], "InvalidBoolLiteral")


class SeedEncodingTests(unittest.TestCase):
    def test_strings_and_bytes_are_raw(self):
        self.assertEqual(encode_seed(StringType(), "main"), b"main")
        self.assertEqual(encode_seed(BytesType(), "0a0b"), b"\x0a\x0b")

    def test_other_types_use_borsh(self):
        self.assertEqual(encode_seed(IntType(64), "5"), bytes([5, 0, 0, 0, 0, 0, 0, 0]))


if __name__ == "__main__":
    unittest.main()
