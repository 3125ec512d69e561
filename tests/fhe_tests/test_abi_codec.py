import unittest

from fhe_gateway.abi import (
    encode_clear_values, decode_clear_value, decode_clear_values,
    to_hex, from_hex, WORD_SIZE_BYTES, UINT32_MAX,
)

class TestAbiCodec(unittest.TestCase):
    def test_word_layout(self):
        encoded = encode_clear_values([1, 258])
        self.assertEqual(len(encoded), 2 * WORD_SIZE_BYTES)
        self.assertEqual(encoded[:WORD_SIZE_BYTES], b"\x00" * 31 + b"\x01")
        self.assertEqual(encoded[-2:], b"\x01\x02")

    def test_decode_by_index(self):
        encoded = encode_clear_values([5, UINT32_MAX])
        self.assertEqual(decode_clear_value(encoded), 5)
        self.assertEqual(decode_clear_value(encoded, 1), UINT32_MAX)
        with self.assertRaises(ValueError):
            decode_clear_value(encoded, 2)

    def test_rejects_malformed_payloads(self):
        with self.assertRaises(ValueError):
            decode_clear_values(b"")
        with self.assertRaises(ValueError):
            decode_clear_values(b"\x00" * 33)
        with self.assertRaises(TypeError):
            decode_clear_values("00")  # type: ignore
        with self.assertRaises(ValueError):
            decode_clear_value((UINT32_MAX + 1).to_bytes(WORD_SIZE_BYTES, 'big'))

    def test_rejects_out_of_range_values(self):
        with self.assertRaises(ValueError):
            encode_clear_values([-1])
        with self.assertRaises(ValueError):
            encode_clear_values([UINT32_MAX + 1])
        with self.assertRaises(TypeError):
            encode_clear_values([True])

    def test_hex_helpers(self):
        self.assertEqual(to_hex(b"\xde\xad"), "0xdead")
        self.assertEqual(from_hex("0xdead"), b"\xde\xad")
        self.assertEqual(from_hex("0XDEAD"), b"\xde\xad")
        self.assertEqual(from_hex("dead"), b"\xde\xad")
        with self.assertRaises(ValueError):
            from_hex("0xnothex")


if __name__ == '__main__':
    unittest.main()
