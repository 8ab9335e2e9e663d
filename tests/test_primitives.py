"""Tests for the primitive codecs."""
import struct
import unittest

from gdbfile import ByteCursor, TruncatedDataError, semicircle_to_degrees


class TestByteCursor(unittest.TestCase):
    """Fixed-width reads, strings and padding."""

    def test_little_endian_integers(self):
        """int32 and int16 are little-endian and signed."""
        cur = ByteCursor(struct.pack("<ih", -2, 513))
        self.assertEqual(cur.read_int32(), -2)
        self.assertEqual(cur.read_int16(), 513)
        self.assertEqual(cur.remaining, 0)

    def test_double(self):
        cur = ByteCursor(struct.pack("<d", 150.5))
        self.assertEqual(cur.read_double(), 150.5)

    def test_bool_is_literal_byte_value(self):
        """Only a byte equal to 1 is true."""
        cur = ByteCursor(b"\x01\x00\x02\xff")
        self.assertEqual([cur.read_bool() for _ in range(4)], [True, False, False, False])

    def test_null_terminated_string(self):
        cur = ByteCursor(b"Home\x00Work\x00")
        self.assertEqual(cur.read_string(), "Home")
        self.assertEqual(cur.read_string(), "Work")
        self.assertEqual(cur.offset, 10)

    def test_empty_string(self):
        cur = ByteCursor(b"\x00x")
        self.assertEqual(cur.read_string(), "")
        self.assertEqual(cur.offset, 1)

    def test_fixed_length_string_returns_raw_bytes(self):
        cur = ByteCursor(b"ab\x00cd")
        self.assertEqual(cur.read_string(4), b"ab\x00c")
        self.assertEqual(cur.remaining, 1)

    def test_latin1_decoding(self):
        cur = ByteCursor(b"Caf\xe9\x00")
        self.assertEqual(cur.read_string(), "Café")

    def test_skip(self):
        cur = ByteCursor(b"\x00" * 22 + struct.pack("<i", 7))
        cur.skip(22)
        self.assertEqual(cur.read_int32(), 7)

    def test_short_reads_raise(self):
        """Every primitive refuses to read past the buffer."""
        for read in ("read_int32", "read_int16", "read_double"):
            with self.subTest(read=read):
                with self.assertRaises(TruncatedDataError):
                    getattr(ByteCursor(b"\x01"), read)()
        with self.assertRaises(TruncatedDataError):
            ByteCursor(b"").read_bool()
        with self.assertRaises(TruncatedDataError):
            ByteCursor(b"abc").skip(4)
        with self.assertRaises(TruncatedDataError):
            ByteCursor(b"abc").read_string(5)

    def test_unterminated_string_raises(self):
        with self.assertRaises(TruncatedDataError):
            ByteCursor(b"no terminator").read_string()

    def test_optional_reads_value_only_when_flagged(self):
        cur = ByteCursor(b"\x00" + b"\x01" + struct.pack("<i", 42))
        self.assertIsNone(cur.read_optional(cur.read_int32))
        self.assertEqual(cur.read_optional(cur.read_int32), 42)
        self.assertEqual(cur.remaining, 0)

    def test_altitude_sentinel(self):
        """Altitudes at or above 1.0e24 mean 'no altitude'."""
        cur = ByteCursor(b"\x01" + struct.pack("<d", 1.0e25)
                         + b"\x01" + struct.pack("<d", 150.5))
        self.assertIsNone(cur.read_altitude())
        self.assertEqual(cur.read_altitude(), 150.5)


class TestSemicircles(unittest.TestCase):

    def test_known_values(self):
        self.assertEqual(semicircle_to_degrees(0), 0.0)
        self.assertEqual(semicircle_to_degrees(1 << 30), 90.0)
        self.assertEqual(semicircle_to_degrees(-(1 << 31)), -180.0)
        self.assertEqual(semicircle_to_degrees(-(1 << 30)), -90.0)
        self.assertLess(semicircle_to_degrees((1 << 31) - 1), 180.0)

    def test_formula_and_monotonic(self):
        samples = [-(1 << 31), -123456789, -1, 0, 1, 987654321, (1 << 31) - 1]
        degrees = [semicircle_to_degrees(v) for v in samples]
        for v, d in zip(samples, degrees):
            self.assertAlmostEqual(d, (v / 2 ** 31) * 180.0, places=12)
        self.assertEqual(degrees, sorted(degrees))


if __name__ == '__main__':
    unittest.main()
