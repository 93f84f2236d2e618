"""Tests for geotax_kernel.utils.hashing."""

import hashlib
from decimal import Decimal
from io import BytesIO

from geotax_kernel.utils.hashing import canonicalize_json, hash_file, hash_stream


class TestCanonicalJson:
    def test_sorted_compact(self):
        assert canonicalize_json({"b": 1, "a": [1, 2]}) == '{"a":[1,2],"b":1}'

    def test_decimal_keeps_scale(self):
        assert canonicalize_json({"rate": Decimal("0.045000")}) == '{"rate":"0.045000"}'


class TestFileHash:
    def test_block_size_does_not_change_digest(self):
        data = b"lat,lon,subtotal\n" + b"40.7,-73.9,1.00\n" * 1000
        expected = hashlib.sha256(data).hexdigest()
        assert hash_stream(BytesIO(data), block_size=7) == (expected, len(data))
        assert hash_stream(BytesIO(data), block_size=1 << 20) == (expected, len(data))

    def test_empty(self):
        assert hash_stream(BytesIO(b"")) == (hashlib.sha256(b"").hexdigest(), 0)

    def test_file(self, tmp_path):
        path = tmp_path / "orders.csv"
        path.write_bytes(b"abc")
        assert hash_file(path) == (hashlib.sha256(b"abc").hexdigest(), 3)
