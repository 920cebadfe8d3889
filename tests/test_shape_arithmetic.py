from __future__ import annotations

import importlib.util
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for shape arithmetic tests")
class ShapeArithmeticTests(unittest.TestCase):
    def test_flatten_products_and_scalar_shape(self) -> None:
        from apl_jax.shapes import flatten

        self.assertEqual(flatten((2, 3, 4)), 24)
        self.assertEqual(flatten(()), 1)
        self.assertEqual(flatten((3, 0)), 0)

    def test_index_converter_is_row_major(self) -> None:
        from apl_jax.shapes import IndexConverter

        conv = IndexConverter((2, 3))
        self.assertEqual(conv.index([0, 0]), 0)
        self.assertEqual(conv.index([0, 2]), 2)
        self.assertEqual(conv.index([1, 0]), 3)
        self.assertEqual(conv.index([1, 2]), 5)

    def test_index_converter_inverse(self) -> None:
        from apl_jax.shapes import IndexConverter, flatten

        shape = (2, 3, 4)
        conv = IndexConverter(shape)
        for offset in range(flatten(shape)):
            self.assertEqual(conv.index(conv.indexes(offset)), offset)
        self.assertEqual(conv.indexes(23), [1, 2, 3])

    def test_inc_array_index_carries_and_wraps(self) -> None:
        from apl_jax.shapes import inc_array_index

        vec = [0, 0]
        seen = []
        for _ in range(4):
            inc_array_index(vec, (2, 2))
            seen.append(list(vec))
        self.assertEqual(seen, [[0, 1], [1, 0], [1, 1], [0, 0]])

    def test_iter_indexes_yields_every_position_in_order(self) -> None:
        from apl_jax.shapes import iter_indexes

        out = list(iter_indexes((2, 3)))
        self.assertEqual(len(out), 6)
        self.assertEqual(out[0], [0, 0])
        self.assertEqual(out[3], [1, 0])
        self.assertEqual(out[-1], [1, 2])
        self.assertEqual(list(iter_indexes((2, 0))), [])

    def test_normalize_axis(self) -> None:
        from apl_jax.errors import AxisOutOfRange
        from apl_jax.shapes import normalize_axis

        self.assertEqual(normalize_axis(-1, 3), 2)
        self.assertEqual(normalize_axis(0, 3), 0)
        with self.assertRaises(AxisOutOfRange):
            normalize_axis(3, 3)
        with self.assertRaises(AxisOutOfRange):
            normalize_axis(-4, 3)

    def test_collapse_and_remove_axis(self) -> None:
        from apl_jax.shapes import collapse_shape, remove_axis

        self.assertEqual(collapse_shape((1, 3, 1, 2)), (3, 2))
        self.assertEqual(collapse_shape((1, 1)), ())
        self.assertEqual(remove_axis([4, 5, 6], 1), (4, 6))


if __name__ == "__main__":
    unittest.main()
