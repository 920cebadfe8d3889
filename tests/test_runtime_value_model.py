from __future__ import annotations

import importlib.util
import unittest


JAX_AVAILABLE = importlib.util.find_spec("jax") is not None


@unittest.skipUnless(JAX_AVAILABLE, "jax is required for runtime value-model tests")
class RuntimeValueModelTests(unittest.TestCase):
    def test_uniform_array_shape_size_and_access(self) -> None:
        from apl_jax import ElementType, int_array

        arr = int_array([1, 2, 3, 4, 5, 6], (2, 3))
        self.assertEqual(arr.shape, (2, 3))
        self.assertEqual(arr.size, 6)
        self.assertEqual(arr.rank, 2)
        self.assertIs(arr.element_type, ElementType.INT)
        self.assertEqual(arr.at(4), 5)
        self.assertEqual(arr.tolist(), [[1, 2, 3], [4, 5, 6]])

    def test_uniform_set_checks_bounds_and_type(self) -> None:
        from apl_jax import IndexOutOfRange, TypeMismatch, int_array

        arr = int_array([1, 2, 3])
        arr.set(1, 7)
        self.assertEqual(arr.elements(), [1, 7, 3])
        with self.assertRaises(IndexOutOfRange):
            arr.set(3, 1)
        with self.assertRaises(IndexOutOfRange):
            arr.at(-1)
        with self.assertRaises(TypeMismatch):
            arr.set(0, "x")
        with self.assertRaises(TypeMismatch):
            arr.set(0, 2.5)
        self.assertEqual(arr.elements(), [1, 7, 3])

    def test_float_array_accepts_integers(self) -> None:
        from apl_jax import ElementType, UniformArray

        arr = UniformArray.from_values([0.5, 1.5])
        self.assertIs(arr.element_type, ElementType.FLOAT)
        arr.set(0, 2)
        self.assertEqual(arr.elements(), [2.0, 1.5])

    def test_complex_array_zero_and_reshape(self) -> None:
        from apl_jax import ElementType, UniformArray

        arr = UniformArray.from_values([1 + 2j, 3j])
        self.assertIs(arr.element_type, ElementType.COMPLEX)
        self.assertEqual(arr.zero(), 0j)
        self.assertEqual(arr.reshape((3,)).elements(), [1 + 2j, 3j, 1 + 2j])

    def test_reshape_refills_cyclically(self) -> None:
        from apl_jax import MixedArray, int_array

        arr = int_array([1, 2, 3])
        self.assertEqual(arr.reshape((2, 4)).elements(), [1, 2, 3, 1, 2, 3, 1, 2])
        self.assertEqual(arr.reshape((2,)).elements(), [1, 2])

        mixed = MixedArray((2,), ["a", 1])
        self.assertEqual(mixed.reshape((5,)).elements(), ["a", 1, "a", 1, "a"])

    def test_make_array_keeps_representation(self) -> None:
        from apl_jax import ElementType, MixedArray, UniformArray
        from apl_jax.values import make_array

        zeros = make_array(UniformArray.from_values([1.5]), (2, 2))
        self.assertIsInstance(zeros, UniformArray)
        self.assertIs(zeros.element_type, ElementType.FLOAT)
        self.assertEqual(zeros.elements(), [0.0, 0.0, 0.0, 0.0])

        boxed = make_array(MixedArray((1,), ["a"]), (3,))
        self.assertIsInstance(boxed, MixedArray)
        self.assertEqual(boxed.size, 3)

    def test_upgrade_keeps_elements_in_place(self) -> None:
        from apl_jax import MixedArray, int_array, upgrade

        mixed = upgrade(int_array([4, 5, 6], (3, 1)))
        self.assertIsInstance(mixed, MixedArray)
        self.assertEqual(mixed.shape, (3, 1))
        self.assertEqual(mixed.elements(), [4, 5, 6])
        mixed.set(1, "x")
        self.assertEqual(mixed.elements(), [4, "x", 6])

    def test_unify_strict_and_promoting(self) -> None:
        from apl_jax import ElementType, MixedArray, UniformArray, unify

        same, ok = unify(MixedArray((3,), [1, 2, 3]), strict=True)
        self.assertTrue(ok)
        self.assertIsInstance(same, UniformArray)
        self.assertIs(same.element_type, ElementType.INT)

        numbers = MixedArray((3,), [1, 2.5, 3])
        kept, ok = unify(numbers, strict=True)
        self.assertFalse(ok)
        self.assertIs(kept, numbers)

        promoted, ok = unify(numbers, strict=False)
        self.assertTrue(ok)
        self.assertIs(promoted.element_type, ElementType.FLOAT)
        self.assertEqual(promoted.elements(), [1.0, 2.5, 3.0])

        _, ok = unify(MixedArray((2,), [1, "a"]))
        self.assertFalse(ok)

    def test_array_builder_picks_representation(self) -> None:
        from apl_jax import MixedArray, UniformArray, array

        self.assertIsInstance(array([1, 2]), UniformArray)
        self.assertIsInstance(array([1, "a"]), MixedArray)
        self.assertEqual(array([]).shape, (0,))

    def test_integers_beyond_the_element_range_stay_boxed(self) -> None:
        from apl_jax import MixedArray, TypeMismatch, UniformArray, array, int_array

        wide = array([2**40, 1])
        self.assertIsInstance(wide, UniformArray)
        self.assertEqual(wide.elements(), [2**40, 1])

        huge = array([2**70, 1])
        self.assertIsInstance(huge, MixedArray)
        self.assertEqual(huge.elements(), [2**70, 1])

        with self.assertRaises(TypeMismatch):
            int_array([2**70])
        arr = int_array([1, 2])
        with self.assertRaises(TypeMismatch):
            arr.set(0, -(2**70))
        self.assertEqual(arr.elements(), [1, 2])

    def test_mixed_set_stores_a_copy(self) -> None:
        from apl_jax import ListValue, MixedArray

        arr = MixedArray((1,), [0])
        item = ListValue([1])
        arr.set(0, item)
        item.items.append(2)
        self.assertIsNot(arr.at(0), item)
        self.assertEqual(arr.at(0).items, [1])

    def test_copy_shares_no_mutable_storage(self) -> None:
        from apl_jax import ListValue, MixedArray, copy_value, int_array

        arr = int_array([1, 2, 3])
        dup = copy_value(arr)
        dup.set(0, 9)
        self.assertEqual(arr.at(0), 1)

        inner = ListValue([1, 2])
        boxed = MixedArray((2,), [inner, "z"])
        deep = copy_value(boxed)
        deep.at(0).set_deep([0], 100)
        self.assertEqual(inner.items, [1, 2])

    def test_list_depth_access(self) -> None:
        from apl_jax import IndexOutOfRange, ListValue
        from apl_jax.errors import UnsupportedDepth

        lst = ListValue([1, ListValue([2, 3])])
        self.assertEqual(lst.get_deep([1, 1]), 3)
        lst.set_deep([1, 0], 7)
        self.assertEqual(lst.get_deep([1, 0]), 7)

        stored = ListValue(["a"])
        lst.set_deep([0], stored)
        stored.items[0] = "b"
        self.assertEqual(lst.get_deep([0, 0]), "a")

        with self.assertRaises(IndexOutOfRange):
            lst.get_deep([2])
        with self.assertRaises(UnsupportedDepth):
            lst.get_deep([0, 0, 0])

    def test_object_keeps_insertion_order(self) -> None:
        from apl_jax import KeyMismatch, Object

        obj = Object(["b", "a"], {"a": 1, "b": 2})
        self.assertEqual(obj.keys(), ["b", "a"])
        obj.set("c", 3)
        obj.set("b", 4)
        self.assertEqual(obj.keys(), ["b", "a", "c"])
        self.assertEqual(obj.at("b"), 4)
        with self.assertRaises(KeyMismatch):
            obj.at("missing")
        with self.assertRaises(KeyMismatch):
            Object(["a"], {"a": 1, "b": 2})

    def test_table_columns_must_be_uniform_with_equal_rows(self) -> None:
        from apl_jax import MixedArray, NonConformant, Table, TypeMismatch, int_array

        table = Table(["a", "b"], {"a": int_array([1, 2, 3]), "b": int_array([4, 5, 6])})
        self.assertEqual(table.rows, 3)
        self.assertEqual(table.keys(), ["a", "b"])

        with self.assertRaises(NonConformant):
            Table(["a"], {"a": int_array([1, 2])}, rows=3)
        with self.assertRaises(TypeMismatch):
            Table(["a"], {"a": MixedArray((1,), ["x"])}, rows=1)

    def test_value_info_kinds(self) -> None:
        from apl_jax import ListValue, Object, Table, ValueKind, array, int_array, value_info

        self.assertEqual(value_info(3).kind, ValueKind.SCALAR)
        self.assertEqual(value_info(3).rank, 0)

        arr = value_info(int_array([1, 2, 3, 4], (2, 2)))
        self.assertEqual(arr.kind, ValueKind.UNIFORM_ARRAY)
        self.assertEqual(arr.shape, (2, 2))
        self.assertEqual(arr.depth, 1)

        boxed = value_info(array([1, ListValue([2])]))
        self.assertEqual(boxed.kind, ValueKind.MIXED_ARRAY)
        self.assertEqual(boxed.depth, 2)

        self.assertEqual(value_info(Object(["k"], {"k": 1})).kind, ValueKind.OBJECT)
        table = value_info(Table(["a"], {"a": int_array([1, 2])}))
        self.assertEqual(table.kind, ValueKind.TABLE)
        self.assertEqual(table.shape, (2, 1))

    def test_values_match_ignores_representation(self) -> None:
        from apl_jax import MixedArray, int_array, values_match

        self.assertTrue(values_match(int_array([1, 2]), MixedArray((2,), [1, 2])))
        self.assertFalse(values_match(int_array([1, 2]), int_array([1, 2], (2, 1))))
        self.assertFalse(values_match(int_array([1]), 1))

    def test_validator_rejects_unsupported_runtime_value(self) -> None:
        from apl_jax.values import validate_value

        class Unsupported:
            pass

        with self.assertRaises(TypeError):
            validate_value(Unsupported(), where="unsupported")


if __name__ == "__main__":
    unittest.main()
