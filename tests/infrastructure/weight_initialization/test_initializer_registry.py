import math
import unittest

import numpy as np

from jflow import EngineContext, Tensor, use_context
from jflow.infrastructure.utils.weight_initializer import WeightInitializer
from jflow.infrastructure.utils.weight_initializer._base import (
    _calculate_fan_in_and_fan_out,
)


class TestWeightInitializerRegistry(unittest.TestCase):
    def test_available_contains_known_initializers(self):
        names = WeightInitializer.available()
        for name in (
            "zeros",
            "ones",
            "bias_centered",
            "embedding_normal",
            "he_centered",
            "kaiming",
            "kaiming_uniform",
            "kaiming_leaky_relu_0.01",
            "xavier",
            "xavier_uniform",
            "xavier_tanh",
        ):
            self.assertIn(name, names)

    def test_get_returns_callable(self):
        self.assertTrue(callable(WeightInitializer.get("xavier")))

    def test_unknown_initializer_raises_value_error(self):
        with self.assertRaises(ValueError) as ctx:
            WeightInitializer("___does_not_exist___")
        msg = str(ctx.exception)
        self.assertIn("Unsupported initializer name", msg)
        self.assertIn("Available:", msg)

    def test_register_initializer_no_overwrite_by_default(self):
        name = "__unit_test_initializer__"

        @WeightInitializer.register_initializer(name, overwrite=True)
        def init_a(tensor):
            return tensor

        with self.assertRaises(ValueError):

            @WeightInitializer.register_initializer(name)
            def init_b(tensor):
                return tensor

    def test_register_initializer_overwrite_true(self):
        name = "__unit_test_initializer_overwrite__"

        @WeightInitializer.register_initializer(name, overwrite=True)
        def init_a(tensor):
            return tensor

        @WeightInitializer.register_initializer(name, overwrite=True)
        def init_b(tensor):
            return tensor

        self.assertIs(WeightInitializer.get(name), init_b)

    def test_register_rejects_empty_name(self):
        with self.assertRaises(ValueError):
            WeightInitializer.register_initializer("")

    def test_dispatch_mutates_in_place(self):
        t = Tensor.full((3, 5, 1, 1), 4.0)
        out = WeightInitializer("zeros")(t)
        self.assertIs(out, t)
        self.assertEqual(t.abs_max(), 0.0)
        WeightInitializer("ones")(t)
        self.assertEqual(t.count(1.0), 15)


class TestFans(unittest.TestCase):
    def test_fan_in_is_leading_axis(self):
        self.assertEqual(_calculate_fan_in_and_fan_out((64, 10, 1, 1)), (64, 10))
        self.assertEqual(_calculate_fan_in_and_fan_out((8, 4, 3, 2)), (8, 24))
        self.assertEqual(_calculate_fan_in_and_fan_out(()), (1, 1))


class TestInitializerDistributions(unittest.TestCase):
    SHAPE = (512, 256, 1, 1)

    def _draw(self, name, seed=0):
        with use_context(EngineContext(seed=seed)):
            return WeightInitializer(name)(Tensor.zeros(self.SHAPE)).to_numpy()

    def _assert_std(self, x, expected, rtol=0.05):
        self.assertLessEqual(abs(float(x.mean())), 0.1 * expected)
        self.assertTrue(
            math.isclose(float(x.std()), expected, rel_tol=rtol),
            msg=f"std={x.std()} not close to {expected}",
        )

    def test_kaiming_normal(self):
        self._assert_std(self._draw("kaiming"), math.sqrt(2.0 / 512))

    def test_kaiming_uniform_bound(self):
        x = self._draw("kaiming_uniform")
        bound = math.sqrt(6.0 / 512)
        self.assertLessEqual(np.abs(x).max(), bound + 1e-6)
        self._assert_std(x, bound / math.sqrt(3.0))

    def test_kaiming_leaky(self):
        expected = math.sqrt(2.0 / ((1.0 + 0.2 * 0.2) * 512))
        self._assert_std(self._draw("kaiming_leaky_relu_0.2"), expected)

    def test_he_centered(self):
        x = self._draw("he_centered")
        half_width = 0.5 * math.sqrt(2.0 / 512)
        self.assertLessEqual(np.abs(x).max(), half_width + 1e-6)
        self._assert_std(x, 2 * half_width / math.sqrt(12.0))

    def test_xavier_variants(self):
        fan_sum = 512 + 256
        self._assert_std(self._draw("xavier"), math.sqrt(2.0 / fan_sum))
        self._assert_std(self._draw("xavier_tanh"), (5.0 / 3.0) * math.sqrt(2.0 / fan_sum))
        x = self._draw("xavier_uniform")
        bound = math.sqrt(6.0 / fan_sum)
        self.assertLessEqual(np.abs(x).max(), bound + 1e-6)

    def test_bias_centered_and_embedding_normal(self):
        x = self._draw("bias_centered")
        self.assertLessEqual(np.abs(x).max(), 0.25 + 1e-6)
        self._assert_std(self._draw("embedding_normal"), 0.02)

    def test_seeded_draws_repeat(self):
        np.testing.assert_array_equal(self._draw("xavier", 4), self._draw("xavier", 4))


if __name__ == "__main__":
    unittest.main()
