import unittest

import numpy as np

from jflow import (
    Dense,
    EngineContext,
    LayerBuildError,
    Tensor,
    use_context,
)


def _x(n=2, f=4, seed=0):
    rng = np.random.default_rng(seed)
    return Tensor((n, f, 1, 1), data=rng.standard_normal(n * f))


class TestDenseConstruction(unittest.TestCase):
    def test_units_validation(self):
        with self.assertRaises(TypeError):
            Dense(2.0)
        with self.assertRaises(TypeError):
            Dense(True)
        with self.assertRaises(ValueError):
            Dense(0)

    def test_build_allocates_labelled_parameters(self):
        d = Dense(3)
        self.assertEqual(d.num_trainable_parameters(), 0)
        d.build((2, 4, 1, 1))
        self.assertEqual(d.weights.shape, (4, 3, 1, 1))
        self.assertEqual(d.biases.shape, (1, 3, 1, 1))
        self.assertEqual(d.weights.label(), "weights")
        self.assertEqual(d.biases.label(), "biases")
        self.assertEqual(d.d_weights.label(), "dWeights")
        self.assertEqual(d.d_biases.label(), "dBiases")
        self.assertEqual(d.num_trainable_parameters(), 4 * 3 + 3)
        self.assertTrue(d.trainable)

    def test_default_init_ranges(self):
        with use_context(EngineContext(seed=0)):
            d = Dense(8).build((1, 50, 1, 1))
        bound = 0.5 * np.sqrt(2.0 / 50)
        self.assertLessEqual(d.weights.abs_max(), bound + 1e-6)
        self.assertLessEqual(d.biases.abs_max(), 0.25 + 1e-6)

    def test_custom_initializers(self):
        d = Dense(5).init_uniform(0.1, 0.2).build((1, 10, 1, 1))
        w = d.weights.to_numpy()
        self.assertTrue(np.all((w >= 0.1) & (w <= 0.2)))
        self.assertTrue(d.uses_custom_init)

        z = Dense(5).init_with("zeros").build((1, 10, 1, 1))
        self.assertEqual(z.weights.abs_max(), 0.0)

        with self.assertRaises(ValueError):
            Dense(5).init_with("___missing___")
        with self.assertRaises(ValueError):
            Dense(5).init_uniform(1.0, 0.0)
        with self.assertRaises(ValueError):
            Dense(5).init_normal(0.0, -1.0)

    def test_no_bias(self):
        d = Dense(2, use_bias=False).build((1, 3, 1, 1))
        self.assertIsNone(d.biases)
        self.assertEqual(len(d.parameters()), 1)
        self.assertEqual(d.num_trainable_parameters(), 6)


class TestDenseMath(unittest.TestCase):
    def test_forward_matches_numpy(self):
        d = Dense(3)
        x = _x()
        y = d.forward(x)
        self.assertEqual(y.shape, (2, 3, 1, 1))
        w = d.weights.to_numpy().reshape(4, 3)
        b = d.biases.to_numpy().reshape(1, 3)
        np.testing.assert_allclose(
            y.to_numpy().reshape(2, 3), x.to_numpy().reshape(2, 4) @ w + b, rtol=1e-5, atol=1e-6
        )

    def test_flattens_non_batch_axes(self):
        d = Dense(2)
        x = Tensor((3, 2, 2, 1), data=np.arange(12))
        self.assertEqual(d.forward(x).shape, (3, 2, 1, 1))
        self.assertEqual(d.weights.shape, (4, 2, 1, 1))

    def test_backward_gradients(self):
        d = Dense(3)
        x = _x()
        d.forward(x, training=True)
        g = Tensor((2, 3, 1, 1), data=[1, -2, 0.5, 0.25, 3, -1])
        dx = d.backward(g)

        xn = x.to_numpy().reshape(2, 4)
        gn = g.to_numpy().reshape(2, 3)
        w = d.weights.to_numpy().reshape(4, 3)
        np.testing.assert_allclose(d.d_weights.to_numpy().reshape(4, 3), xn.T @ gn, rtol=1e-5, atol=1e-6)
        np.testing.assert_allclose(d.d_biases.to_numpy().reshape(3), gn.sum(axis=0), rtol=1e-6)
        np.testing.assert_allclose(dx.to_numpy().reshape(2, 4), gn @ w.T, rtol=1e-5, atol=1e-6)
        self.assertIs(d.gradient, dx)

    def test_gradients_accumulate_until_zeroed(self):
        d = Dense(2)
        x = _x(f=3)
        g = Tensor.ones(2, 2, 1, 1)
        d.forward(x, training=True)
        d.backward(g)
        once = d.d_weights.to_numpy()
        d.backward(g)
        np.testing.assert_allclose(d.d_weights.to_numpy(), 2 * once, rtol=1e-6)
        d.zero_gradients()
        self.assertEqual(d.d_weights.abs_max(), 0.0)
        self.assertEqual(d.d_biases.abs_max(), 0.0)

    def test_update_parameters_subtracts(self):
        d = Dense(2).init_with("ones").build((1, 2, 1, 1))
        before_b = d.biases.to_numpy()
        d.update_parameters([Tensor.full((2, 2, 1, 1), 0.25), Tensor.ones(1, 2, 1, 1)])
        np.testing.assert_allclose(d.weights.to_numpy(), 0.75)
        np.testing.assert_allclose(d.biases.to_numpy(), before_b - 1.0)
        with self.assertRaises(ValueError):
            d.update_parameters([Tensor.zeros(2, 2, 1, 1)])

    def test_backward_requires_forward(self):
        d = Dense(2)
        with self.assertRaises(LayerBuildError):
            d.backward(Tensor.zeros(1, 2, 1, 1))
        d.forward(_x(f=3))
        with self.assertRaises(RuntimeError):
            d.backward(Tensor.zeros(2, 2, 1, 1))

    def test_forward_rejects_non_tensor(self):
        with self.assertRaises(TypeError):
            Dense(2).forward(np.zeros((1, 2, 1, 1)))

    def test_gradient_storage_can_be_disabled(self):
        d = Dense(2)
        d.disable_gradient_storage()
        d.forward(_x(f=3), training=True)
        dx = d.backward(Tensor.ones(2, 2, 1, 1))
        self.assertIsNotNone(dx)
        self.assertIsNone(d.gradient)
        self.assertGreater(d.d_weights.abs_max(), 0.0)


if __name__ == "__main__":
    unittest.main()
