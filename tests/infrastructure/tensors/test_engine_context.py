import unittest

import numpy as np

from jflow import EngineContext, get_default_context, set_default_context, use_context


class TestEngineContext(unittest.TestCase):
    def test_defaults(self):
        ctx = EngineContext()
        self.assertGreaterEqual(ctx.num_workers, 1)
        self.assertEqual(ctx.matmul_cutoff, 1024)
        self.assertEqual((ctx.block_m, ctx.block_n, ctx.block_k), (128, 128, 512))
        self.assertEqual(ctx.parallel_threshold, 1 << 16)

    def test_rejects_non_positive_tunables(self):
        for name in ("num_workers", "matmul_cutoff", "block_k", "parallel_threshold"):
            with self.subTest(name=name):
                with self.assertRaises(ValueError):
                    EngineContext(**{name: 0})

    def test_seeded_rng_is_reproducible(self):
        a = EngineContext(seed=7).rng.random(5)
        b = EngineContext(seed=7).rng.random(5)
        np.testing.assert_array_equal(a, b)

    def test_reseed_restarts_sequence(self):
        ctx = EngineContext(seed=3)
        first = ctx.rng.random(4)
        ctx.reseed(3)
        np.testing.assert_array_equal(ctx.rng.random(4), first)

    def test_executor_is_lazy_and_released(self):
        with EngineContext(num_workers=2) as ctx:
            pool = ctx.executor()
            self.assertIs(ctx.executor(), pool)
            self.assertEqual(pool.submit(lambda: 41 + 1).result(), 42)
        self.assertIsNot(ctx.executor(), pool)
        ctx.shutdown()

    def test_use_context_restores_previous(self):
        before = get_default_context()
        ctx = EngineContext(seed=0)
        with use_context(ctx) as active:
            self.assertIs(active, ctx)
            self.assertIs(get_default_context(), ctx)
        self.assertIs(get_default_context(), before)

    def test_use_context_restores_on_error(self):
        before = get_default_context()
        with self.assertRaises(KeyError):
            with use_context(EngineContext()):
                raise KeyError("boom")
        self.assertIs(get_default_context(), before)

    def test_set_default_context_returns_previous(self):
        before = get_default_context()
        ctx = EngineContext()
        try:
            self.assertIs(set_default_context(ctx), before)
            self.assertIs(get_default_context(), ctx)
        finally:
            set_default_context(before)

    def test_set_default_context_type_check(self):
        with self.assertRaises(TypeError):
            set_default_context("not a context")


if __name__ == "__main__":
    unittest.main()
