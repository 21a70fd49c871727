import unittest

import numpy as np

from jflow import EngineContext, ShapeError, Tensor, use_context
from jflow.infrastructure.ops._parallel import parallel_ranges, run_tasks, split_ranges
from jflow.infrastructure.ops.broadcast_cpu import binary_op_cpu, broadcast_mode
from jflow.infrastructure.ops.reduce_cpu import buffer_stat


class TestSplitRanges(unittest.TestCase):
    def test_covers_range_in_order(self):
        ranges = split_ranges(10, 3)
        self.assertEqual(ranges, [(0, 4), (4, 7), (7, 10)])

    def test_clamps_parts(self):
        self.assertEqual(split_ranges(2, 8), [(0, 1), (1, 2)])
        self.assertEqual(split_ranges(5, 0), [(0, 5)])
        self.assertEqual(split_ranges(0, 4), [])


class TestRunTasks(unittest.TestCase):
    def setUp(self):
        self.ctx = EngineContext(num_workers=4, parallel_threshold=1)

    def tearDown(self):
        self.ctx.shutdown()

    def test_results_in_submission_order(self):
        tasks = [(lambda i=i: i * i) for i in range(6)]
        self.assertEqual(run_tasks(tasks, self.ctx), [0, 1, 4, 9, 16, 25])

    def test_single_task_runs_inline(self):
        self.assertEqual(run_tasks([lambda: "x"], self.ctx), ["x"])
        self.assertEqual(run_tasks([], self.ctx), [])

    def test_task_error_is_reraised_after_join(self):
        done = []

        def ok():
            done.append(1)
            return 1

        def bad():
            raise ZeroDivisionError("task failed")

        with self.assertRaises(ZeroDivisionError):
            run_tasks([ok, bad, ok], self.ctx)
        self.assertEqual(len(done), 2)

    def test_parallel_ranges_serial_below_threshold(self):
        ctx = EngineContext(num_workers=4, parallel_threshold=100)
        calls = parallel_ranges(lambda a, b: (a, b), 50, ctx)
        self.assertEqual(calls, [(0, 50)])

    def test_parallel_ranges_fans_out(self):
        calls = parallel_ranges(lambda a, b: (a, b), 8, self.ctx)
        self.assertEqual(calls, [(0, 2), (2, 4), (4, 6), (6, 8)])


class TestParallelKernelsMatchSerial(unittest.TestCase):
    def setUp(self):
        self.ctx = EngineContext(num_workers=4, parallel_threshold=1)
        rng = np.random.default_rng(0)
        self.x = rng.standard_normal(3 * 4 * 5 * 2).astype(np.float32)
        self.shape = (3, 4, 5, 2)

    def tearDown(self):
        self.ctx.shutdown()

    def test_buffer_stats(self):
        x = self.x
        self.assertAlmostEqual(buffer_stat("sum", x, ctx=self.ctx), float(x.sum()), places=4)
        self.assertAlmostEqual(buffer_stat("mean", x, ctx=self.ctx), float(x.mean()), places=5)
        self.assertEqual(buffer_stat("max", x, ctx=self.ctx), float(x.max()))
        self.assertEqual(buffer_stat("abs_max", x, ctx=self.ctx), float(np.abs(x).max()))
        self.assertAlmostEqual(
            buffer_stat("l2", x, ctx=self.ctx), float(np.linalg.norm(x)), places=4
        )
        self.assertEqual(buffer_stat("count", np.zeros(9, np.float32), 0.0, self.ctx), 9.0)

    def test_buffer_stat_errors(self):
        with self.assertRaises(ShapeError):
            buffer_stat("sum", np.zeros(0, np.float32))
        with self.assertRaises(ValueError):
            buffer_stat("median", self.x)
        with self.assertRaises(ValueError):
            buffer_stat("count", self.x)

    def test_permute_and_broadcast(self):
        t = Tensor(self.shape, data=self.x)
        serial_p = t.permute(3, 1, 0, 2).to_numpy()
        row = Tensor((3, 1, 1, 1), data=[1, 2, 3])
        serial_b = t.add(row).to_numpy()
        with use_context(self.ctx):
            np.testing.assert_array_equal(t.permute(3, 1, 0, 2).to_numpy(), serial_p)
            np.testing.assert_array_equal(t.add(row).to_numpy(), serial_b)
            np.testing.assert_array_equal(
                t.transpose2d().to_numpy().reshape(40, 3),
                self.x.reshape(3, 40).T,
            )

    def test_broadcast_mode_resolution(self):
        left = (2, 3, 4, 5)
        self.assertEqual(broadcast_mode("add", left, left), "same")
        self.assertEqual(broadcast_mode("add", left, (2, 1, 1, 1)), "row")
        self.assertEqual(broadcast_mode("add", left, (1, 3, 1, 1)), "channel")
        self.assertEqual(broadcast_mode("add", left, (2, 3, 1, 1)), "row_ch")

    def test_binary_op_rejects_unknown_op(self):
        with self.assertRaises(ValueError):
            binary_op_cpu("pow", self.x, self.shape, self.x, self.shape)


if __name__ == "__main__":
    unittest.main()
