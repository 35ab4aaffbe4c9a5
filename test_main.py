import unittest
from unittest import mock

from config import config
from comet_simulation import SimulationContext
from main import CometTailRun, main

class TestCometTailRun(unittest.TestCase):

    def test_status_lines_show_the_timeline_day(self):
        runner = CometTailRun(SimulationContext(capacity=50, seed=1))
        with mock.patch.object(config.Monitoring, 'STATUS_INTERVAL_FRAMES', 1):
            with self.assertLogs(level='INFO') as logs:
                state = runner.run(2)
        self.assertEqual(state.frame, 2)
        self.assertTrue(any("(day 0)" in line for line in logs.output))
        self.assertEqual(runner.total_births, state.live_count)

    def test_report_lists_planets_and_rows(self):
        runner = CometTailRun(SimulationContext(capacity=50, seed=1))
        with self.assertLogs(level='INFO') as logs:
            runner.report("synchrones")
        output = "\n".join(logs.output)
        self.assertIn("Planets on 1997-02-01", output)
        self.assertIn("Earth", output)
        self.assertIn("Synchrones at 1997/02/01 00:00:00 UTC", output)
        self.assertIn("RA", output)

    def test_main_exit_codes(self):
        with self.assertLogs(level='INFO'):
            self.assertEqual(main(["--frames", "2", "--capacity", "50", "--seed", "1", "--report", "syndynes"]), 0)
        with self.assertLogs(level='CRITICAL'):
            self.assertEqual(main(["--frames", "2", "--capacity", "0"]), 1)

if __name__ == '__main__':
    unittest.main(argv=['first-arg-is-ignored'], exit=False)
