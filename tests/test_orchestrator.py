"""
Tests for the worker pool and scan orchestrator
"""

import socket
import threading
import unittest
from collections import Counter
from unittest.mock import patch

from port_prober.aggregator import ResultAggregator
from port_prober.exceptions import ConfigError
from port_prober.models import ProbeStatus, ScanConfig, ScanOutcome, ScanStatus, ScanTask
from port_prober.orchestrator import ScanOrchestrator
from port_prober.pool import WorkerPool
from port_prober.prober import ConnectionProber


class FakeProber:
    """Deterministic prober: ports in open_ports are open"""

    def __init__(self, open_ports=()):
        self.open_ports = set(open_ports)
        self.calls = []
        self._lock = threading.Lock()

    def probe(self, task, cancel_event=None):
        with self._lock:
            self.calls.append(task)
        is_open = task.port in self.open_ports
        return ScanOutcome(
            task=task,
            status=ProbeStatus.OPEN if is_open else ProbeStatus.CLOSED,
            banner="banner" if is_open else None,
            attempts=1 if is_open else 3,
        )


class BlockingProber:
    """Blocks every probe until the scan is cancelled"""

    def probe(self, task, cancel_event=None):
        cancel_event.wait(10)
        return ScanOutcome(task=task, status=ProbeStatus.CLOSED, attempts=1)


class ExplodingProber:
    """Raises on one port"""

    def probe(self, task, cancel_event=None):
        if task.port == 3:
            raise RuntimeError("boom")
        return ScanOutcome(task=task, status=ProbeStatus.OPEN, attempts=1)


def make_config(**kwargs):
    defaults = dict(targets=["a", "b"], start_port=1, end_port=50, extra_ports="45,60,abc",
                    workers=7, queue_size=3)
    defaults.update(kwargs)
    return ScanConfig(**defaults)


class TestScanOrchestrator(unittest.TestCase):
    """Test ScanOrchestrator with fake probers"""

    def test_every_task_yields_one_outcome(self):
        """Outcome count equals task count, no duplicates"""
        prober = FakeProber(open_ports={22, 45, 60})
        result = ScanOrchestrator(make_config(), prober=prober).run()

        self.assertEqual(result.status, ScanStatus.COMPLETED)
        self.assertEqual(len(result.outcomes), 2 * 51)
        self.assertEqual(len({o.task for o in result.outcomes}), 2 * 51)
        self.assertEqual(len(prober.calls), 2 * 51)

    def test_summary(self):
        """Summary counters match the outcomes"""
        result = ScanOrchestrator(make_config(), prober=FakeProber(open_ports={22, 45, 60})).run()

        summary = result.summary
        self.assertEqual(summary.targets_scanned, 2)
        self.assertEqual(summary.ports_scanned, 102)
        self.assertEqual(summary.open_count, 6)
        self.assertEqual(summary.open_count, sum(1 for o in result.outcomes if o.is_open))
        self.assertLessEqual(summary.open_count, len(result.outcomes))
        self.assertGreaterEqual(summary.duration, 0.0)
        self.assertIsNotNone(result.end_time)

    def test_outcomes_sorted(self):
        """Outcomes are returned sorted by host then port"""
        result = ScanOrchestrator(make_config(), prober=FakeProber()).run()
        keys = [(o.task.host, o.task.port) for o in result.outcomes]
        self.assertEqual(keys, sorted(keys))

    def test_worker_count_invariance(self):
        """Counters and statuses do not depend on the pool size"""
        results = []
        for workers in (1, 4, 32):
            config = make_config(workers=workers)
            results.append(ScanOrchestrator(config, prober=FakeProber(open_ports={1, 2, 60})).run())

        for result in results[1:]:
            self.assertEqual(result.summary.open_count, results[0].summary.open_count)
            self.assertEqual(result.summary.ports_scanned, results[0].summary.ports_scanned)
            self.assertEqual(
                [(o.task, o.status) for o in result.outcomes],
                [(o.task, o.status) for o in results[0].outcomes],
            )

    def test_idempotent_statuses(self):
        """Two identical scans yield the same multiset of statuses"""
        first = ScanOrchestrator(make_config(), prober=FakeProber(open_ports={5})).run()
        second = ScanOrchestrator(make_config(), prober=FakeProber(open_ports={5})).run()
        self.assertEqual(Counter(o.status for o in first.outcomes), Counter(o.status for o in second.outcomes))

    def test_queue_of_one_delivers_everything(self):
        """Back-pressure with a one-slot queue drops no task"""
        config = make_config(queue_size=1, workers=3)
        result = ScanOrchestrator(config, prober=FakeProber()).run()
        self.assertEqual(len(result.outcomes), 102)

    def test_more_workers_than_tasks(self):
        """A pool larger than the task set still completes"""
        config = make_config(targets=["a"], start_port=80, end_port=80, extra_ports="", workers=200)
        result = ScanOrchestrator(config, prober=FakeProber(open_ports={80})).run()
        self.assertEqual(len(result.outcomes), 1)
        self.assertEqual(result.summary.open_count, 1)

    def test_config_error_before_probing(self):
        """An invalid range fails before any probe"""
        prober = FakeProber()
        with self.assertRaises(ConfigError):
            ScanOrchestrator(make_config(start_port=10, end_port=5), prober=prober).run()
        self.assertEqual(prober.calls, [])

    def test_runs_only_once(self):
        """An orchestrator cannot be reused"""
        orchestrator = ScanOrchestrator(make_config(), prober=FakeProber())
        orchestrator.run()
        with self.assertRaises(RuntimeError):
            orchestrator.run()

    def test_aggregator_injected(self):
        """A passed-in aggregator receives every outcome"""
        aggregator = ResultAggregator()
        ScanOrchestrator(make_config(), prober=FakeProber(open_ports={1}), aggregator=aggregator).run()
        self.assertEqual(aggregator.scanned, 102)
        self.assertEqual(aggregator.open_count, 2)

    def test_progress_callback(self):
        """Progress is reported once per outcome with the total"""
        calls = []
        lock = threading.Lock()

        def on_progress(scanned, total, outcome):
            with lock:
                calls.append((scanned, total))

        ScanOrchestrator(make_config(), prober=FakeProber(), on_progress=on_progress).run()

        self.assertEqual(len(calls), 102)
        self.assertEqual(sorted(s for s, _ in calls), list(range(1, 103)))
        self.assertEqual({t for _, t in calls}, {102})

    def test_failing_progress_callback_does_not_break_scan(self):
        """Callback errors are logged, not propagated"""
        def on_progress(scanned, total, outcome):
            raise ValueError("display error")

        result = ScanOrchestrator(make_config(), prober=FakeProber(), on_progress=on_progress).run()
        self.assertEqual(len(result.outcomes), 102)

    def test_prober_exception_still_yields_outcome(self):
        """An unexpected prober error becomes a closed outcome"""
        config = make_config(targets=["a"], start_port=1, end_port=5, extra_ports="")
        result = ScanOrchestrator(config, prober=ExplodingProber()).run()

        self.assertEqual(len(result.outcomes), 5)
        by_port = {o.task.port: o for o in result.outcomes}
        self.assertEqual(by_port[3].status, ProbeStatus.CLOSED)
        self.assertEqual(result.summary.open_count, 4)

    def test_deadline_cancels_scan(self):
        """An overall deadline cancels a scan that would never finish"""
        config = make_config(targets=["a"], start_port=1, end_port=100, extra_ports="",
                             workers=2, queue_size=5, deadline=0.2)
        result = ScanOrchestrator(config, prober=BlockingProber()).run()

        self.assertEqual(result.status, ScanStatus.CANCELLED)
        self.assertLess(len(result.outcomes), 100)
        self.assertEqual(result.summary.ports_scanned, len(result.outcomes))

    def test_cancel_from_another_thread(self):
        """cancel() releases blocked workers and returns partial results"""
        config = make_config(targets=["a"], start_port=1, end_port=100, extra_ports="",
                             workers=4, queue_size=2)
        orchestrator = ScanOrchestrator(config, prober=BlockingProber())
        timer = threading.Timer(0.2, orchestrator.cancel)
        timer.start()
        try:
            result = orchestrator.run()
        finally:
            timer.cancel()

        self.assertTrue(orchestrator.cancelled)
        self.assertEqual(result.status, ScanStatus.CANCELLED)
        self.assertLessEqual(len(result.outcomes), 4)


class TestWorkerPool(unittest.TestCase):
    """Test WorkerPool construction"""

    def test_requires_at_least_one_worker(self):
        with self.assertRaises(ValueError):
            WorkerPool(0, FakeProber(), ResultAggregator())


@patch("port_prober.prober.socket.create_connection", side_effect=ConnectionRefusedError())
class TestClosedPortsScenario(unittest.TestCase):
    """Test the real prober against refused connections"""

    def test_three_closed_ports_single_attempt(self, mock_connect):
        """Ports 9000-9002 all closed with one attempt each"""
        config = ScanConfig(targets=["B"], start_port=9000, end_port=9002, max_retries=1, workers=3)
        result = ScanOrchestrator(config).run()

        self.assertEqual(len(result.outcomes), 3)
        for outcome in result.outcomes:
            self.assertEqual(outcome.status, ProbeStatus.CLOSED)
            self.assertEqual(outcome.attempts, 1)
        self.assertEqual(result.summary.open_count, 0)


class LocalServer:
    """Loopback TCP listener, optionally sending a banner on accept"""

    def __init__(self, banner=None):
        self.banner = banner
        self.sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self.sock.bind(("127.0.0.1", 0))
        self.sock.listen(16)
        self.sock.settimeout(0.1)
        self.port = self.sock.getsockname()[1]
        self._stop = threading.Event()
        self._conns = []
        self._thread = threading.Thread(target=self._serve, daemon=True)
        self._thread.start()

    def _serve(self):
        while not self._stop.is_set():
            try:
                conn, _ = self.sock.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            if self.banner is not None:
                conn.sendall(self.banner)
            self._conns.append(conn)

    def close(self):
        self._stop.set()
        self._thread.join(2)
        for conn in self._conns:
            conn.close()
        self.sock.close()


class TestLoopbackScan(unittest.TestCase):
    """End-to-end scan against loopback listeners"""

    def setUp(self):
        self.banner_server = LocalServer(banner=b"HELLO-TEST 1.0\r\n")
        self.silent_server = LocalServer()
        # bound but not listening: connections are refused
        self.closed_sock = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self.closed_sock.bind(("127.0.0.1", 0))
        self.closed_port = self.closed_sock.getsockname()[1]

    def tearDown(self):
        self.banner_server.close()
        self.silent_server.close()
        self.closed_sock.close()

    def test_open_closed_and_banner(self):
        config = ScanConfig(
            targets=["127.0.0.1"],
            start_port=self.banner_server.port,
            end_port=self.banner_server.port,
            extra_ports=f"{self.silent_server.port},{self.closed_port}",
            workers=3,
            timeout=2,
            max_retries=1,
            banner_timeout=0.3,
        )
        result = ScanOrchestrator(config).run()

        by_port = {o.task.port: o for o in result.outcomes}
        self.assertEqual(len(by_port), 3)

        self.assertEqual(by_port[self.banner_server.port].status, ProbeStatus.OPEN)
        self.assertEqual(by_port[self.banner_server.port].banner, "HELLO-TEST 1.0")

        self.assertEqual(by_port[self.silent_server.port].status, ProbeStatus.OPEN)
        self.assertIsNone(by_port[self.silent_server.port].banner)

        self.assertEqual(by_port[self.closed_port].status, ProbeStatus.CLOSED)
        self.assertEqual(by_port[self.closed_port].attempts, 1)

        self.assertEqual(result.summary.open_count, 2)
        self.assertEqual(result.summary.ports_scanned, 3)


if __name__ == '__main__':
    unittest.main()
