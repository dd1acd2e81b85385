import threading
import unittest

from pitg.kernel.guard import InFlightGuard


class TestInFlightGuard(unittest.TestCase):
    def test_concurrent_admission_admits_exactly_one(self) -> None:
        for _ in range(50):
            guard = InFlightGuard()
            barrier = threading.Barrier(2)
            results = []
            lock = threading.Lock()

            def attempt() -> None:
                barrier.wait()
                admitted = guard.try_admit("pfx-100")
                with lock:
                    results.append(admitted)

            threads = [threading.Thread(target=attempt) for _ in range(2)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

            self.assertEqual(sorted(results), [False, True])

    def test_release_allows_readmission(self) -> None:
        guard = InFlightGuard()
        self.assertTrue(guard.try_admit("k"))
        self.assertFalse(guard.try_admit("k"))
        guard.release("k")
        self.assertTrue(guard.try_admit("k"))

    def test_release_is_idempotent(self) -> None:
        guard = InFlightGuard()
        guard.release("missing")
        guard.try_admit("k")
        guard.release("k")
        guard.release("k")
        self.assertFalse(guard.is_busy("k"))

    def test_keys_are_independent(self) -> None:
        guard = InFlightGuard()
        self.assertTrue(guard.try_admit("pfx-100"))
        self.assertTrue(guard.try_admit("pfx-100-7"))
        self.assertEqual(guard.in_flight(), ["pfx-100", "pfx-100-7"])

    def test_admission_releases_on_exception(self) -> None:
        guard = InFlightGuard()
        with self.assertRaises(RuntimeError):
            with guard.admission("k") as admitted:
                self.assertTrue(admitted)
                self.assertTrue(guard.is_busy("k"))
                raise RuntimeError("boom")
        self.assertFalse(guard.is_busy("k"))

    def test_rejected_admission_does_not_release_holder(self) -> None:
        guard = InFlightGuard()
        with guard.admission("k") as first:
            self.assertTrue(first)
            with guard.admission("k") as second:
                self.assertFalse(second)
            # The rejected block must not have removed the holder's entry.
            self.assertTrue(guard.is_busy("k"))
        self.assertFalse(guard.is_busy("k"))


if __name__ == "__main__":
    unittest.main()
