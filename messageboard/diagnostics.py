"""
Operational endpoints: liveness ping, the security headers the app applies,
and an on-demand in-process run of the functional test suite.
"""

from __future__ import annotations

import logging
import threading
import time
import unittest
from pathlib import Path

from fastapi import APIRouter
from fastapi.responses import JSONResponse, PlainTextResponse

from messageboard.middleware import SECURITY_HEADERS
from messageboard.schemas import SelfTestCaseResult, SelfTestResponse, SelfTestStats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/_api")

FUNCTIONAL_TESTS = Path(__file__).parent / "tests" / "test_functional.py"


class SelfTestState:
    """
    Process-wide flag telling whether a suite run is in progress.

    Starts cleared; ``try_start`` sets it unless already set, ``finish``
    clears it once the run completes or fails.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self.running = False

    def try_start(self) -> bool:
        with self._lock:
            if self.running:
                return False
            self.running = True
            return True

    def finish(self) -> None:
        with self._lock:
            self.running = False


self_test_state = SelfTestState()


def _title(test: unittest.TestCase) -> str:
    return getattr(test, "_testMethodName", None) or str(test)


class _CollectingResult(unittest.TestResult):
    """TestResult that keeps a per-test record for the JSON report."""

    def __init__(self):
        super().__init__()
        self.records: list[SelfTestCaseResult] = []
        self._started: dict[str, float] = {}

    def startTest(self, test):
        super().startTest(test)
        self._started[test.id()] = time.perf_counter()

    def _elapsed_ms(self, test) -> float:
        started = self._started.pop(test.id(), time.perf_counter())
        return round((time.perf_counter() - started) * 1000, 3)

    def addSuccess(self, test):
        super().addSuccess(test)
        self.records.append(
            SelfTestCaseResult(
                title=_title(test),
                fullTitle=test.id(),
                state="passed",
                duration=self._elapsed_ms(test),
            )
        )

    def addFailure(self, test, err):
        super().addFailure(test, err)
        self._record_failure(test, err)

    def addError(self, test, err):
        super().addError(test, err)
        self._record_failure(test, err)

    def _record_failure(self, test, err) -> None:
        exc_type, exc_value, _ = err
        message = str(exc_value) or exc_type.__name__
        self._started.pop(test.id(), None)
        self.records.append(
            SelfTestCaseResult(
                title=_title(test),
                fullTitle=test.id(),
                state="failed",
                err=message,
            )
        )


def load_functional_suite(path: Path = FUNCTIONAL_TESTS) -> unittest.TestSuite:
    loader = unittest.TestLoader()
    return loader.discover(
        start_dir=str(path.parent), pattern=path.name, top_level_dir=str(path.parent)
    )


def run_suite(suite: unittest.TestSuite) -> SelfTestResponse:
    result = _CollectingResult()
    started = time.perf_counter()
    suite.run(result)
    duration = round((time.perf_counter() - started) * 1000, 3)
    passes = sum(1 for record in result.records if record.state == "passed")
    return SelfTestResponse(
        status="finished",
        stats=SelfTestStats(
            tests=result.testsRun,
            passes=passes,
            failures=len(result.failures) + len(result.errors),
            duration=duration,
        ),
        tests=result.records,
    )


@router.get("/ping", response_class=PlainTextResponse)
def ping():
    return PlainTextResponse("pong")


@router.get("/app-info")
def app_info():
    """
    Security headers the app adds to every response. CORS headers depend on
    the request origin and are not listed.
    """
    return {"headers": dict(SECURITY_HEADERS)}


@router.get(
    "/get-tests", response_model=SelfTestResponse, response_model_exclude_none=True
)
def get_tests():
    """Run the functional suite against this process; one run at a time."""
    if not self_test_state.try_start():
        return SelfTestResponse(status="running")
    try:
        if not FUNCTIONAL_TESTS.exists():
            return JSONResponse(
                status_code=500,
                content={"status": "error", "error": "Tests file not found"},
            )
        logger.info("Running functional tests from %s", FUNCTIONAL_TESTS)
        report = run_suite(load_functional_suite(FUNCTIONAL_TESTS))
        logger.info(
            "Functional tests finished: %s passed, %s failed",
            report.stats.passes,
            report.stats.failures,
        )
        return report
    except Exception as exc:
        logger.exception("Functional test run failed")
        return JSONResponse(
            status_code=500,
            content={"status": "error", "error": str(exc) or exc.__class__.__name__},
        )
    finally:
        self_test_state.finish()
