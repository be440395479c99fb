"""End-to-end test suite that runs filters inside an Envoy container."""

from __future__ import annotations

import argparse
import contextlib
import dataclasses
import os
import re
import signal
import socket
import subprocess
import threading
import time
import urllib.error
import urllib.request
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import IO, Callable, Iterator, Optional, Sequence

DEFAULT_ENVOY_IMAGE_VERSION = "envoyproxy/envoy:contrib-v1.31-latest"
DEFAULT_WAIT_DURATION = 5.0
DEFAULT_TICK_DURATION = 0.1

DEFAULT_ENVOY_PORT = 10000
DEFAULT_ADMIN_PORT = 8000
DEFAULT_ENVOY_CONFIG_NAME = "envoy.yaml"
DEFAULT_ENVOY_FILTER_NAME = "filter.so"

# Envoy's logger id for the filter extension.
_EXTENSION_COMPONENT = "go" + "lang"
_COMPONENT_LOG_LEVELS = (
    ("main", "error"),
    (_EXTENSION_COMPONENT, "info"),
    ("misc", "error"),
)


class SuiteError(Exception):
    """A suite or one of its cases could not be set up or run."""


class CaseSkipped(Exception):
    """A test case was skipped on purpose."""


@dataclass
class SuiteOptions:
    """Options for building a test suite.

    ``filter_location`` is a pattern with ``{filter}`` and ``{filename}``
    substitutions; it defaults to ``$PWD/filters/{filter}/{filename}``.
    """

    envoy_image_version: str = ""
    envoy_port_start_from: int = 0
    admin_port_start_from: int = 0
    skip_tests: list[str] = field(default_factory=list)
    filter_location: str = ""
    run_test: str = ""


def parse_skip_tests(value: str) -> list[str]:
    """Split a comma-separated list of test names."""
    if not value:
        return []
    return value.split(",")


def parse_flags(argv: Optional[Sequence[str]] = None) -> SuiteOptions:
    """Read ``-skip-tests`` and ``-run-test`` from the command line.

    Unknown arguments are ignored.
    """
    parser = argparse.ArgumentParser(add_help=False)
    parser.add_argument(
        "-skip-tests", "--skip-tests", dest="skip_tests", default="",
        help="Comma-separated list of tests to skip",
    )
    parser.add_argument(
        "-run-test", "--run-test", dest="run_test", default="",
        help="Name of a single test to run, instead of the whole suite",
    )
    ns, _ = parser.parse_known_args(argv)
    return SuiteOptions(skip_tests=parse_skip_tests(ns.skip_tests), run_test=ns.run_test)


def format_path(base: str, *args: str) -> str:
    """Replace each old/new pair of ``args`` in ``base`` in a single pass.

    Where several old strings match at one position, the earlier pair wins.
    """
    if len(args) % 2 != 0:
        raise ValueError("format_path: odd argument count")
    if not args:
        return base
    mapping: dict[str, str] = {}
    for old, new in zip(args[::2], args[1::2]):
        mapping.setdefault(old, new)
    pattern = re.compile("|".join(re.escape(old) for old in mapping))
    return pattern.sub(lambda m: mapping[m.group(0)], base)


def ensure_required_file_exists(*args: str) -> None:
    """Raise SuiteError for the first path that does not exist."""
    for path in args:
        try:
            os.stat(path)
        except FileNotFoundError as exc:
            raise SuiteError(f"file {path} does not exist") from exc


def _eventually(condition: Callable[[], bool], wait: float, tick: float) -> bool:
    deadline = time.monotonic() + wait
    while True:
        if condition():
            return True
        if time.monotonic() >= deadline:
            return False
        time.sleep(tick)


class _LogBuffer:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._chunks: list[str] = []

    def write(self, text: str) -> None:
        with self._lock:
            self._chunks.append(text)

    def getvalue(self) -> str:
        with self._lock:
            return "".join(self._chunks)

    def consume(self, stream: IO[bytes]) -> None:
        for line in stream:
            self.write(line.decode("utf-8", errors="replace"))


@dataclass
class SuiteKit:
    """Settings and helpers handed to each test case."""

    wait_duration: float = DEFAULT_WAIT_DURATION
    tick_duration: float = DEFAULT_TICK_DURATION
    envoy_config_abs_path: str = ""
    envoy_filter_abs_path: str = ""
    envoy_image_version: str = DEFAULT_ENVOY_IMAGE_VERSION
    envoy_port: int = DEFAULT_ENVOY_PORT
    admin_port: int = DEFAULT_ADMIN_PORT
    _log: _LogBuffer = field(default_factory=_LogBuffer, init=False, repr=False)

    def _command(self) -> list[str]:
        component_levels = ",".join(f"{name}:{level}" for name, level in _COMPONENT_LOG_LEVELS)
        return [
            "docker",
            "run",
            "--rm",
            "-p", f"{self.admin_port}:8000",
            "-p", f"{self.envoy_port}:10000",
            "-v", f"{self.envoy_config_abs_path}:/etc/envoy.yaml",
            "-v", f"{self.envoy_filter_abs_path}:/filter.so",
            self.envoy_image_version,
            "/usr/local/bin/envoy",
            "-c", "/etc/envoy.yaml",
            "--log-level", "warn",
            "--component-log-level", component_levels,
            "--concurrency", "1",
        ]

    def _admin_ready(self) -> bool:
        try:
            with urllib.request.urlopen(
                self.admin_host() + "/listeners", timeout=self.wait_duration
            ) as res:
                return res.status == 200
        except (urllib.error.URLError, OSError):
            return False

    def _envoy_reachable(self) -> bool:
        try:
            conn = socket.create_connection(
                ("localhost", self.envoy_port), timeout=self.wait_duration
            )
        except OSError:
            return False
        conn.close()
        return True

    @contextlib.contextmanager
    def start_envoy(self) -> Iterator[SuiteKit]:
        """Run Envoy in a container until the block exits.

        Raises SuiteError when Envoy does not come up in time.
        """
        self._log = _LogBuffer()
        try:
            proc = subprocess.Popen(
                self._command(), stdout=subprocess.DEVNULL, stderr=subprocess.PIPE
            )
        except OSError as exc:
            raise SuiteError(f"failed to start envoy: {exc}") from exc

        reader = threading.Thread(target=self._log.consume, args=(proc.stderr,), daemon=True)
        reader.start()
        try:
            if not _eventually(self._admin_ready, self.wait_duration, self.tick_duration):
                raise SuiteError(f"Envoy startup: {self.show_envoy_log()}")
            if not _eventually(self._envoy_reachable, self.wait_duration, self.tick_duration):
                raise SuiteError(f"Envoy unhealthy: {self.show_envoy_log()}")
            yield self
        finally:
            proc.send_signal(signal.SIGINT)
            try:
                proc.wait(timeout=self.wait_duration)
            except subprocess.TimeoutExpired:
                proc.kill()
                proc.wait()
            reader.join(timeout=self.wait_duration)

    def envoy_host(self) -> str:
        """Base URL of the Envoy listener."""
        return f"http://localhost:{self.envoy_port}"

    def admin_host(self) -> str:
        """Base URL of the Envoy admin interface."""
        return f"http://localhost:{self.admin_port}"

    def check_envoy_log(self, *args: str) -> bool:
        """Return True if any of the expressions appears in the Envoy log."""
        log = self._log.getvalue()
        return any(exp in log for exp in args)

    def show_envoy_log(self) -> str:
        """Return the Envoy log captured so far."""
        return self._log.getvalue()


@dataclass
class SuiteCase:
    """One end-to-end test case; ``test`` receives the case's kit."""

    name: str
    filter_name: str = ""
    description: str = ""
    envoy_filter_abs_dir: str = ""
    envoy_config_abs_dir: str = ""
    envoy_filter_name: str = ""
    envoy_config_name: str = ""
    parallel: bool = False
    skip: bool = False
    test: Optional[Callable[[SuiteKit], None]] = None
    port_suffix: int = 0

    def run(self, suite: Suite) -> None:
        """Prepare a kit for this case and run its test.

        Raises CaseSkipped when the case is skipped and SuiteError when the
        filter or configuration file is missing.
        """
        if (
            self.name in suite.skip_tests
            or self.skip
            or (suite.run_test and suite.run_test != self.name)
        ):
            raise CaseSkipped(f"Skipping {self.name}: test explicitly skipped")

        kit = SuiteKit(
            envoy_image_version=suite.envoy_image_version,
            admin_port=suite.admin_port + self.port_suffix,
            envoy_port=suite.envoy_port + self.port_suffix,
        )

        config_name = self.envoy_config_name or DEFAULT_ENVOY_CONFIG_NAME
        filter_name = self.envoy_filter_name or DEFAULT_ENVOY_FILTER_NAME

        if suite.filter_location:
            kit.envoy_config_abs_path = format_path(
                suite.filter_location, "{filter}", self.filter_name, "{filename}", config_name
            )
            kit.envoy_filter_abs_path = format_path(
                suite.filter_location, "{filter}", self.filter_name, "{filename}", filter_name
            )

        if self.envoy_config_abs_dir:
            kit.envoy_config_abs_path = format_path(
                self.envoy_config_abs_dir.removesuffix("/") + "/{filename}",
                "{filename}", config_name,
            )

        if self.envoy_filter_abs_dir:
            kit.envoy_filter_abs_path = format_path(
                self.envoy_filter_abs_dir.removesuffix("/") + "/{filename}",
                "{filename}", filter_name,
            )

        try:
            ensure_required_file_exists(kit.envoy_config_abs_path, kit.envoy_filter_abs_path)
        except SuiteError as exc:
            raise SuiteError(
                f"Test case '{self.name}' failed with error: {exc}. Please ensure you have "
                "built the filter and have the envoy configuration file in the filter directory."
            ) from exc

        if self.test is not None:
            self.test(kit)


@dataclass
class Suite:
    """A configured set of end-to-end runs against one Envoy image."""

    filter_location: str = ""
    envoy_image_version: str = DEFAULT_ENVOY_IMAGE_VERSION
    envoy_port: int = DEFAULT_ENVOY_PORT
    admin_port: int = DEFAULT_ADMIN_PORT
    run_test: str = ""
    skip_tests: frozenset[str] = frozenset()

    def _pull_envoy_image(self) -> None:
        try:
            subprocess.run(
                ["docker", "pull", self.envoy_image_version],
                check=True,
                capture_output=True,
            )
        except (subprocess.CalledProcessError, OSError) as exc:
            raise SuiteError(f"failed to pull {self.envoy_image_version}: {exc}") from exc

    def _run_case(self, case: SuiteCase) -> Optional[BaseException]:
        try:
            case.run(self)
        except Exception as exc:
            return exc
        return None

    def run(self, cases: Sequence[SuiteCase]) -> dict[str, Optional[BaseException]]:
        """Run every case and map each case name to its outcome.

        The outcome is None for a pass, a CaseSkipped for a skip, or the
        exception the case failed with. Serial cases run first, in order;
        parallel cases then run together.
        """
        if not self.filter_location:
            self.filter_location = f"{os.getcwd()}/filters/{{filter}}/{{filename}}"

        self._pull_envoy_image()

        prepared = [dataclasses.replace(c, port_suffix=i) for i, c in enumerate(cases)]
        outcomes: dict[int, Optional[BaseException]] = {}

        for i, case in enumerate(prepared):
            if not case.parallel:
                outcomes[i] = self._run_case(case)

        parallel = [(i, case) for i, case in enumerate(prepared) if case.parallel]
        if parallel:
            with ThreadPoolExecutor(max_workers=len(parallel)) as pool:
                futures = {i: pool.submit(self._run_case, case) for i, case in parallel}
                for i, future in futures.items():
                    outcomes[i] = future.result()

        return {case.name: outcomes[i] for i, case in enumerate(prepared)}


def new_test_suite(options: SuiteOptions) -> Suite:
    """Build a suite from options, filling in defaults."""
    return Suite(
        filter_location=options.filter_location,
        envoy_image_version=options.envoy_image_version or DEFAULT_ENVOY_IMAGE_VERSION,
        envoy_port=options.envoy_port_start_from or DEFAULT_ENVOY_PORT,
        admin_port=options.admin_port_start_from or DEFAULT_ADMIN_PORT,
        skip_tests=frozenset(options.skip_tests),
        run_test=options.run_test,
    )