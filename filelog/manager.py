"""Manager: the poll loop that discovers, reconciles, reads and checkpoints files.

Each cycle:
  1. glob the include/exclude patterns into a path set
  2. fingerprint every path and reconcile against tracked readers
     (continued / new / retired)
  3. run read passes on a bounded thread pool and wait for the batch
  4. save offsets to the checkpoint store
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field

from filelog.checkpoint import CheckpointStore, MemoryCheckpointStore
from filelog.config import Config, lookup_encoding
from filelog.fingerprint import fingerprint
from filelog.matcher import GlobMatcher
from filelog.metrics import Metrics
from filelog.models import FileIdentity, ReaderState
from filelog.reader import Reader
from filelog.splitter import Flusher, Splitter, SplitRule

logger = logging.getLogger(__name__)


@dataclass
class Reconciliation:
    continued: list[tuple[ReaderState, str, FileIdentity]] = field(default_factory=list)
    new: list[tuple[str, FileIdentity]] = field(default_factory=list)
    retired: list[ReaderState] = field(default_factory=list)
    stalled: list[ReaderState] = field(default_factory=list)
    duplicates: list[str] = field(default_factory=list)


def reconcile(
    tracked: list[ReaderState],
    observed: list[tuple[str, FileIdentity]],
    unresolved: set[str] | frozenset = frozenset(),
) -> Reconciliation:
    """Match this cycle's (path, identity) pairs against the tracked states.

    Paths already tracked are considered first, then the rest in path order;
    a path whose identity matches an earlier one is a duplicate
    (first-observed-wins). A tracked state prefers the candidate at its own
    path. Tracked states left unmatched are retired, unless their path exists
    but could not be fingerprinted this cycle (*unresolved*), in which case
    they are stalled and kept.
    """
    result = Reconciliation()
    tracked_paths = {s.path for s in tracked}
    ordered = sorted(observed, key=lambda o: (o[0] not in tracked_paths, o[0]))

    kept: list[tuple[str, FileIdentity]] = []
    for path, identity in ordered:
        if any(identity.matches(other) for _, other in kept):
            result.duplicates.append(path)
            continue
        kept.append((path, identity))

    claimed: set[int] = set()
    for path, identity in kept:
        candidates = [
            i for i, state in enumerate(tracked)
            if i not in claimed and state.identity.matches(identity)
        ]
        if not candidates:
            result.new.append((path, identity))
            continue
        same_path = [i for i in candidates if tracked[i].path == path]
        chosen = same_path[0] if same_path else candidates[0]
        claimed.add(chosen)
        result.continued.append((tracked[chosen], path, identity))

    for i, state in enumerate(tracked):
        if i in claimed:
            continue
        if state.path in unresolved:
            result.stalled.append(state)
        else:
            result.retired.append(state)
    return result


@dataclass
class _Retained:
    identity: FileIdentity
    offset: int
    since: float


class Manager:
    def __init__(
        self,
        config: Config,
        matcher: GlobMatcher,
        rule: SplitRule,
        encoding: str,
        emit,
        checkpoints: CheckpointStore,
        opener=open,
        clock=time.monotonic,
    ):
        self._config = config
        self._matcher = matcher
        self._rule = rule
        self._encoding = encoding
        self._emit = emit
        self._checkpoints = checkpoints
        self._opener = opener
        self._clock = clock
        self.metrics = Metrics()

        self._readers: list[Reader] = []
        self._retained: list[_Retained] = []
        self._loaded = False
        self._first_poll = True

        self._shutdown = threading.Event()
        self._thread: threading.Thread | None = None
        self._pool: ThreadPoolExecutor | None = None

    @property
    def readers(self) -> list[Reader]:
        return list(self._readers)

    @property
    def matcher(self) -> GlobMatcher:
        return self._matcher

    # -- lifecycle ---------------------------------------------------------

    def start(self) -> None:
        """Run the poll loop on a background thread."""
        if self._thread is not None:
            return
        self._shutdown.clear()
        self._thread = threading.Thread(target=self._run, name="filelog-poller", daemon=True)
        self._thread.start()
        logger.info("File consumer started: include=%s exclude=%s poll_interval=%.3fs",
                    self._matcher.include, self._matcher.exclude, self._config.poll_interval)

    def stop(self, timeout: float | None = None) -> None:
        """Cancel the loop; in-flight passes finish their current chunk first.

        If the poller outlives *timeout*, its reader pool is left for the
        poller to close when its cycle ends.
        """
        self._shutdown.set()
        if self._thread is not None:
            self._thread.join(timeout)
            if self._thread.is_alive():
                logger.warning("Poll cycle still running after %ss, leaving it to finish", timeout)
                return
            self._thread = None
        self._close_pool()
        logger.info("File consumer stopped")

    def _close_pool(self) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=True)
            self._pool = None

    def _run(self) -> None:
        next_tick = self._clock()
        while not self._shutdown.is_set():
            try:
                self.poll()
            except Exception:
                logger.exception("Poll cycle failed")
            next_tick += self._config.poll_interval
            delay = next_tick - self._clock()
            if delay <= 0:
                # overran the interval: run the next cycle back-to-back
                next_tick = self._clock()
                continue
            self._shutdown.wait(delay)
        self._close_pool()

    # -- poll cycle --------------------------------------------------------

    def poll(self) -> int:
        """Run one discover-reconcile-read-persist cycle. Returns records emitted."""
        if not self._loaded:
            self._load_checkpoints()
        self.metrics.increment("polls")

        paths = self._matcher.match()
        observed, unresolved = self._fingerprint_paths(paths)
        result = reconcile([r.state for r in self._readers], observed, unresolved)
        active = self._apply(result)
        self._first_poll = False

        emitted = self._read_all(active)

        self._expire_retained()
        self._checkpoints.save(self.offsets())
        self.metrics.set("files_tracked", len(self._readers))
        logger.debug("Poll: %d path(s) matched, %d tracked, %d read, %d record(s) emitted",
                     len(paths), len(self._readers), len(active), emitted)
        return emitted

    def offsets(self) -> dict[str, int]:
        """Current identity key -> offset mapping, including retained identities."""
        offsets = {r.identity.key: r.offset for r in self._retained}
        for reader in self._readers:
            offsets[reader.state.identity.key] = reader.state.offset
        return offsets

    def _load_checkpoints(self) -> None:
        now = self._clock()
        for key, offset in self._checkpoints.load().items():
            self._retained.append(_Retained(FileIdentity.from_key(key), offset, now))
        self._loaded = True
        if self._retained:
            logger.info("Resuming from %d checkpoint(s)", len(self._retained))

    def _fingerprint_paths(self, paths: list[str]) -> tuple[list[tuple[str, FileIdentity]], set[str]]:
        observed = []
        unresolved = set()
        for path in paths:
            try:
                identity = fingerprint(path, self._config.fingerprint_size, self._opener)
            except OSError as e:
                logger.warning("Failed to fingerprint %s: %s", path, e)
                self.metrics.increment("fingerprint_errors")
                unresolved.add(path)
                continue
            if not len(identity):
                # nothing to identify an empty file by yet
                unresolved.add(path)
                continue
            observed.append((path, identity))
        return observed, unresolved

    def _apply(self, result: Reconciliation) -> list[Reader]:
        by_state = {id(r.state): r for r in self._readers}
        active = []

        for state, path, identity in result.continued:
            if state.path != path:
                logger.info("File moved: %s -> %s", state.path, path)
                state.path = path
            state.identity = identity
            active.append(by_state[id(state)])

        for path in result.duplicates:
            logger.warning("Skipping %s: fingerprint collides with another matched file", path)
            self.metrics.increment("identity_collisions")

        for state in result.retired:
            logger.info("File no longer matched, retiring: %s", state.path)
            self.metrics.increment("files_retired")
            self._retained.append(_Retained(state.identity, state.offset, self._clock()))
            self._readers.remove(by_state[id(state)])

        for path, identity in result.new:
            offset = self._initial_offset(path, identity)
            reader = self._make_reader(ReaderState(identity, path, offset))
            self._readers.append(reader)
            active.append(reader)
            logger.info("Started watching file %s at offset %d", path, offset)

        return active

    def _initial_offset(self, path: str, identity: FileIdentity) -> int:
        for i, retained in enumerate(self._retained):
            if retained.identity.matches(identity):
                del self._retained[i]
                return retained.offset
        if self._first_poll and self._config.start_at == "end":
            try:
                with self._opener(path, "rb") as f:
                    return f.seek(0, 2)
            except OSError as e:
                logger.warning("Failed to seek to end of %s, reading from start: %s", path, e)
        return 0

    def _make_reader(self, state: ReaderState) -> Reader:
        splitter = Splitter(
            self._rule,
            self._encoding,
            self._config.max_log_size,
            Flusher(self._config.flusher_timeout, self._clock),
        )
        return Reader(
            state,
            splitter,
            self._emit,
            max_log_size=self._config.max_log_size,
            labels=self._config.attributes,
            metrics=self.metrics,
            opener=self._opener,
        )

    def _read_all(self, readers: list[Reader]) -> int:
        if not readers:
            return 0
        if self._pool is None:
            self._pool = ThreadPoolExecutor(
                max_workers=self._config.max_concurrent_files,
                thread_name_prefix="filelog-reader",
            )
        futures = {self._pool.submit(r.read_pass, self._shutdown): r for r in readers}
        emitted = 0
        for future in as_completed(futures):
            reader = futures[future]
            try:
                emitted += future.result().emitted
            except Exception:
                logger.exception("Read pass failed for %s", reader.state.path)
        return emitted

    def _expire_retained(self) -> None:
        now = self._clock()
        keep = []
        for retained in self._retained:
            if now - retained.since >= self._config.checkpoint_retention:
                logger.debug("Dropping checkpoint for retired identity %s...", retained.identity.key[:16])
            else:
                keep.append(retained)
        self._retained = keep


def build(
    config: Config,
    emit,
    checkpoints: CheckpointStore | None = None,
    opener=open,
    clock=time.monotonic,
) -> Manager:
    """Validate *config* and return a Manager; raises ConfigError on any problem."""
    config.validate()
    matcher = GlobMatcher(config.include, config.exclude)
    rule = SplitRule.from_patterns(config.line_start_pattern, config.line_end_pattern)
    encoding = lookup_encoding(config.encoding)
    return Manager(
        config,
        matcher,
        rule,
        encoding,
        emit,
        checkpoints if checkpoints is not None else MemoryCheckpointStore(),
        opener=opener,
        clock=clock,
    )
