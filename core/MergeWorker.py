from typing import Callable, NamedTuple, Optional
import itertools
import logging
import threading

from PIL import Image

from utilities.Logger import Logger

logger = Logger.setup_logger(logger_name="MergeWorker", log_level=logging.INFO)

ResultSink = Callable[[int, Image.Image], None]
ErrorSink = Callable[[int, Exception], None]


class MergeRequest(NamedTuple):
    request_id: int
    content: Image.Image
    style: Image.Image


class MergeWorker:
    """
    Runs pipeline merges on one background thread, at most one in flight.

    Requests land in a single "latest request" slot. When a request arrives while a
    merge is running, the worker finishes that merge, drops its result and runs
    again with the latest inputs, so only the result of the newest request is ever
    published. In-flight merges are never cancelled.
    """

    def __init__(self, pipeline, on_result: Optional[ResultSink] = None, on_error: Optional[ErrorSink] = None):
        self.pipeline = pipeline
        self.on_result = on_result
        self.on_error = on_error

        self.result: Optional[Image.Image] = None
        self.error: Optional[Exception] = None
        self.result_id = 0
        self.runs = 0

        # Reentrant so sinks may submit again from the worker thread
        self._lock = threading.RLock()
        self._idle = threading.Event()
        self._idle.set()
        self._ids = itertools.count(1)
        self._latest: Optional[MergeRequest] = None
        self._dirty = False
        self._thread: Optional[threading.Thread] = None
        self._last_style = None

    @property
    def pending(self) -> bool:
        return not self._idle.is_set()

    @property
    def latest_id(self) -> int:
        """Id of the most recently submitted request, 0 before the first submit."""
        with self._lock:
            return self._latest.request_id if self._latest is not None else 0

    def submit(self, content: Image.Image, style: Image.Image) -> int:
        """
        Request a merge of the given pair. Returns the request id.
        """
        with self._lock:
            if self._last_style is not None and style is not self._last_style:
                self.pipeline.reset_style()
            self._last_style = style

            request_id = next(self._ids)
            self._latest = MergeRequest(request_id, content, style)
            self._dirty = True
            self.result = None
            self.error = None

            if self._thread is None:
                self._idle.clear()
                self._thread = threading.Thread(target=self._run, name="merge-worker", daemon=True)
                self._thread.start()
            else:
                logger.debug(f"Request {request_id} queued behind the running merge")

        return request_id

    def wait(self, timeout: Optional[float] = None) -> bool:
        """
        Block until no merge is running or queued.

        :return: False if the timeout expired first.
        """
        return self._idle.wait(timeout)

    def _run(self):
        try:
            self._loop()
        finally:
            # Still set only when the loop was left by a BaseException
            with self._lock:
                if self._thread is threading.current_thread():
                    self._thread = None
                    self._idle.set()

    def _loop(self):
        while True:
            with self._lock:
                request = self._latest
                self._dirty = False

            image, error = None, None
            try:
                image = self.pipeline.merge(request.content, request.style)
            except Exception as e:
                logger.error(f"Merge for request {request.request_id} failed: {e}")
                error = e
            self.runs += 1

            with self._lock:
                if self._dirty:
                    logger.debug(f"Dropping result of request {request.request_id}, newer inputs arrived")
                    continue

                self.result, self.error, self.result_id = image, error, request.request_id
                self._publish(request.request_id, image, error)

                # A sink may have submitted from this thread
                if self._dirty:
                    continue

                self._thread = None
                self._idle.set()
                return

    def _publish(self, request_id, image, error):
        sink, value = (self.on_result, image) if error is None else (self.on_error, error)
        if sink is None:
            return
        try:
            sink(request_id, value)
        except Exception:
            logger.exception(f"Sink for request {request_id} raised")
