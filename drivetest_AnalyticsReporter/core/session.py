# drivetest_AnalyticsReporter/core/session.py
from __future__ import annotations
from concurrent.futures import Future, ThreadPoolExecutor
import logging
from typing import Callable

from .errors import IngestionError
from .mapping import propose_mapping
from .model import Dataset, FieldMapping, RawTable
from .normalize import NormalizeOptions, build_dataset
from .query import answer_question, summary_context
from .refine import RemoteRefiner

_LOG = logging.getLogger(__name__)


class AnalyticsSession:
    """
    Caller-owned analysis state: the current Dataset snapshot, the external
    technology selector and an optional remote refiner.

    The dataset reference is only swapped once a new ingestion has fully
    succeeded, so readers see either the old or the new dataset.
    """

    def __init__(self,
                 dataset: Dataset | None = None,
                 technology: str = "All",
                 refiner: RemoteRefiner | None = None,
                 options: NormalizeOptions | None = None):
        self._dataset = dataset if dataset is not None else Dataset(records=())
        self.technology = technology
        self.refiner = refiner
        self.options = options or NormalizeOptions()
        self._executor: ThreadPoolExecutor | None = None

    @property
    def dataset(self) -> Dataset:
        return self._dataset

    def reingest(self, table: RawTable, mapping: FieldMapping | None = None,
                 overrides: dict | None = None) -> Dataset:
        """Normalize a new table and replace the dataset; IngestionError leaves it unchanged."""
        if mapping is None:
            mapping = propose_mapping(table.headers)
        mapping = mapping.frozen().override(overrides)
        try:
            new = build_dataset(table, mapping, options=self.options)
        except IngestionError:
            _LOG.warning("ingestion of %s failed; keeping %d existing rows", table.name, len(self._dataset))
            raise
        self._dataset = new
        return new

    def ask(self, question: str, on_refined: Callable[[str], None] | None = None) -> str:
        """
        Local answer, returned at once. With a refiner configured, a refinement
        is started in the background and delivered to on_refined only if it
        produces text.
        """
        snapshot = self._dataset
        local = answer_question(question, snapshot, self.technology)
        if self.refiner is not None and self.refiner.available and on_refined is not None:
            self._submit_refinement(question, snapshot, local, on_refined)
        return local

    def _submit_refinement(self, question: str, snapshot: Dataset, local: str,
                           on_refined: Callable[[str], None]) -> Future:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="refiner")
        context = summary_context(snapshot, self.technology)
        fut = self._executor.submit(self.refiner.refine, question, context, local)

        def _deliver(done: Future) -> None:
            text = done.result()
            if text:
                on_refined(text)

        fut.add_done_callback(_deliver)
        return fut

    def close(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def __enter__(self) -> "AnalyticsSession":
        return self

    def __exit__(self, *exc) -> None:
        self.close()
