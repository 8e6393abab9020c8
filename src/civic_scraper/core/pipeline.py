# ABOUTME: Pipeline orchestrator: fetch, reuse or derive a manifest, extract, validate, heal once
# ABOUTME: Owns the run state machine, store counters, and the concurrent per-source worker pool

from __future__ import annotations

from collections.abc import Awaitable, Sequence
from typing import TypeVar

import anyio

from civic_scraper.analysis import AnalysisError, PromptClient, StructuralAnalyzer, compute_structure_hash
from civic_scraper.analysis.llm import DSPyLLMProvider
from civic_scraper.config import Config, get_config
from civic_scraper.core.comparator import ManifestComparator
from civic_scraper.core.models import (
    DEFAULT_CONTENT_GOALS,
    DataType,
    HealingDecision,
    PipelineResult,
    PipelineState,
    RawExtractionResult,
    StructuralManifest,
    ValidationThresholds,
)
from civic_scraper.core.sources import DataSourceConfig
from civic_scraper.extraction import ExtractionValidator, HtmlFetcher, ManifestExtractor
from civic_scraper.extraction.fetcher import HttpHtmlFetcher
from civic_scraper.healing import SelfHealingService
from civic_scraper.persistence import ManifestStore, SQLModelManifestRepository
from civic_scraper.utils.logging import get_logger, log_pipeline_step, with_source_context

T = TypeVar("T")


class _RunTrace:
    """States visited by one run, in order."""

    def __init__(self, logger):
        self.states: list[PipelineState] = []
        self.logger = logger

    def enter(self, state: PipelineState) -> None:
        self.states.append(state)
        self.logger.debug("Pipeline state", state=state.value)


class ScrapingPipelineService:
    """Coordinates one manifest-driven extraction run per (region, source URL, data type).

    1. Fetch the page and fingerprint its structure
    2. Reuse the active manifest, or derive and save a new version
    3. Extract items deterministically and validate them
    4. On failed validation, re-derive the manifest once and retry

    Analysis faults end the run with a failed result and never save a
    manifest. Fetch and store faults propagate to the caller.
    """

    def __init__(
        self,
        fetcher: HtmlFetcher | None = None,
        analyzer: StructuralAnalyzer | None = None,
        store: ManifestStore | None = None,
        extractor: ManifestExtractor | None = None,
        healing: SelfHealingService | None = None,
        comparator: ManifestComparator | None = None,
        config: Config | None = None,
    ):
        """Initialize the pipeline service.

        Args:
            fetcher: Page fetcher (defaults to HttpHtmlFetcher)
            analyzer: Structural analyzer (defaults to a DSPy-backed analyzer)
            store: Manifest store (defaults to a SQLModel repository on config.database_url)
            extractor: Manifest extractor
            healing: Self-healing decision service (defaults to one using config thresholds)
            comparator: Manifest reuse comparator
            config: Settings (defaults to the global config)
        """
        self.config = config or get_config()
        self.logger = get_logger(__name__)

        self.repository: SQLModelManifestRepository | None = None
        if store is None:
            self.repository = SQLModelManifestRepository(self.config.database_url)
            store = ManifestStore(self.repository)

        self.fetcher = fetcher or HttpHtmlFetcher()
        self.analyzer = analyzer or StructuralAnalyzer(
            DSPyLLMProvider(), PromptClient(), max_html_size=self.config.max_html_size
        )
        self.store = store
        self.extractor = extractor or ManifestExtractor()
        self.healing = healing or SelfHealingService(ExtractionValidator(self._thresholds()))
        self.comparator = comparator or ManifestComparator()

    def _thresholds(self) -> ValidationThresholds:
        return ValidationThresholds(
            missing_field_error_ratio=self.config.missing_field_error_ratio,
            missing_field_warning_ratio=self.config.missing_field_warning_ratio,
            drift_error_ratio=self.config.drift_error_ratio,
            drift_warning_ratio=self.config.drift_warning_ratio,
            warning_density_ratio=self.config.warning_density_ratio,
        )

    async def initialize(self) -> None:
        """Create storage tables when the service owns its repository."""
        if self.repository is not None:
            await self.repository.create_tables()

    async def close(self) -> None:
        close_fetcher = getattr(self.fetcher, "close", None)
        if close_fetcher is not None:
            await close_fetcher()
        if self.repository is not None:
            await self.repository.close()

    async def _store(self, call: Awaitable[T]) -> T:
        with anyio.fail_after(self.config.repository_timeout_seconds):
            return await call

    # --- Public API ------------------------------------------------------------------

    async def run_pipeline(
        self,
        region_id: str,
        source_url: str,
        data_type: DataType | str,
        content_goal: str | None = None,
        hints: list[str] | None = None,
        category: str | None = None,
    ) -> PipelineResult:
        data_type = DataType(data_type)
        source = DataSourceConfig(
            url=source_url,
            data_type=data_type,
            content_goal=content_goal or DEFAULT_CONTENT_GOALS[data_type],
            hints=hints or [],
            category=category,
        )
        return await self.execute(source, region_id)

    async def get_manifest_history(
        self, region_id: str, source_url: str, data_type: DataType | str, limit: int = 10
    ) -> list[StructuralManifest]:
        return await self._store(self.store.get_history(region_id, source_url, data_type, limit=limit))

    async def run_sources(
        self, region_id: str, sources: Sequence[DataSourceConfig], concurrency: int | None = None
    ) -> list[PipelineResult]:
        """Run independent sources concurrently; one source's fault does not stop the others.

        Faults that would propagate from a single run are reported as a failed
        result for that source instead.
        """
        limiter = anyio.CapacityLimiter(concurrency or self.config.pipeline_concurrency)
        results: list[PipelineResult | None] = [None] * len(sources)

        async def worker(index: int, source: DataSourceConfig) -> None:
            async with limiter:
                try:
                    results[index] = await self.execute(source, region_id)
                except Exception as e:
                    self.logger.exception(
                        "Source run failed", region_id=region_id, source_url=source.url, error_type=type(e).__name__
                    )
                    results[index] = PipelineResult(
                        region_id=region_id,
                        source_url=source.url,
                        data_type=source.data_type,
                        errors=[f"{type(e).__name__}: {e}"],
                    )

        async with anyio.create_task_group() as tg:
            for index, source in enumerate(sources):
                tg.start_soon(worker, index, source)

        return [result for result in results if result is not None]

    @log_pipeline_step("run_pipeline")
    async def execute(self, source: DataSourceConfig, region_id: str) -> PipelineResult:
        with with_source_context(region_id, source.url, source.data_type.value) as logger:
            trace = _RunTrace(logger)
            return await self._execute(source, region_id, trace, logger)

    # --- Run stages ------------------------------------------------------------------

    async def _execute(self, source: DataSourceConfig, region_id: str, trace: _RunTrace, logger) -> PipelineResult:
        html = await self.fetcher.fetch_html(source.url)
        structure_hash = compute_structure_hash(html)
        warnings: list[str] = []

        existing = await self._store(self.store.find_latest(region_id, source.url, source.data_type))
        comparison = self.comparator.compare(
            existing, structure_hash, self.analyzer.current_prompt_hash(source.data_type)
        )
        # Drift baseline follows the key, not the manifest version
        baseline = existing.last_item_count if existing else None

        if comparison.can_reuse and existing is not None:
            manifest = existing
            from_cache = True
        else:
            if existing is None:
                trace.enter(PipelineState.NO_MANIFEST)
            else:
                logger.info("Stored manifest is stale", reason=comparison.reason, version=existing.version)
            trace.enter(PipelineState.ANALYZING)
            try:
                manifest = await self._derive_manifest(html, source, region_id, structure_hash)
                from_cache = False
            except AnalysisError as e:
                if existing is None:
                    logger.error("Structural analysis failed", error=str(e))
                    trace.enter(PipelineState.FINALIZING)
                    self._log_finished(source, region_id, success=False, healed=False, item_count=0)
                    return self._result(
                        source, region_id, trace, errors=[f"Structural analysis failed: {e}"], warnings=warnings
                    )
                logger.warning("Re-analysis failed, reusing previous manifest", error=str(e))
                warnings.append(
                    f"Re-analysis after {comparison.reason} failed, using manifest v{existing.version}: {e}"
                )
                manifest = existing
                from_cache = True

        trace.enter(PipelineState.EXTRACTING)
        result = self.extractor.extract(html, manifest, base_url=source.url)
        trace.enter(PipelineState.VALIDATING)
        decision = self.healing.evaluate(result, manifest, previous_item_count=baseline)

        if decision.validation.valid:
            trace.enter(PipelineState.HEALTHY)
            return await self._finalize(source, region_id, trace, manifest, result, decision, warnings, from_cache)

        if not (decision.should_heal and self.config.self_healing_enabled):
            return await self._finalize(source, region_id, trace, manifest, result, decision, warnings, from_cache)

        return await self._heal(
            html, source, region_id, trace, manifest, result, decision, baseline, structure_hash, warnings, from_cache
        )

    async def _heal(
        self,
        html: str,
        source: DataSourceConfig,
        region_id: str,
        trace: _RunTrace,
        manifest: StructuralManifest,
        result: RawExtractionResult,
        decision: HealingDecision,
        baseline: int | None,
        structure_hash: str,
        warnings: list[str],
        from_cache: bool,
    ) -> PipelineResult:
        trace.enter(PipelineState.HEALING)
        self.logger.info("Self-healing manifest", manifest_id=manifest.id, reason=decision.reason)
        await self._store(self.store.increment_failure(manifest.id))

        trace.enter(PipelineState.ANALYZING)
        try:
            healed_manifest = await self._derive_manifest(html, source, region_id, structure_hash)
        except AnalysisError as e:
            warnings.append(f"Self-healing analysis failed: {e}")
            trace.enter(PipelineState.FINALIZING)
            self._log_finished(
                source, region_id, success=False, healed=False, item_count=len(result.items), manifest=manifest
            )
            return self._result(
                source,
                region_id,
                trace,
                manifest=manifest,
                items=result.items,
                from_cache=from_cache,
                errors=[*result.errors, *decision.validation.errors],
                warnings=[*warnings, *result.warnings, *decision.validation.warnings],
            )

        trace.enter(PipelineState.EXTRACTING)
        retry = self.extractor.extract(html, healed_manifest, base_url=source.url)
        trace.enter(PipelineState.VALIDATING)
        retry_decision = self.healing.evaluate(retry, healed_manifest, previous_item_count=baseline, heal_attempted=True)

        # Best available: the retry unless it extracted fewer items than the first attempt
        if not retry_decision.validation.valid and len(retry.items) < len(result.items):
            warnings.append(
                f"Re-derived manifest v{healed_manifest.version} extracted fewer items, "
                f"returning results of v{manifest.version}"
            )
            best = result
        else:
            best = retry

        return await self._finalize(
            source,
            region_id,
            trace,
            healed_manifest,
            retry,
            retry_decision,
            warnings,
            from_cache=False,
            healed=True,
            items=best.items,
        )

    async def _derive_manifest(
        self, html: str, source: DataSourceConfig, region_id: str, structure_hash: str
    ) -> StructuralManifest:
        history = await self._store(self.store.get_history(region_id, source.url, source.data_type, limit=1))
        version = history[0].version + 1 if history else 1

        timeout = self.config.analysis_timeout_seconds
        try:
            with anyio.fail_after(timeout):
                manifest = await self.analyzer.analyze(
                    html,
                    region_id=region_id,
                    source_url=source.url,
                    data_type=source.data_type,
                    content_goal=source.content_goal,
                    version=version,
                    hints=source.hints,
                    category=source.category,
                    structure_hash=structure_hash,
                )
        except TimeoutError as e:
            raise AnalysisError(f"Structural analysis timed out after {timeout}s") from e

        return await self._store(self.store.save(manifest))

    async def _finalize(
        self,
        source: DataSourceConfig,
        region_id: str,
        trace: _RunTrace,
        manifest: StructuralManifest,
        result: RawExtractionResult,
        decision: HealingDecision,
        warnings: list[str],
        from_cache: bool,
        healed: bool = False,
        items: list[dict[str, str]] | None = None,
    ) -> PipelineResult:
        trace.enter(PipelineState.FINALIZING)
        success = decision.validation.valid
        all_warnings = [*warnings, *result.warnings, *decision.validation.warnings]

        if success:
            await self._store(self.store.increment_success(manifest.id, item_count=len(result.items)))
            await self._store(self.store.mark_checked(manifest.id))
            errors: list[str] = []
        else:
            await self._store(self.store.increment_failure(manifest.id))
            errors = [*result.errors, *decision.validation.errors]

        self._log_finished(
            source,
            region_id,
            success=success,
            healed=healed,
            item_count=len(items if items is not None else result.items),
            manifest=manifest,
        )
        return self._result(
            source,
            region_id,
            trace,
            manifest=manifest,
            items=items if items is not None else result.items,
            success=success,
            healed=healed,
            from_cache=from_cache,
            errors=errors,
            warnings=all_warnings,
        )

    def _log_finished(
        self,
        source: DataSourceConfig,
        region_id: str,
        success: bool,
        healed: bool,
        item_count: int,
        manifest: StructuralManifest | None = None,
    ) -> None:
        self.logger.info(
            "Pipeline run finished",
            region_id=region_id,
            source_url=source.url,
            success=success,
            healed=healed,
            manifest_version=manifest.version if manifest else None,
            item_count=item_count,
        )

    @staticmethod
    def _result(
        source: DataSourceConfig,
        region_id: str,
        trace: _RunTrace,
        manifest: StructuralManifest | None = None,
        items: list[dict[str, str]] | None = None,
        success: bool = False,
        healed: bool = False,
        from_cache: bool = False,
        errors: list[str] | None = None,
        warnings: list[str] | None = None,
    ) -> PipelineResult:
        return PipelineResult(
            region_id=region_id,
            source_url=source.url,
            data_type=source.data_type,
            items=items or [],
            success=success,
            healed=healed,
            from_cache=from_cache,
            manifest_id=manifest.id if manifest else None,
            manifest_version=manifest.version if manifest else None,
            errors=errors or [],
            warnings=warnings or [],
            states=list(trace.states),
        )
