"""
Gate controller for trustgate.

The controller owns the gate's lifecycle. It coordinates between:
- Trust Store: refreshed at activation and when a trust note changes
- Interception Manager: guards installed on every integration entry point
- Policy Engine: verdict for each guarded call
- Reporter: told about every denied call

Activation Flow:
    1. Refresh the trust store
    2. Watch every trust note (debounced refresh on change)
    3. For each integration, in the background:
        a. Resolve the target, retrying with increasing delay
        b. Install a guard on every entry point it declares
    An integration that never resolves is recorded as failed; the others
    are unaffected.

Guarded Call Flow:
    1. Extract script text (reading a referenced file if needed)
    2. Evaluate against the current trust snapshot
    3. Allowed: delegate through the binding's delegation window
       Denied: report the digest, then return the denied result or run a
       blocked notice (per the entry point's DenialMode)

Design Principles:
    - Verdicts never raise past a guard
    - Errors raised by authorized code propagate unchanged
    - Deactivation restores every original and never raises for a
      binding already gone
"""

import asyncio
import functools
import inspect
import logging
from typing import Any, Callable

from trustgate.documents import DocumentStore, Unsubscribe
from trustgate.errors import (
    ContentExtractionError,
    IntegrationUnavailableError,
    InterceptionError,
    SourceUnavailableError,
)
from trustgate.integrations import (
    DenialMode,
    EntryPoint,
    Host,
    Integration,
    builtin_integrations,
)
from trustgate.intercept import InterceptionBinding, InterceptionManager
from trustgate.policy import PolicyEngine
from trustgate.report import LoggingReporter, Reporter
from trustgate.schema import GateSettings, PolicyDecision, TrustSnapshot
from trustgate.trust import TrustStore

logger = logging.getLogger(__name__)


class GateController:
    """
    Lifecycle owner of the trusted-execution gate.

    Usage:
        async with GateController(settings, host, documents) as gate:
            await gate.wait_secured()
            ...

    Attributes:
        settings: Settings in effect
        host: The document-rendering host
        documents: Document store for trust notes and run-file references
        reporter: Receives denied invocations
        integrations: Integrations to secure
        manager: Interception manager owning all bindings
        trust_store: Trust store built from settings
        policy: Policy engine bound to settings flags and trust_store
        failed_integrations: Integrations that could not be secured
    """

    def __init__(
        self,
        settings: GateSettings,
        host: Host,
        documents: DocumentStore | None = None,
        reporter: Reporter | None = None,
        integrations: list[Integration] | None = None,
        manager: InterceptionManager | None = None,
    ) -> None:
        self.settings = settings
        self.host = host
        self.documents = documents
        self.reporter = reporter or LoggingReporter()
        self.integrations = list(integrations) if integrations is not None else builtin_integrations()
        self.manager = manager or InterceptionManager()
        self.trust_store = TrustStore.from_settings(settings, documents)
        self.policy = PolicyEngine(settings.flags, self.trust_store)
        self.failed_integrations: dict[str, Exception] = {}

        self._active = False
        self._loop: asyncio.AbstractEventLoop | None = None
        self._tasks: dict[str, asyncio.Task[None]] = {}
        self._unwatch: list[Unsubscribe] = []
        self._debounce: asyncio.TimerHandle | None = None
        self._refresh_tasks: set[asyncio.Task[TrustSnapshot]] = set()
        self.trust_store.subscribe(self._on_refresh)

    @property
    def active(self) -> bool:
        return self._active

    async def __aenter__(self) -> "GateController":
        await self.activate()
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.deactivate()

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def activate(self) -> None:
        """Refresh trust, watch trust notes and start securing integrations."""
        if self._active:
            return
        self._active = True
        self._loop = asyncio.get_running_loop()
        self.failed_integrations.clear()

        await self.trust_store.refresh()
        self._watch_notes()

        for integration in self.integrations:
            self._tasks[integration.name] = asyncio.create_task(
                self._secure(integration),
                name=f"trustgate-secure-{integration.name}",
            )

    async def wait_secured(self) -> list[str]:
        """
        Wait for every integration to be secured or to fail.

        Returns:
            Names of the integrations that are now guarded

        Raises:
            InterceptionError: If installing a guard violated the binding contract
        """
        tasks = list(self._tasks.values())
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        for error in self.failed_integrations.values():
            if isinstance(error, InterceptionError):
                raise error
        return self.secured_integrations()

    def secured_integrations(self) -> list[str]:
        """Names of integrations with at least one installed guard."""
        return sorted({b.integration for b in self.manager.bindings()})

    async def deactivate(self) -> None:
        """Stop pending work and restore every original entry point."""
        if not self._active:
            return
        self._active = False

        if self._debounce is not None:
            self._debounce.cancel()
            self._debounce = None

        pending = [t for t in self._tasks.values() if not t.done()]
        for task in pending:
            task.cancel()
        if self._tasks:
            await asyncio.gather(*self._tasks.values(), return_exceptions=True)
        self._tasks.clear()

        refreshes = list(self._refresh_tasks)
        for task in refreshes:
            task.cancel()
        if refreshes:
            await asyncio.gather(*refreshes, return_exceptions=True)
        self._refresh_tasks.clear()

        for unwatch in self._unwatch:
            unwatch()
        self._unwatch.clear()

        restored = self.manager.uninstall_all()
        logger.info(f"Gate deactivated, {restored} entry points restored")

    async def apply_settings(self, settings: GateSettings) -> TrustSnapshot:
        """
        Switch to new settings (e.g. after the operator edited them).

        Sources and flags are replaced and the trust store refreshed.
        Installed guards stay in place.
        """
        self.settings = settings
        for source in self.trust_store.sources:
            self.trust_store.remove_source(source)
        for source in settings.sources():
            self.trust_store.add_source(source)
        self.policy.update_flags(settings.flags)
        if self._active:
            for unwatch in self._unwatch:
                unwatch()
            self._unwatch.clear()
            self._watch_notes()
        return await self.trust_store.refresh()

    async def refresh(self) -> TrustSnapshot:
        """Reload trusted hashes now."""
        return await self.trust_store.refresh()

    def status(self) -> dict[str, Any]:
        """Summary of the gate's state."""
        snapshot = self.trust_store.snapshot
        return {
            "active": self._active,
            "secured": self.secured_integrations(),
            "failed": {name: str(e) for name, e in self.failed_integrations.items()},
            "trusted_hashes": len(snapshot.entries),
            "failed_sources": list(snapshot.failed_sources),
            "refreshed_at": snapshot.refreshed_at.isoformat(),
        }

    # =========================================================================
    # Integration Resolution
    # =========================================================================

    def backoff_delay(self, attempt: int) -> float:
        """Delay after failed attempt number `attempt` (1-based)."""
        delay = self.settings.resolve_base_delay * (2 ** (attempt - 1))
        return min(delay, self.settings.resolve_max_delay)

    async def resolve_integration(self, integration: Integration) -> Any:
        """
        Find an integration's target, waiting for it to load.

        Raises:
            IntegrationUnavailableError: If it is still missing after
                resolve_max_attempts attempts
        """
        max_attempts = self.settings.resolve_max_attempts
        for attempt in range(1, max_attempts + 1):
            target = integration.resolve(self.host)
            if target is not None:
                return target
            if attempt < max_attempts:
                delay = self.backoff_delay(attempt)
                logger.debug(f"{integration.name} not available (attempt {attempt}), retrying in {delay:.2f}s")
                await asyncio.sleep(delay)
        raise IntegrationUnavailableError(integration=integration.name, attempts=max_attempts)

    async def _secure(self, integration: Integration) -> None:
        try:
            target = await self.resolve_integration(integration)
        except IntegrationUnavailableError as e:
            logger.error(str(e))
            self.failed_integrations[integration.name] = e
            return

        try:
            self.install_integration(integration, target)
        except (InterceptionError, ContentExtractionError) as e:
            logger.error(f"Failed to secure {integration.name}: {e}")
            self.failed_integrations[integration.name] = e
            raise

    def install_integration(self, integration: Integration, target: Any) -> list[InterceptionBinding]:
        """
        Install guards on every entry point of a resolved integration.

        All or nothing: if one entry point cannot be guarded, the guards
        already installed for this integration are removed again.
        """
        installed: list[InterceptionBinding] = []
        try:
            for entry in integration.entry_points:
                installed.append(self._install_entry(integration, target, entry))
        except Exception:
            for binding in installed:
                self.manager.uninstall(binding)
            raise
        logger.info(f"Secured {integration.name} ({len(installed)} entry points)")
        return installed

    # =========================================================================
    # Guards
    # =========================================================================

    def _install_entry(self, integration: Integration, target: Any, entry: EntryPoint) -> InterceptionBinding:
        current = getattr(target, entry.name, None)
        asynchronous = inspect.iscoroutinefunction(current)
        if entry.content_is_reference and not asynchronous:
            raise ContentExtractionError(
                integration=integration.name,
                entry_point=entry.name,
                underlying_error="file references can only be resolved for async entry points",
            )

        # Filled in right after install; the guard cannot run before that
        bound: list[InterceptionBinding] = []

        if asynchronous:
            async def async_guard(*args: Any, **kwargs: Any) -> Any:
                return await self._guarded_async(integration, entry, bound[0], args, kwargs)

            guard: Callable[..., Any] = async_guard
        else:
            def sync_guard(*args: Any, **kwargs: Any) -> Any:
                return self._guarded_sync(integration, entry, bound[0], args, kwargs)

            guard = sync_guard

        if inspect.isroutine(current):
            functools.update_wrapper(guard, current)
            # The live entry point must not expose a path to the unguarded original
            del guard.__wrapped__

        binding = self.manager.install(target, entry.name, guard, integration=integration.name)
        bound.append(binding)
        return binding

    def _guarded_sync(
        self,
        integration: Integration,
        entry: EntryPoint,
        binding: InterceptionBinding,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Any:
        if binding.in_delegation():
            return binding.original(*args, **kwargs)

        content = entry.content(args, kwargs, integration.name)
        decision = self.policy.evaluate(content, integration.name)
        if decision.allowed:
            with binding.delegating() as original:
                return original(*args, **kwargs)

        self._report(decision, entry.location(args, kwargs))
        if entry.denial is DenialMode.SUBSTITUTE:
            args, kwargs = entry.with_content(args, kwargs, integration.blocked_notice(decision.digest))
            with binding.delegating() as original:
                return original(*args, **kwargs)
        return integration.denied_result

    async def _guarded_async(
        self,
        integration: Integration,
        entry: EntryPoint,
        binding: InterceptionBinding,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
    ) -> Any:
        if binding.in_delegation():
            return await binding.original(*args, **kwargs)

        target_binding = binding
        value = entry.content(args, kwargs, integration.name)
        if entry.content_is_reference:
            try:
                content = await self._read_reference(value)
            except SourceUnavailableError as e:
                logger.error(f"{integration.name}: file not found: {value} ({e.underlying_error})")
                return integration.denied_result
            delegate = self.manager.get(binding.target, entry.delegate_to) if entry.delegate_to else None
            if delegate is not None:
                # Run the text that was checked, not whatever the file holds later
                target_binding = delegate
                args, kwargs = entry.with_content(args, kwargs, content)
        else:
            content = value

        decision = self.policy.evaluate(content, integration.name)
        if not decision.allowed:
            self._report(decision, entry.location(args, kwargs))
            # A file-path argument cannot carry a substituted notice
            substitutable = not (entry.content_is_reference and target_binding is binding)
            if entry.denial is not DenialMode.SUBSTITUTE or not substitutable:
                return integration.denied_result
            args, kwargs = entry.with_content(args, kwargs, integration.blocked_notice(decision.digest))

        with target_binding.delegating() as original:
            return await original(*args, **kwargs)

    async def _read_reference(self, reference: Any) -> str:
        if self.documents is None:
            raise SourceUnavailableError(source=f"note:{reference}", underlying_error="no document store configured")
        try:
            return await self.documents.read_text(str(reference))
        except SourceUnavailableError:
            raise
        except (OSError, UnicodeDecodeError) as e:
            raise SourceUnavailableError(source=f"note:{reference}", underlying_error=str(e)) from e

    def _report(self, decision: PolicyDecision, location: Any) -> None:
        logger.debug(f"Blocked untrusted {decision.integration} execution. Hash: {decision.digest}")
        try:
            self.reporter.report_denied(location, decision.digest, decision.integration)
        except Exception:
            logger.exception(f"Reporter failed for blocked {decision.integration} execution")

    # =========================================================================
    # Trust Refresh
    # =========================================================================

    def _watch_notes(self) -> None:
        if self.documents is None:
            return
        for source in self.trust_store.note_sources():
            self._unwatch.append(self.documents.watch(source.path, self._on_document_changed))

    def _on_document_changed(self, reference: str) -> None:
        if not self._active or self._loop is None:
            return
        if self._debounce is not None:
            self._debounce.cancel()
        self._debounce = self._loop.call_later(self.settings.debounce_seconds, self._start_refresh)

    def _start_refresh(self) -> None:
        self._debounce = None
        if not self._active or self._loop is None:
            return
        task = self._loop.create_task(self.trust_store.refresh())
        self._refresh_tasks.add(task)
        task.add_done_callback(self._refresh_tasks.discard)

    def _on_refresh(self, snapshot: TrustSnapshot) -> None:
        rerender = getattr(self.host, "rerender", None)
        if callable(rerender):
            rerender()
