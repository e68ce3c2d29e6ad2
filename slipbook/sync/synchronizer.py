"""
Settings Synchronizer

Keeps the session's SettingsState in step with the remote settings
document.

State machine:
    NOT_LOADED --load()--> LOADING
    LOADING --document found--> LOADED (fields adopted over defaults)
    LOADING --no document--> LOADED (default document written first)
    LOADING --error / malformed document--> LOAD_FAILED
    LOAD_FAILED --retry_load()--> LOADING

CRITICAL: Nothing is written to the remote store unless the state is
LOADED. A fast local default must never overwrite a slower-loading
remote document (write-before-read race).

Edits made before the load completes are applied locally but are
replaced by the loaded document; the discard is logged and audited.

Every mutation while LOADED restarts a debounce timer. When it expires
one write carries the full current snapshot. A failed write leaves the
local state untouched and marked unsynced; the next mutation (or an
explicit flush()) writes the whole snapshot again.
"""

import asyncio
from typing import Any, Optional

import structlog

from slipbook.audit import AuditLogger
from slipbook.models.audit import AuditEvent, AuditEventBuilder
from slipbook.models.settings import (
    MAX_CATEGORY_LENGTH,
    PERSISTED_FIELDS,
    BudgetSettings,
    CategoryUsed,
    LoadState,
    SettingsState,
)
from slipbook.services.storage import SettingsStoreInterface, StorageError
from slipbook.sync.debounce import Debouncer


DEFAULT_DOCUMENT_KEY = "user_settings"
DEFAULT_DEBOUNCE_SECONDS = 1.0


class UnknownSettingError(KeyError):
    """update_field was given a key that is not a settings field."""
    pass


class SettingsSynchronizer:
    """
    Single owner of a session's SettingsState.
    
    All mutation goes through update_field (the category, toggle and
    budget helpers are thin wrappers around it).
    """
    
    def __init__(
        self,
        store: SettingsStoreInterface,
        document_key: str = DEFAULT_DOCUMENT_KEY,
        debounce_seconds: float = DEFAULT_DEBOUNCE_SECONDS,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._store = store
        self._key = document_key
        self._state = SettingsState.defaults()
        self._audit_logger = audit_logger or AuditLogger()
        self._logger = structlog.get_logger(__name__).bind(document_key=document_key)
        
        self._debouncer = Debouncer(debounce_seconds, self._persist)
        self._write_lock = asyncio.Lock()
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._load_task: Optional[asyncio.Task] = None
        self._audit_tasks: set[asyncio.Task] = set()
        
        self._preload_edits: list[str] = []
        self._unsynced = False
        self._write_count = 0
        self._closed = False
    
    # -------------------------------------------------------------------------
    # Read access
    # -------------------------------------------------------------------------
    
    @property
    def state(self) -> SettingsState:
        """Live state. Readers must not mutate it directly."""
        return self._state
    
    def snapshot(self) -> SettingsState:
        return self._state.snapshot()
    
    @property
    def load_state(self) -> LoadState:
        return self._state.load_state
    
    @property
    def document_key(self) -> str:
        return self._key
    
    @property
    def has_unsynced_changes(self) -> bool:
        return self._unsynced
    
    @property
    def pending_write(self) -> bool:
        return self._debouncer.pending
    
    @property
    def write_count(self) -> int:
        """Successful snapshot writes since construction (provisioning excluded)."""
        return self._write_count
    
    # -------------------------------------------------------------------------
    # Loading
    # -------------------------------------------------------------------------
    
    async def load(self) -> bool:
        """
        Load settings from the remote store.
        
        Concurrent calls while a load is running share that attempt.
        Calling load() once LOADED is a no-op.
        
        Returns:
            True if the state is LOADED afterwards
        """
        if self.load_state == LoadState.LOADED:
            return True
        if self._load_task is None or self._load_task.done():
            self._load_task = asyncio.ensure_future(self._load())
        return await self._load_task
    
    async def retry_load(self) -> bool:
        """Manual retry after LOAD_FAILED."""
        return await self.load()
    
    async def _load(self) -> bool:
        self._state.load_state = LoadState.LOADING
        self._loop = asyncio.get_running_loop()
        await self._audit_logger.log(AuditEventBuilder.settings_load_started(self._key))
        
        provisioned = False
        try:
            document = await self._store.read_settings_document(self._key)
            if document is None:
                loaded = SettingsState.defaults()
                await self._store.write_settings_document(self._key, loaded.to_document())
                provisioned = True
            else:
                loaded = SettingsState.from_document(document)
        except Exception as e:
            self._state.load_state = LoadState.LOAD_FAILED
            await self._audit_logger.log(
                AuditEventBuilder.settings_load_failed(self._key, str(e))
            )
            return False
        
        discarded, self._preload_edits = self._preload_edits, []
        loaded.load_state = LoadState.LOADED
        self._state = loaded
        self._unsynced = False
        
        if discarded:
            await self._audit_logger.log(
                AuditEventBuilder.preload_edits_discarded(self._key, discarded)
            )
        await self._audit_logger.log(
            AuditEventBuilder.settings_loaded(self._key, provisioned=provisioned)
        )
        return True
    
    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------
    
    def update_field(self, key: str, value: Any) -> None:
        """
        Apply a local change and, when LOADED, schedule a debounced write.
        
        Keys are field names ("display_name", "categories", "budget",
        "visual_toggles") or dotted paths into the nested ones
        ("budget.limit", "visual_toggles.dark_mode").
        
        Raises:
            UnknownSettingError: If key names no settings field
            pydantic.ValidationError: If value is invalid for the field
        """
        self._apply(key, value)
        
        if self.load_state != LoadState.LOADED:
            if key not in self._preload_edits:
                self._preload_edits.append(key)
            self._logger.debug(
                "settings_edit_not_persisted",
                key=key,
                load_state=self.load_state.value,
            )
            return
        
        self._unsynced = True
        if not self._closed:
            self._debouncer.trigger(loop=self._loop)
    
    def _apply(self, key: str, value: Any) -> None:
        field, _, sub = key.partition(".")
        if field not in PERSISTED_FIELDS:
            raise UnknownSettingError(key)
        
        if not sub:
            setattr(self._state, field, value)
        elif field == "budget":
            if sub not in BudgetSettings.model_fields:
                raise UnknownSettingError(key)
            setattr(self._state.budget, sub, value)
        elif field == "visual_toggles":
            self._state.visual_toggles = {**self._state.visual_toggles, sub: value}
        else:
            raise UnknownSettingError(key)
    
    def add_category(self, name: str, implicit: bool = False) -> bool:
        """
        Insert a category at the front of the list.
        
        Returns:
            False if the name is blank or already present
            
        Raises:
            ValueError: If the name is longer than MAX_CATEGORY_LENGTH
        """
        name = name.strip()
        if not name or name in self._state.categories:
            return False
        if len(name) > MAX_CATEGORY_LENGTH:
            raise ValueError(
                f"Category name exceeds {MAX_CATEGORY_LENGTH} characters"
            )
        event = AuditEventBuilder.category_added(name, implicit=implicit)
        self.update_field("categories", [name, *self._state.categories])
        self._audit_soon(event)
        return True
    
    def remove_category(self, name: str) -> bool:
        if name not in self._state.categories:
            return False
        event = AuditEventBuilder.category_removed(name)
        self.update_field(
            "categories",
            [c for c in self._state.categories if c != name],
        )
        self._audit_soon(event)
        return True
    
    def handle(self, event: CategoryUsed) -> bool:
        """Consume a "category used" event from the transaction flow."""
        return self.add_category(event.category, implicit=True)
    
    def category_used(self, category: str) -> bool:
        return self.handle(CategoryUsed(category=category))
    
    def set_display_name(self, name: str) -> None:
        self.update_field("display_name", name)
    
    def set_toggle(self, name: str, enabled: bool) -> None:
        self.update_field(f"visual_toggles.{name}", enabled)
    
    def update_budget(self, **changes: Any) -> None:
        """Change several budget fields as one mutation."""
        unknown = set(changes) - set(BudgetSettings.model_fields)
        if unknown:
            raise UnknownSettingError(f"budget.{sorted(unknown)[0]}")
        self.update_field("budget", {**self._state.budget.model_dump(), **changes})
    
    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------
    
    async def flush(self) -> bool:
        """
        Write the current snapshot now instead of waiting for the timer.
        
        Returns:
            True if a write succeeded; False if not LOADED or the write failed
        """
        self._debouncer.cancel()
        return await self._persist()
    
    async def _persist(self) -> bool:
        async with self._write_lock:
            if self.load_state != LoadState.LOADED:
                return False
            
            document = self._state.to_document()
            try:
                await self._store.write_settings_document(self._key, document)
            except StorageError as e:
                self._unsynced = True
                await self._audit_logger.log(
                    AuditEventBuilder.settings_persist_failed(self._key, str(e))
                )
                return False
            except Exception as e:
                # Not a StorageError: the backend broke its contract
                self._unsynced = True
                await self._audit_logger.log(
                    AuditEventBuilder.system_error(
                        type(e).__name__,
                        str(e),
                        details={"operation": "write_settings_document", "document_key": self._key},
                    )
                )
                return False
            
            self._write_count += 1
            # Edits made while the write was in flight keep the flag set
            self._unsynced = self._state.to_document() != document
            await self._audit_logger.log(
                AuditEventBuilder.settings_persisted(self._key, self._write_count)
            )
            return True
    
    def _audit_soon(self, event: AuditEvent) -> None:
        """Audit from synchronous code: scheduled on the loop when one is running."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            self._logger.info("audit_event", **event.to_log_dict())
            return
        task = loop.create_task(self._audit_logger.log(event))
        self._audit_tasks.add(task)
        task.add_done_callback(self._audit_tasks.discard)
    
    async def close(self) -> None:
        """
        Tear down at session end.
        
        Cancels a pending write timer, lets an in-flight write finish and
        stops any further scheduling. Local edits after close stay local.
        """
        self._closed = True
        await self._debouncer.close()
        if self._audit_tasks:
            await asyncio.gather(*self._audit_tasks, return_exceptions=True)
