"""cellflow: fine-grained reactive state for Python."""

from importlib.metadata import version as _version

__version__ = _version("cellflow")

from cellflow._notify import ListenerSet, Notifiable
from cellflow._tracking import Runtime, get_pending_count, get_runtime, use_runtime
from cellflow.observable import Cell, LazyCell, cell
from cellflow.computed import Computed, CycleError, computed
from cellflow.action import action, run_in_transaction, transaction
from cellflow.reaction import Reaction, autorun, reaction
from cellflow.store import Store, StoreDisposedError
from cellflow.field import Field
from cellflow.async_value import AsyncCell, AsyncState, AsyncValue
from cellflow.reducers import Action, LoggingMiddleware, Middleware, ReduxStore, combine_reducers
# textual bridge NOT auto-imported — opt-in only

__all__ = [
    "Cell",
    "LazyCell",
    "cell",
    "Computed",
    "CycleError",
    "computed",
    "action",
    "transaction",
    "run_in_transaction",
    "get_pending_count",
    "Reaction",
    "autorun",
    "reaction",
    "Store",
    "StoreDisposedError",
    "Field",
    "AsyncCell",
    "AsyncState",
    "AsyncValue",
    "Action",
    "Middleware",
    "LoggingMiddleware",
    "ReduxStore",
    "combine_reducers",
    "ListenerSet",
    "Notifiable",
    "Runtime",
    "get_runtime",
    "use_runtime",
]
