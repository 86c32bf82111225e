"""Load, repair and commit the navigation tree through the planner."""

from loguru import logger

from linkshelf.core.storage.store import NavigationStore
from linkshelf.core.tree.operations import ensure_uncategorized, has_complete_uncategorized
from linkshelf.core.tree.planner import WRITE_FULL, WRITE_NONE, WRITE_PARTIAL, WritePlan, plan_write
from linkshelf.defaults import default_tree
from linkshelf.errors import StorageUnavailableError
from linkshelf.models.node import NavigationTree


def load_for_edit(store: NavigationStore) -> NavigationTree:
    """Return the stored tree ready for mutation.

    An empty store is initialized from the bundled defaults. A missing or
    incomplete Uncategorized category is repaired and the repair is written
    before any caller edit is applied.
    """
    raw = store.read_raw_document()
    if raw is None:
        logger.info("No navigation document stored, initializing from defaults")
        tree, _ = ensure_uncategorized(default_tree())
        store.write_document(tree)
        return tree

    repaired_tree, repaired = ensure_uncategorized(NavigationTree.from_dict(raw))
    if repaired or not has_complete_uncategorized(raw):
        store.write_document(repaired_tree)
    return repaired_tree


def load_for_display(store: NavigationStore) -> NavigationTree:
    """Return the stored tree for reading.

    On first read of an empty store the bundled defaults are saved. When
    storage is down the defaults are served without writing. A stored
    document that cannot be parsed is left in place.
    """
    try:
        tree = store.read_document()
        if tree is None and not store.has_document():
            logger.info("No navigation document stored, saving bundled defaults")
            tree, _ = ensure_uncategorized(default_tree())
            store.write_document(tree)
    except StorageUnavailableError as e:
        logger.warning("Storage unavailable, serving bundled defaults: {}", e)
        return default_tree()
    return tree if tree is not None else default_tree()


def execute_plan(store: NavigationStore, new: NavigationTree, plan: WritePlan) -> None:
    if plan.kind == WRITE_NONE:
        return
    if plan.kind == WRITE_PARTIAL:
        store.write_folder_sites_bulk(plan.updates)
        return
    store.write_document(new)


def commit(store: NavigationStore, old: NavigationTree | None, new: NavigationTree) -> WritePlan:
    """Persist new with the cheapest write the planner allows."""
    if old is None:
        plan = WritePlan(kind=WRITE_FULL, reason="no previous document")
    else:
        plan = plan_write(old, new)
    logger.debug("Write plan: {} ({})", plan.kind, plan.reason)
    execute_plan(store, new, plan)
    return plan


def save_document(store: NavigationStore, incoming: NavigationTree) -> WritePlan:
    """Replace the stored document with an edited copy supplied by a client."""
    incoming, _ = ensure_uncategorized(incoming)
    return commit(store, store.read_document(), incoming)
