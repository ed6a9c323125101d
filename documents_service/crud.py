from typing import List, Optional

from sqlalchemy import case, delete, func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.future import select

import errors
from models import Item, ItemType

async def get_item_by_id(db: AsyncSession, item_id: str) -> Optional[Item]:
    result = await db.execute(select(Item).filter(Item.id == item_id))
    return result.scalars().first()

async def list_children(
    db: AsyncSession,
    parent_id: Optional[str] = None,
    item_type: Optional[ItemType] = None,
    name_contains: Optional[str] = None,
    limit: Optional[int] = None,
    offset: int = 0,
) -> List[Item]:
    query = select(Item)
    if parent_id:
        query = query.filter(Item.parent_id == parent_id)
    else:
        query = query.filter(Item.parent_id.is_(None))
    if item_type is not None:
        query = query.filter(Item.type == item_type)
    if name_contains:
        query = query.filter(Item.name.contains(name_contains, autoescape=True))

    folders_first = case((Item.type == ItemType.FOLDER, 0), else_=1)
    query = query.order_by(folders_first, Item.name.asc())
    if offset:
        query = query.offset(offset)
    if limit is not None:
        query = query.limit(limit)

    result = await db.execute(query)
    return list(result.scalars().all())

async def find_by_scope_and_name(
    db: AsyncSession, parent_id: Optional[str], item_type: ItemType, name: str
) -> Optional[Item]:
    query = select(Item).filter(Item.type == item_type, Item.name == name)
    if parent_id:
        query = query.filter(Item.parent_id == parent_id)
    else:
        query = query.filter(Item.parent_id.is_(None))
    result = await db.execute(query)
    return result.scalars().first()

async def count_children(db: AsyncSession, parent_id: str) -> int:
    result = await db.execute(select(func.count()).select_from(Item).filter(Item.parent_id == parent_id))
    return result.scalar_one()

async def resolve_parent_folder(db: AsyncSession, parent_id: Optional[str]) -> Optional[Item]:
    if not parent_id:
        return None
    parent = await get_item_by_id(db, parent_id)
    if parent is None:
        raise errors.NotFound("Parent folder not found")
    if not parent.is_folder:
        raise errors.InvalidParent()
    return parent

async def create_item(db: AsyncSession, item: Item) -> Item:
    """Insert ``item`` after checking its parent and name scope.

    The scope check only produces a friendlier error; the unique index on
    (parent, type, name) decides when two inserts race.
    """
    await resolve_parent_folder(db, item.parent_id)

    existing = await find_by_scope_and_name(db, item.parent_id, item.type, item.name)
    if existing is not None:
        kind = "folder" if item.type == ItemType.FOLDER else "document"
        raise errors.DuplicateName(f"A {kind} with this name already exists in this location")

    db.add(item)
    try:
        await db.commit()
    except IntegrityError as e:
        await db.rollback()
        raise errors.translate_integrity_error(e) from e
    await db.refresh(item)
    return item

async def delete_item(db: AsyncSession, item_id: str, commit: bool = True) -> int:
    """Delete exactly one row. Deleting an id that is already gone is a no-op."""
    result = await db.execute(delete(Item).where(Item.id == item_id))
    if commit:
        await db.commit()
    return result.rowcount or 0

async def list_subtree(db: AsyncSession, root_id: str) -> List[Item]:
    """Return ``root_id`` and all its descendants, children before parents.

    Walks the tree with an explicit worklist so depth is not bound by the
    interpreter's recursion limit.
    """
    root = await get_item_by_id(db, root_id)
    if root is None:
        return []

    visited = []
    stack = [root]
    while stack:
        node = stack.pop()
        visited.append(node)
        if node.is_folder:
            result = await db.execute(
                select(Item).filter(Item.parent_id == node.id).order_by(Item.name.asc())
            )
            stack.extend(result.scalars().all())

    # Pre-order reversed is a valid post-order: every node follows its descendants.
    visited.reverse()
    return visited
