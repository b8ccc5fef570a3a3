"""
Aggregated View Builder.

`ViewPipeline` composes one SELECT that joins a primary table with related
tables and attaches derived fields, the relational counterpart of a
match / lookup / addFields / project / sort / paginate pipeline:

    pipeline = (
        ViewPipeline(Video)
        .match(Video.is_published.is_(True))
        .project("id", "title", "views")
        .count("likes_count", Like, lambda like: (like.video_id == Video.id,))
        .member("is_liked", Like, lambda like: (like.video_id == Video.id,
                                                like.liked_by == actor_id), actor_id)
        .sort(Video.created_at, descending=True)
    )
    page = await pipeline.paginate(session, page=1, limit=10)

Every count, sum and membership flag is a correlated subquery inside that
single statement, so a page of N items costs one query (plus one count
query when paginating), never N+1. Relation tables are aliased inside each
subquery, so a view may count rows of its own primary table.

Single-valued joins (`join_one`) are LEFT OUTER joins whose columns are
labelled `<label>__<field>` and folded back into a nested dict per row. A
row without a match is kept, with an empty summary.
"""

import math
from typing import Any, Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple

from sqlalchemy import Select, and_, func, literal, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from core.logging_config import get_logger

logger = get_logger(__name__)

NESTED_SEPARATOR = "__"

Criteria = Callable[[Any], Sequence[Any]]


class ViewPipeline:
    """Parameterised join + derive + project + sort + paginate builder"""

    def __init__(self, model):
        self.model = model
        self._columns: List[Any] = []
        self._criteria: List[Any] = []
        self._joins: List[Tuple[Any, Any, bool]] = []
        self._order_by: List[Any] = []
        self._nested: Dict[str, Tuple[str, Callable[[], Any]]] = {}
        self._booleans: Set[str] = set()

    # Filtering

    def match(self, *criteria) -> "ViewPipeline":
        self._criteria.extend(c for c in criteria if c is not None)
        return self

    def search(self, text: Optional[str], *columns) -> "ViewPipeline":
        """Case-insensitive substring match of text over any of the columns"""
        if text and text.strip():
            # % and _ in user text are literal characters
            matches = [
                func.coalesce(column, "").icontains(text.strip(), autoescape=True)
                for column in columns
            ]
            self._criteria.append(matches[0] if len(matches) == 1 else or_(*matches))
        return self

    # Projection

    def project(self, *names: str, source=None) -> "ViewPipeline":
        source = source if source is not None else self.model
        self._columns.extend(getattr(source, name).label(name) for name in names)
        return self

    def field(self, label: str, expression, boolean: bool = False) -> "ViewPipeline":
        self._columns.append(expression.label(label))
        if boolean:
            self._booleans.add(label)
        return self

    # Joins

    def join(self, target, onclause, outer: bool = False) -> "ViewPipeline":
        """Join a table used for filtering or sorting only"""
        self._joins.append((target, onclause, outer))
        return self

    def join_one(
        self,
        label: str,
        model,
        local_column,
        fields: Iterable[str],
        foreign: str = "id",
        extra: Optional[Criteria] = None,
        empty: Callable[[], Any] = dict,
    ):
        """
        Left-join a single-valued relation and expose `fields` as a nested
        dict under `label`. `extra` receives the alias and returns further join
        conditions. Returns the alias so derived fields can be attached to the
        joined row.
        """
        alias = aliased(model, name=label)
        onclause = getattr(alias, foreign) == local_column
        if extra is not None:
            onclause = and_(onclause, *extra(alias))
        self._joins.append((alias, onclause, True))

        fields = list(fields)
        if foreign not in fields:
            fields.insert(0, foreign)
        self._columns.extend(
            getattr(alias, name).label(f"{label}{NESTED_SEPARATOR}{name}") for name in fields
        )
        self._nested[label] = (foreign, empty)
        return alias

    # Derived fields

    def count(self, label: str, model, where: Criteria) -> "ViewPipeline":
        """Number of related rows"""
        relation = aliased(model)
        subquery = (
            select(func.count())
            .select_from(relation)
            .where(*where(relation))
            .scalar_subquery()
        )
        self._columns.append(subquery.label(label))
        return self

    def total(self, label: str, model, column: str, where: Criteria) -> "ViewPipeline":
        """Sum of a related column, 0 when there are no related rows"""
        relation = aliased(model)
        subquery = (
            select(func.coalesce(func.sum(getattr(relation, column)), 0))
            .where(*where(relation))
            .scalar_subquery()
        )
        self._columns.append(subquery.label(label))
        return self

    def member(
        self, label: str, model, where: Criteria, actor_id: Optional[str] = None
    ) -> "ViewPipeline":
        """
        Whether a related row exists. Always False when there is no actor;
        `where` is only called when there is one.
        """
        self._booleans.add(label)
        if actor_id is None:
            self._columns.append(literal(False).label(label))
            return self

        relation = aliased(model)
        self._columns.append(select(relation).where(*where(relation)).exists().label(label))
        return self

    # Ordering

    def sort(self, column, descending: bool = True) -> "ViewPipeline":
        self._order_by.append(column.desc() if descending else column.asc())
        return self

    # Execution

    def _apply_from(self, statement: Select) -> Select:
        statement = statement.select_from(self.model)
        for target, onclause, outer in self._joins:
            statement = statement.join(target, onclause, isouter=outer)
        if self._criteria:
            statement = statement.where(*self._criteria)
        return statement

    def statement(self) -> Select:
        statement = self._apply_from(select(*self._columns))
        # Stable order for pagination
        return statement.order_by(*self._order_by, self.model.id)

    def count_statement(self) -> Select:
        return self._apply_from(select(func.count(self.model.id)))

    def _to_document(self, row) -> Dict[str, Any]:
        document: Dict[str, Any] = {}
        nested: Dict[str, Dict[str, Any]] = {}

        for key, value in row._mapping.items():
            if key in self._booleans:
                value = bool(value)
            prefix, separator, name = key.partition(NESTED_SEPARATOR)
            if separator and prefix in self._nested:
                nested.setdefault(prefix, {})[name] = value
            else:
                document[key] = value

        for label, (join_key, empty) in self._nested.items():
            summary = nested.get(label, {})
            document[label] = summary if summary.get(join_key) is not None else empty()

        return document

    async def all(self, session: AsyncSession) -> List[Dict[str, Any]]:
        result = await session.execute(self.statement())
        return [self._to_document(row) for row in result]

    async def first(self, session: AsyncSession) -> Optional[Dict[str, Any]]:
        result = await session.execute(self.statement().limit(1))
        row = result.first()
        return self._to_document(row) if row is not None else None

    async def paginate(self, session: AsyncSession, page: int = 1, limit: int = 10) -> Dict[str, Any]:
        """One page of documents plus the metadata needed to navigate"""
        total_docs = (await session.execute(self.count_statement())).scalar_one()

        result = await session.execute(
            self.statement().limit(limit).offset((page - 1) * limit)
        )
        docs = [self._to_document(row) for row in result]

        total_pages = max(1, math.ceil(total_docs / limit))
        logger.debug(
            f"Paginated {self.model.__name__}: page {page}/{total_pages}",
            extra={"total_docs": total_docs, "page": page, "limit": limit},
        )
        return {
            "docs": docs,
            "total_docs": total_docs,
            "limit": limit,
            "page": page,
            "total_pages": total_pages,
            "paging_counter": (page - 1) * limit + 1,
            "has_prev_page": page > 1,
            "has_next_page": page < total_pages,
            "prev_page": page - 1 if page > 1 else None,
            "next_page": page + 1 if page < total_pages else None,
        }
