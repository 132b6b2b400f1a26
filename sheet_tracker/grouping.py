"""Month keys, row formatting and grouping of transactions into monthly amounts."""

from datetime import date
from typing import Callable, Iterable, Optional

YEAR_MONTH = "year_month"
MONTH = "month"

# month key -> grouping element (category, subcategory or account) -> amount
GroupedAmounts = dict[str, dict[str, float]]


def month_key(d: date, granularity: str = YEAR_MONTH) -> str:
    """Key identifying the month row a date belongs to, e.g. '2024-01' or '01'."""
    if granularity == MONTH:
        return f"{d.month:02d}"
    return f"{d.year:04d}-{d.month:02d}"


def format_row(row: list) -> str:
    cells = []
    for value in row:
        if isinstance(value, date):
            cells.append(value.isoformat())
        elif isinstance(value, float):
            cells.append(f"{value:.2f}")
        else:
            cells.append(str(value))
    return " | ".join(cells)


def group_by_dates(
    transactions: Iterable,
    dates: Iterable[date],
    element_of: Callable,
    grouping_elements: Iterable[str],
    include: Optional[Callable] = None,
    granularity: str = YEAR_MONTH,
) -> GroupedAmounts:
    """Sum transaction amounts per month and grouping element.

    Only months present in ``dates`` and elements listed in
    ``grouping_elements`` are kept; ``include`` filters transactions first.
    """
    months = {month_key(d, granularity) for d in dates}
    elements = set(grouping_elements)
    grouped: GroupedAmounts = {}
    for transaction in transactions:
        if include is not None and not include(transaction):
            continue
        key = month_key(transaction.date, granularity)
        element = element_of(transaction)
        if key not in months or element not in elements:
            continue
        amounts = grouped.setdefault(key, {})
        amounts[element] = amounts.get(element, 0.0) + transaction.amount
    return grouped


def group_by_dates_and_categories(
    transactions: Iterable,
    dates: Iterable[date],
    account: Optional[str],
    categories: Iterable[str],
    granularity: str = YEAR_MONTH,
) -> GroupedAmounts:
    """Group by category, restricted to one account when given."""
    include = None if account is None else (lambda t: t.account == account)
    return group_by_dates(
        transactions, dates, lambda t: t.category, categories, include, granularity
    )


def group_by_dates_and_sub_categories(
    transactions: Iterable,
    dates: Iterable[date],
    category: Optional[str],
    sub_categories: Iterable[str],
    granularity: str = YEAR_MONTH,
) -> GroupedAmounts:
    """Group by subcategory, restricted to one category when given."""
    include = None if category is None else (lambda t: t.category == category)
    return group_by_dates(
        transactions, dates, lambda t: t.sub_category, sub_categories, include, granularity
    )
