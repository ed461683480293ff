import pytest

from expenses_core.exceptions import ValidationError
from expenses_core.filters import (
    INITIAL_ROWS,
    ExpenseFilters,
    filter_expenses,
    next_visible_count,
    paginate,
)


@pytest.fixture
def expenses(make_expense):
    return [
        make_expense(id="a", date="2025-03-07", role="founder", shop="Hardware Co", description="Paint"),
        make_expense(id="b", date="2025-03-01", role="manager", employee_id="emp-1", shop="Cafe",
                     description="Team lunch", paid=True),
        make_expense(id="c", date="2025-03-04", role="other", shop="", description="Taxi to hardware store",
                     subtasks=[{"id": "s", "title": "Tip", "done": True}]),
        make_expense(id="d", date="2025-02-27", role="manager", employee_id="emp-2", shop="Hardware Co",
                     description="Screws"),
    ]


def ids(items):
    return [e.id for e in items]


def test_no_filters_sorts_by_date_ascending(expenses):
    assert ids(filter_expenses(expenses)) == ["d", "b", "c", "a"]


def test_role_filter(expenses):
    assert ids(filter_expenses(expenses, ExpenseFilters(role="manager"))) == ["d", "b"]


def test_status_uses_derived_paid_state(expenses):
    assert ids(filter_expenses(expenses, ExpenseFilters(status="paid"))) == ["b", "c"]
    assert ids(filter_expenses(expenses, ExpenseFilters(status="unpaid"))) == ["d", "a"]


def test_employee_and_shop_filters(expenses):
    assert ids(filter_expenses(expenses, ExpenseFilters(employee_id="emp-1"))) == ["b"]
    assert ids(filter_expenses(expenses, ExpenseFilters(shop="Hardware Co"))) == ["d", "a"]


def test_date_range_is_inclusive(expenses):
    filters = ExpenseFilters(date_from="2025-03-01", date_to="2025-03-04")
    assert ids(filter_expenses(expenses, filters)) == ["b", "c"]


def test_search_matches_description_or_shop_case_insensitively(expenses):
    assert ids(filter_expenses(expenses, ExpenseFilters(search="HARDWARE"))) == ["d", "c", "a"]


def test_from_mapping_treats_all_and_blank_as_unset(expenses):
    filters = ExpenseFilters.from_mapping({
        "role": "all", "status": "all", "employee": "all", "shop": "", "search": "  ",
    })
    assert filters == ExpenseFilters()


def test_from_mapping_reads_query_keys():
    filters = ExpenseFilters.from_mapping({
        "role": "Manager", "status": "unpaid", "employee": "emp-2", "from": "2025-02-01", "to": "2025-02-28",
    })
    assert filters.role == "manager"
    assert filters.status == "unpaid"
    assert filters.employee_id == "emp-2"
    assert (filters.date_from, filters.date_to) == ("2025-02-01", "2025-02-28")


@pytest.mark.parametrize("raw", [
    {"status": "settled"},
    {"role": "ceo"},
    {"from": "2025-03-10", "to": "2025-03-01"},
])
def test_from_mapping_rejects_invalid_values(raw):
    with pytest.raises(ValidationError):
        ExpenseFilters.from_mapping(raw)


class TestPagination:
    def test_initial_window(self, make_expense):
        rows = [make_expense() for _ in range(12)]
        page = paginate(rows)
        assert page.visible == INITIAL_ROWS == 5
        assert len(page.items) == 5
        assert page.has_more
        assert page.remaining == 7

    def test_load_more_steps_by_ten_and_caps(self):
        assert next_visible_count(5, 40) == 15
        assert next_visible_count(5, 12) == 12

    def test_window_larger_than_results(self, make_expense):
        rows = [make_expense() for _ in range(3)]
        page = paginate(rows, 15)
        assert page.visible == 3
        assert not page.has_more
        assert page.to_dict()["remaining"] == 0

    def test_negative_window_rejected(self):
        with pytest.raises(ValidationError):
            paginate([], -1)
