from services import CategoryTotals
from slices import OTHER_LABEL, Slice, reduce_for_chart


def expense(name: str, amount: int) -> CategoryTotals:
    return CategoryTotals(name, total_amount=amount, total_income=0, total_expense=amount)


def test_small_categories_fold_into_other() -> None:
    rows = [expense("Rent", 500), expense("Food", 300), expense("Gum", 19), expense("Stamps", 10)]

    slices = reduce_for_chart(rows, 1000, 0.02)

    assert [s.name for s in slices] == ["Rent", "Food", OTHER_LABEL]
    assert [s.value for s in slices] == [500, 300, 29]
    assert abs(slices[-1].percent - 0.029) < 1e-12


def test_share_exactly_at_threshold_is_significant() -> None:
    rows = [expense("Rent", 980), expense("Coffee", 20)]

    slices = reduce_for_chart(rows, 1000, 0.02)

    assert slices == [Slice("Rent", 980, 0.98), Slice("Coffee", 20, 0.02)]


def test_other_below_half_threshold_is_dropped() -> None:
    rows = [expense("Rent", 995), expense("Gum", 5)]

    slices = reduce_for_chart(rows, 1000, 0.02)

    assert [s.name for s in slices] == ["Rent"]


def test_other_is_kept_when_nothing_is_significant() -> None:
    rows = [expense("Gum", 4), expense("Stamps", 3)]

    slices = reduce_for_chart(rows, 1000, 0.02)

    assert slices == [Slice(OTHER_LABEL, 7, 0.007)]


def test_zero_total_returns_no_slices() -> None:
    assert reduce_for_chart([expense("Rent", 0)], 0) == []
    assert reduce_for_chart([], 0) == []


def test_income_only_categories_are_skipped() -> None:
    rows = [
        CategoryTotals("Salary", total_amount=5000, total_income=5000, total_expense=0),
        expense("Food", 200),
    ]

    slices = reduce_for_chart(rows, 200)

    assert slices == [Slice("Food", 200, 1.0)]


def test_output_is_sorted_by_value_even_when_other_is_largest() -> None:
    rows = [expense("Rent", 30)] + [expense(f"c{i}", 1) for i in range(100)]

    slices = reduce_for_chart(rows, 130, 0.05)

    assert [s.name for s in slices] == [OTHER_LABEL, "Rent"]
    assert slices[0].value == 100
