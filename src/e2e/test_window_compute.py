import pytest
from listview.window import Virtualizer, compute_window

@pytest.mark.e2e
def test_window_at_top_of_long_list():
    win = compute_window(1000, 0, 600, 72, overscan=10)
    assert win.visible_range == (0, 8)           # 600 / 72 = 8.33 rows
    assert win.rendered_range == (0, 18)
    assert win.total_size == 72_000
    assert [vi.start for vi in win.virtual_items[:3]] == [0, 72, 144]

@pytest.mark.e2e
def test_window_mid_list_and_overscan_both_sides():
    win = compute_window(1000, 7200, 600, 72, overscan=10)
    assert win.visible_range == (100, 108)
    assert win.rendered_range == (90, 118)
    for vi in win.virtual_items:
        assert vi.start == vi.index * 72 and vi.size == 72

@pytest.mark.e2e
def test_row_ending_exactly_at_viewport_edge_is_not_visible():
    win = compute_window(10, 72, 72, 72, overscan=0)
    assert win.visible_range == (1, 1)

@pytest.mark.e2e
def test_empty_list_and_unmeasured_viewport():
    empty = compute_window(0, 0, 600, 72)
    assert empty.visible_range is None and empty.virtual_items == [] and empty.total_size == 0

    unmeasured = compute_window(50, 0, 0, 72)
    assert unmeasured.virtual_items == [] and unmeasured.total_size == 50 * 72

@pytest.mark.e2e
def test_scroll_past_end_shows_last_page():
    win = compute_window(10, 5000, 300, 72, overscan=0)
    assert win.visible_range == (5, 9)
    assert win.virtual_items[-1].index == 9

@pytest.mark.e2e
def test_overscan_clamped_to_list_bounds():
    win = compute_window(5, 0, 600, 72, overscan=10)
    assert win.rendered_range == (0, 4)

@pytest.mark.e2e
def test_keys_come_from_item_identity():
    win = compute_window(3, 0, 600, 72, key_of=lambda i: f"k{i}")
    assert [vi.key for vi in win.virtual_items] == ["k0", "k1", "k2"]
    assert [vi.key for vi in compute_window(2, 0, 600, 72).virtual_items] == [0, 1]

@pytest.mark.e2e
def test_variable_sizes_use_prefix_offsets():
    sizes = [40, 88, 88, 40, 88]
    win = compute_window(5, 50, 100, lambda i: sizes[i], overscan=0)
    assert win.total_size == 344
    assert win.visible_range == (1, 2)
    assert [(vi.start, vi.size) for vi in win.virtual_items] == [(40, 88), (128, 88)]

@pytest.mark.e2e
def test_negative_size_is_rejected():
    with pytest.raises(AssertionError):
        Virtualizer(3, -1)

@pytest.mark.e2e
def test_virtualizer_memoizes_until_an_input_changes():
    v = Virtualizer(100, 72, 2, viewport_height=600)
    w1 = v.get_window()
    assert v.get_window() is w1
    v.scroll_to(0)                       # no-op
    assert v.get_window() is w1
    v.scroll_to(720)
    w2 = v.get_window()
    assert w2 is not w1 and w2.visible_range == (10, 18)
    v.set_count(12)
    assert v.get_window().visible_range == (10, 11)

@pytest.mark.e2e
def test_measure_shifts_following_rows():
    v = Virtualizer(5, 50, 0, viewport_height=100)
    v.measure(0, 100)
    assert v.offset_of(1) == 100
    assert v.total_size == 300
    assert v.get_window().visible_range == (0, 0)
    v.measure(99, 10)                    # out of range: ignored
    assert v.total_size == 300

@pytest.mark.e2e
def test_scroll_to_index_alignments():
    v = Virtualizer(100, 72, 0, viewport_height=600)
    assert v.scroll_to_index(50, "start") == 3600
    assert v.scroll_to_index(50, "auto") == 3600      # already fully visible
    assert v.scroll_to_index(0, "auto") == 0
    assert v.scroll_to_index(50, "end") == 3600 + 72 - 600
    assert v.scroll_to_index(99, "start") == 100 * 72 - 600   # clamped to last page
    with pytest.raises(ValueError):
        v.scroll_to_index(1, "middle")

@pytest.mark.e2e
@pytest.mark.parametrize("bad", [float("inf"), float("-inf"), float("nan"), None])
def test_non_finite_viewport_or_scroll_is_handled(bad):
    win = compute_window(100, 0, bad, 72)
    assert win.visible_range is None and win.virtual_items == [] and win.total_size == 7200

    scrolled = compute_window(100, bad, 144, 72, overscan=0)
    assert scrolled.visible_range == (0, 1)

    v = Virtualizer(100, 72, 0, viewport_height=144)
    v.scroll_to(bad)
    v.set_viewport(bad)
    assert v.scroll_offset == 0 and v.get_window().virtual_items == []

@pytest.mark.e2e
def test_window_size_independent_of_total_count():
    small = compute_window(100, 3600, 600, 72, overscan=10)
    huge = compute_window(100_000, 3600, 600, 72, overscan=10)
    assert len(small.virtual_items) == len(huge.virtual_items) == 29
    assert small.visible_range == huge.visible_range
    assert huge.total_size == 100_000 * 72
