import os, tempfile

from qarma_live import TextInfoModel, ListSelection, scroll_duration, read_text_file


class Recorder:
    def __init__(self): self.warnings = []
    def warn(self, m): self.warnings.append(m)


def test_scroll_duration_bounds():
    assert scroll_duration(0) is None
    assert scroll_duration(-4) is None
    assert scroll_duration(50) == 200
    assert scroll_duration(1000) == 1000
    assert scroll_duration(9000) == 2500

def test_append_defers_while_animating():
    m = TextInfoModel('a', auto_scroll=True)
    assert m.append('b') is True and m.text == 'ab'
    plan = m.plan_scroll(0, 300)
    assert plan.start == 0 and plan.end == 300 and plan.duration == 300 and m.animating
    assert m.append('c') is False and m.append('d') is False
    assert m.text == 'ab' and m.pending == 'cd'
    assert m.animation_finished(300) is True
    assert m.text == 'abcd' and m.pending == '' and m.scroll_offset == 300

def test_no_plan_without_auto_scroll():
    m = TextInfoModel()
    m.append('x')
    assert m.plan_scroll(0, 100) is None and not m.animating

def test_zero_distance_skips_animation():
    m = TextInfoModel(auto_scroll=True)
    assert m.plan_scroll(40, 40) is None and not m.animating

def test_read_text_file_missing_warns():
    cb = Recorder()
    assert read_text_file('/nonexistent/qarma/file.txt', cb) == ''
    assert len(cb.warnings) == 1

def test_read_text_file_contents():
    fd, path = tempfile.mkstemp(prefix='qarma_txt_')
    try:
        with os.fdopen(fd, 'w') as f: f.write('line1\nline2\n')
        assert read_text_file(path) == 'line1\nline2\n'
    finally:
        os.unlink(path)


ROWS = [('FALSE', 'apple'), ('FALSE', 'pear'), ('FALSE', 'plum')]

def test_radiolist_keeps_single_check():
    sel = ListSelection(ROWS, checkable=True, exclusive=True)
    calls = []
    sel.on_item_changed(calls.append)
    sel.set_checked(0, True)
    sel.set_checked(2, True)
    assert sel.checked == [False, False, True]
    assert sel.selected_values() == ['plum']
    # row 0 checked, row 2 checked, row 0 unchecked by the guard
    assert calls == [0, 0, 2]

def test_checklist_allows_many():
    sel = ListSelection(ROWS, checkable=True)
    sel.set_checked(0, True); sel.set_checked(1, True)
    assert sel.selected_values() == ['apple', 'pear']

def test_selection_single_and_multiple():
    rows = [('a', '1'), ('b', '2')]
    single = ListSelection(rows)
    single.select(0); single.select(1)
    assert single.selected_values() == ['b']
    multi = ListSelection(rows, multiple=True)
    multi.select(0); multi.select(1); multi.select(0)
    assert multi.selected_values() == ['a', 'b']

def test_nothing_selected_is_empty():
    assert ListSelection([('a',)]).selected_values() == []
