import io

import qarma_help
from qarma_help import render, usage, print_help, CATEGORIES, OPTION_WIDTH


def test_usage_header_and_sections():
    text = usage()
    assert text.startswith('Usage:\n  qarma [OPTION ...]\n\n')
    assert 'Help options' in text and 'Application Options' in text
    assert 'List options' not in text

def test_category_layout():
    text = render('progress')
    lines = text.splitlines()
    assert lines[0] == 'Progress options'
    assert lines[1] == '  ' + '--text=TEXT'.ljust(OPTION_WIDTH) + 'Set the dialog text'
    assert text.endswith('\n\n')

def test_unknown_category_shows_usage():
    assert render('nope') == usage()
    assert render('') == usage()

def test_all_lists_every_category():
    text = render('all')
    for cat in CATEGORIES.values():
        assert cat.title in text

def test_every_mode_has_a_category():
    for name in ('calendar', 'entry', 'error', 'info', 'file-selection', 'list', 'notification', 'progress',
                 'question', 'warning', 'scale', 'text-info', 'color-selection', 'password', 'forms'):
        assert name in qarma_help.category_names()

def test_print_help_multiple():
    buf = io.StringIO()
    print_help(['entry', 'password'], stream=buf)
    assert 'Text entry options' in buf.getvalue() and 'Password dialog options' in buf.getvalue()
