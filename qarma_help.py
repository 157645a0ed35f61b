"""Command-line help for Qarma.

Categories are kept in an embedded table (name, title, option rows) and
rendered as plain text in the zenity layout. Importing this module never
pulls in Qt so ``--help`` works without a display or PySide6.
"""
from __future__ import annotations

import sys
from dataclasses import dataclass
from typing import List, Dict, Tuple, Iterable, Optional

APP_NAME = 'qarma'
OPTION_WIDTH = 53


@dataclass(frozen=True)
class HelpCategory:
    name: str
    title: str
    options: Tuple[Tuple[str, str], ...]


_MESSAGE_OPTIONS = (
    ("--text=TEXT", "Set the dialog text"),
    ("--icon-name=ICON-NAME", "Set the dialog icon"),
    ("--no-wrap", "Do not enable text wrapping"),
    ("--no-markup", "Do not enable html markup"),
)

_RAW_HELP = [
    ("help", "Help options", (
        ("-h, --help", "Show help options"),
        ("--help-all", "Show all help options"),
        ("--help-general", "Show general options"),
        ("--help-calendar", "Show calendar options"),
        ("--help-entry", "Show text entry options"),
        ("--help-error", "Show error options"),
        ("--help-info", "Show info options"),
        ("--help-file-selection", "Show file selection options"),
        ("--help-list", "Show list options"),
        ("--help-notification", "Show notification icon options"),
        ("--help-progress", "Show progress options"),
        ("--help-question", "Show question options"),
        ("--help-warning", "Show warning options"),
        ("--help-scale", "Show scale options"),
        ("--help-text-info", "Show text information options"),
        ("--help-color-selection", "Show color selection options"),
        ("--help-password", "Show password dialog options"),
        ("--help-forms", "Show forms dialog options"),
        ("--help-misc", "Show miscellaneous options"),
    )),
    ("general", "General options", (
        ("--title=TITLE", "Set the dialog title"),
        ("--window-icon=ICONPATH", "Set the window icon"),
        ("--width=WIDTH", "Set the width"),
        ("--height=HEIGHT", "Set the height"),
        ("--timeout=TIMEOUT", "Set dialog timeout in seconds"),
        ("--ok-label=TEXT", "Sets the label of the Ok button"),
        ("--cancel-label=TEXT", "Sets the label of the Cancel button"),
        ("--modal", "Set the modal hint"),
        ("--attach=WINDOW", "Set the parent window to attach to"),
    )),
    ("calendar", "Calendar options", (
        ("--text=TEXT", "Set the dialog text"),
        ("--day=DAY", "Set the calendar day"),
        ("--month=MONTH", "Set the calendar month"),
        ("--year=YEAR", "Set the calendar year"),
        ("--timeout=TIMEOUT", "Set dialog timeout in seconds"),
        ("--date-format=PATTERN", "Set the format for the returned date"),
    )),
    ("entry", "Text entry options", (
        ("--text=TEXT", "Set the dialog text"),
        ("--entry-text=TEXT", "Set the entry text"),
        ("--hide-text", "Hide the entry text"),
    )),
    ("error", "Error options", _MESSAGE_OPTIONS),
    ("info", "Info options", _MESSAGE_OPTIONS),
    ("file-selection", "File selection options", (
        ("--filename=FILENAME", "Set the filename"),
        ("--multiple", "Allow multiple files to be selected"),
        ("--directory", "Activate directory-only selection"),
        ("--save", "Activate save mode"),
        ("--separator=SEPARATOR", "Set output separator character"),
        ("--confirm-overwrite", "Confirm file selection if filename already exists"),
        ("--file-filter=NAME | PATTERN1 PATTERN2 ...", "Sets a filename filter"),
    )),
    ("list", "List options", (
        ("--text=TEXT", "Set the dialog text"),
        ("--column=COLUMN", "Set the column header"),
        ("--checklist", "Use check boxes for first column"),
        ("--radiolist", "Use radio buttons for first column"),
        ("--imagelist", "Use an image for first column"),
        ("--separator=SEPARATOR", "Set output separator character"),
        ("--multiple", "Allow multiple rows to be selected"),
        ("--editable", "Allow changes to text"),
        ("--print-column=NUMBER", "Print a specific column (not supported, the first column is printed)"),
        ("--hide-column=NUMBER", "Hide a specific column"),
        ("--hide-header", "Hides the column headers"),
    )),
    ("notification", "Notification icon options", (
        ("--text=TEXT", "Set the dialog text"),
        ("--listen", "Listen for commands on stdin"),
        ("--hint=TEXT", "Set the notification hints"),
    )),
    ("progress", "Progress options", (
        ("--text=TEXT", "Set the dialog text"),
        ("--percentage=PERCENTAGE", "Set initial percentage"),
        ("--pulsate", "Pulsate progress bar"),
        ("--auto-close", "Dismiss the dialog when 100% has been reached"),
        ("--auto-kill", "Kill parent process if Cancel button is pressed"),
        ("--no-cancel", "Hide Cancel button"),
    )),
    ("question", "Question options", _MESSAGE_OPTIONS + (
        ("--default-cancel", "Give cancel button focus by default"),
    )),
    ("warning", "Warning options", _MESSAGE_OPTIONS),
    ("scale", "Scale options", (
        ("--text=TEXT", "Set the dialog text"),
        ("--value=VALUE", "Set initial value"),
        ("--min-value=VALUE", "Set minimum value"),
        ("--max-value=VALUE", "Set maximum value"),
        ("--step=VALUE", "Set step size"),
        ("--print-partial", "Print partial values"),
        ("--hide-value", "Hide value"),
    )),
    ("text-info", "Text information options", (
        ("--filename=FILENAME", "Open file"),
        ("--editable", "Allow changes to text"),
        ("--font=TEXT", "Set the text font"),
        ("--checkbox=TEXT", "Enable an I read and agree checkbox"),
        ("--auto-scroll", "Auto scroll the text to the end. Only when text is captured from stdin"),
    )),
    ("color-selection", "Color selection options", (
        ("--color=VALUE", "Set the color"),
        ("--show-palette", "Show the palette"),
    )),
    ("password", "Password dialog options", (
        ("--username", "Display the username option"),
    )),
    ("forms", "Forms dialog options", (
        ("--add-entry=Field name", "Add a new Entry in forms dialog"),
        ("--add-password=Field name", "Add a new Password Entry in forms dialog"),
        ("--add-calendar=Calendar field name", "Add a new Calendar in forms dialog"),
        ("--add-list=List field and header name", "Add a new List in forms dialog"),
        ("--list-values=List of values separated by |", "List of values for List"),
        ("--column-values=List of values separated by |", "List of values for columns"),
        ("--add-combo=Combo box field name", "Add a new combo box in forms dialog"),
        ("--combo-values=List of values separated by |", "List of values for combo box"),
        ("--show-header", "Show the columns header"),
        ("--text=TEXT", "Set the dialog text"),
        ("--separator=SEPARATOR", "Set output separator character"),
        ("--forms-date-format=PATTERN", "Set the format for the returned date"),
        ("--add-checkbox=Checkbox label", "QARMA ONLY! Add a new Checkbox forms dialog"),
    )),
    ("misc", "Miscellaneous options", (
        ("--version", "Print version"),
    )),
    ("application", "Application Options", (
        ("--calendar", "Display calendar dialog"),
        ("--entry", "Display text entry dialog"),
        ("--error", "Display error dialog"),
        ("--info", "Display info dialog"),
        ("--file-selection", "Display file selection dialog"),
        ("--list", "Display list dialog"),
        ("--notification", "Display notification"),
        ("--progress", "Display progress indication dialog"),
        ("--question", "Display question dialog"),
        ("--warning", "Display warning dialog"),
        ("--scale", "Display scale dialog"),
        ("--text-info", "Display text information dialog"),
        ("--color-selection", "Display color selection dialog"),
        ("--password", "Display password dialog"),
        ("--forms", "Display forms dialog"),
    )),
]

CATEGORIES: Dict[str, HelpCategory] = {name: HelpCategory(name, title, opts) for name, title, opts in _RAW_HELP}


def format_category(name: str) -> str:
    cat = CATEGORIES[name]
    lines = [cat.title]
    lines += [f"  {opt:<{OPTION_WIDTH}}{desc}" for opt, desc in cat.options]
    return '\n'.join(lines) + '\n\n'


def usage() -> str:
    return f"Usage:\n  {APP_NAME} [OPTION ...]\n\n" + format_category('help') + format_category('application')


def render(category: Optional[str] = None) -> str:
    """Help text for one category; unknown or empty names give the usage."""
    if category == 'all':
        return ''.join(format_category(c) for c in CATEGORIES)
    if category in CATEGORIES:
        return format_category(category)
    return usage()


def print_help(categories: Iterable[str] = ('',), stream=None) -> None:
    out = stream if stream is not None else sys.stdout
    for cat in categories or ('',):
        out.write(render(cat))
    out.flush()


def category_names() -> List[str]:
    return list(CATEGORIES)
