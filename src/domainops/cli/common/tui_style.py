"""Questionary / prompt_toolkit theme for domainops prompts.

Questionary uses prompt_toolkit under the hood. One central style keeps the
domain picker and any later prompt visually consistent with the rich output.
"""

from __future__ import annotations

from prompt_toolkit.styles import Style

QUESTIONARY_STYLE_SELECT = Style.from_dict(
    {
        "qmark": "bold ansicyan",
        "question": "bold ansibrightcyan",
        "answer": "bold ansibrightgreen",
        "pointer": "bold ansibrightgreen",
        "highlighted": "bold ansibrightgreen",
        "selected": "bold ansigreen",
        "checkbox": "ansibrightblack",
        "checkbox-selected": "bold ansigreen",
        "separator": "ansibrightblack",
        "instruction": "ansibrightblack",
        "error": "bold ansired",
        "disabled": "ansibrightblack italic",
    }
)
