"""Renders transport-neutral views as Feishu interactive card JSON."""

from typing import Any, Dict, List

from draftflow.domain.models.view import Button, View


def render_button(button: Button) -> Dict[str, Any]:
    element: Dict[str, Any] = {
        "tag": "button",
        "text": {"tag": "plain_text", "content": button.label},
        "type": button.style.value,
        "value": button.payload.to_value() if button.payload else {},
    }
    if button.url:
        element["url"] = button.url
    return element


def render_card(view: View) -> Dict[str, Any]:
    """Feishu card JSON for a view"""

    elements: List[Dict[str, Any]] = []
    if view.notice:
        elements.append({"tag": "div", "text": {"tag": "lark_md", "content": view.notice}})

    for block in view.blocks:
        elements.append({"tag": "div", "text": {"tag": "lark_md", "content": block}})

    for row in view.button_rows:
        if row:
            elements.append({"tag": "action", "actions": [render_button(b) for b in row]})

    card: Dict[str, Any] = {
        "config": {"wide_screen_mode": True},
        "elements": elements,
    }
    if view.title:
        card["header"] = {
            "title": {"tag": "plain_text", "content": view.title},
            "template": view.template,
        }
    return card
