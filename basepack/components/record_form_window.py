"""
Modal window wrapping a single form.
"""

import logging
from typing import Any

from basepack.components.base import Component, child
from basepack.core.localization import ACTION_KEY_PREFIX

logger = logging.getLogger(__name__)


class RecordFormWindow(Component):
    """
    Window around the form given as its only item.

    The form is a regular (non-lazy) child named "form", so its identity is
    "<window id>__form".
    """

    default_config = {
        "modal": True,
        "width": "50%",
        "auto_height": True,
        "button_align": "right",
        "fbar": ["ok", "cancel"],
    }

    def actions(self) -> dict[str, dict[str, Any]]:
        return {
            "ok": {"text": self.t(f"{ACTION_KEY_PREFIX}.ok")},
            "cancel": {"text": self.t(f"{ACTION_KEY_PREFIX}.cancel")},
        }

    @child
    def form(self) -> dict[str, Any]:
        items = self.config.get("items") or []
        if not items:
            return {"class_name": "FormPanel"}
        return {"class_name": "FormPanel", **items[0], "lazy_loading": False}
