from __future__ import annotations

import logging
from typing import Optional

from .errors import HostCapabilityError

logger = logging.getLogger(__name__)


class HostBridge:
    """
    Capabilities of the page hosting the widget.

    The base class behaves like a headless host: no share sheet, no clipboard,
    no navigation, and no confirm dialog (confirmations pass).

    Embedders subclass it to wire the real page. ``share``,
    ``write_clipboard`` and ``navigate`` are only called while the matching
    ``can_*`` flag is True, so a subclass that turns a flag on overrides the
    hook next to it. The defaults raise :class:`HostCapabilityError`, which
    callers report as a failed share.
    """

    can_share: bool = False
    can_write_clipboard: bool = False
    can_navigate: bool = False

    def __init__(self, origin: Optional[str] = None, href: Optional[str] = None) -> None:
        self.origin = origin
        self.href = href or origin

    def open_url(self, url: str, *, new_tab: bool = True) -> None:
        logger.info("Host open_url url=%s new_tab=%s", url, new_tab)

    def confirm(self, prompt: str) -> bool:
        return True

    async def share(self, *, title: str, text: str, url: Optional[str]) -> None:
        raise HostCapabilityError("Native share is not wired on this host", reason="share_unavailable")

    async def write_clipboard(self, text: str) -> None:
        raise HostCapabilityError("Clipboard is not wired on this host", reason="clipboard_unavailable")

    def navigate(self, href: str) -> None:
        raise HostCapabilityError("Navigation is not wired on this host", reason="navigation_unavailable")
