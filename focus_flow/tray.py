import logging
import threading

import pystray
from PIL import Image, ImageDraw

from .models import Notification, Severity

_SEVERITY_COLORS = {
    Severity.DEFAULT: (46, 204, 113),
    Severity.WARNING: (230, 160, 40),
    Severity.DESTRUCTIVE: (200, 60, 60),
}


class TrayController:
    def __init__(self, title: str, on_show, on_quit, logger: logging.Logger):
        self._title = title
        self._on_show = on_show
        self._on_quit = on_quit
        self._logger = logger

        self._icon = None
        self._thread = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._icon is not None and self._running

    def _make_icon_image(self, severity: Severity = Severity.DEFAULT) -> Image.Image:
        img = Image.new("RGB", (64, 64), color=(40, 40, 40))
        draw = ImageDraw.Draw(img)
        draw.ellipse((8, 8, 56, 56), fill=_SEVERITY_COLORS[severity])
        draw.rectangle((30, 18, 34, 34), fill=(245, 245, 245))
        draw.rectangle((30, 30, 44, 34), fill=(245, 245, 245))
        return img

    def ensure_running(self) -> None:
        if self.running:
            return

        def on_show(icon, item):
            self._on_show()

        def on_quit(icon, item):
            self._on_quit()

        menu = pystray.Menu(
            pystray.MenuItem("Show", on_show, default=True),
            pystray.MenuItem("Quit", on_quit),
        )

        self._icon = pystray.Icon("FocusFlow", self._make_icon_image(), self._title, menu)

        def run_icon():
            self._running = True
            try:
                self._icon.run()
            finally:
                self._running = False

        self._thread = threading.Thread(target=run_icon, daemon=True)
        self._thread.start()

    def notify(self, notification: Notification) -> None:
        if not self.running:
            return
        try:
            self._icon.icon = self._make_icon_image(notification.severity)
            self._icon.notify(notification.description, notification.title)
        except Exception:
            self._logger.exception(f"Tray notify failed title={notification.title!r}")

    def stop(self) -> None:
        if self._icon is None:
            return
        try:
            self._icon.stop()
        except Exception:
            self._logger.exception("Tray stop failed")
        self._icon = None
