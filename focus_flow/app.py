import threading
import webbrowser

import customtkinter as ctk

from .assistant import GeminiChatSource, GeminiClient, GeminiPromptSource
from .audio import sound_for
from .config import (
    APP_TITLE,
    APPDATA_DIR,
    DEFAULT_ALLOWED_APPS,
    DEFAULT_PLEDGE_AMOUNT,
    DEFAULT_POLICY,
    DEFAULT_SESSION_MINUTES,
    DND_TITLE,
    FULLSCREEN_REGION,
    POLL_INTERVAL_SEC,
    SESSION_COMPLETE_MESSAGE,
    TICK_INTERVAL_SEC,
    WATCHDOG_INTERVAL_SEC,
)
from .coordinator import SessionCoordinator
from .errors import ChatUnavailableError, FocusFlowError
from .logging_setup import setup_logger
from .models import GatingPolicy, Notification, SessionConfig, SessionSnapshot, Severity, Speaker
from .process_monitor import AllowedAppMatcher, ForegroundProbe
from .signals import FullscreenMonitor, VisibilityMonitor
from .tray import TrayController
from .utils import ensure_dir, minutes_remaining, progress_fraction, seconds_to_mmss
from .widgets import WidgetRegistry


ctk.set_appearance_mode("Dark")
ctk.set_default_color_theme("blue")

_SEVERITY_COLORS = {
    Severity.DEFAULT: "#2ecc71",
    Severity.WARNING: "#f39c12",
    Severity.DESTRUCTIVE: "#e74c3c",
}


class MediaPanel:
    """Study material link (video, document). Cleared whenever the session generation moves."""

    def __init__(self, parent, logger):
        self._logger = logger
        self._url: str | None = None

        self.frame = ctk.CTkFrame(parent)
        ctk.CTkLabel(self.frame, text="Study material (video or document link):").grid(
            row=0, column=0, columnspan=2, sticky="w", padx=12, pady=(10, 4)
        )
        self.entry = ctk.CTkEntry(self.frame, placeholder_text="https://...")
        self.entry.grid(row=1, column=0, sticky="ew", padx=(12, 6), pady=(0, 6))
        self.open_btn = ctk.CTkButton(self.frame, text="Open", width=70, command=self.open)
        self.open_btn.grid(row=1, column=1, sticky="e", padx=(0, 12), pady=(0, 6))
        self.status = ctk.CTkLabel(self.frame, text="", text_color="gray", anchor="w")
        self.status.grid(row=2, column=0, columnspan=2, sticky="w", padx=12, pady=(0, 10))
        self.frame.grid_columnconfigure(0, weight=1)

    def init(self, generation: int) -> None:
        self.status.configure(text=f"Ready (session #{generation})")

    def dispose(self) -> None:
        if self._url:
            self._logger.info(f"Media panel released url={self._url}")
        self._url = None
        self.entry.delete(0, "end")
        self.status.configure(text="")

    def open(self) -> None:
        url = self.entry.get().strip()
        if not url:
            return
        self._url = url
        webbrowser.open(url)
        self.status.configure(text=f"Opened: {url}")


class FocusFlowApp:
    def __init__(self):
        ensure_dir(APPDATA_DIR)

        self.logger = setup_logger()
        self.logger.info("App start")

        self.root = ctk.CTk()
        self.root.title(APP_TITLE)
        self.root.geometry("460x900")
        self.root.minsize(460, 760)
        self.root.protocol("WM_DELETE_WINDOW", self.hide_to_tray)
        self.root.bind("<Escape>", lambda _e: self._set_fullscreen(False))

        self._hidden = False
        self._after_jobs: dict[str, str] = {}
        self._toast_job = None
        self._transcript_len = -1

        self.matcher = AllowedAppMatcher()
        self.matcher.set_from_text(DEFAULT_ALLOWED_APPS)
        self.visibility = VisibilityMonitor(ForegroundProbe(self.matcher), logger=self.logger)
        self.fullscreen = FullscreenMonitor(FULLSCREEN_REGION, probe=self._probe_fullscreen, logger=self.logger)
        self.widgets = WidgetRegistry(logger=self.logger)

        gemini = GeminiClient()
        self.coordinator = SessionCoordinator(
            SessionConfig(DEFAULT_SESSION_MINUTES * 60, DEFAULT_PLEDGE_AMOUNT),
            self.visibility,
            self.fullscreen,
            GatingPolicy(DEFAULT_POLICY),
            prompt_source=GeminiPromptSource(gemini),
            chat_source=GeminiChatSource(gemini),
            runner=self._run_async,
            notifier=self._on_notification,
            request_fullscreen=self._set_fullscreen,
            widgets=self.widgets,
            logger=self.logger,
        )

        self.tray = TrayController(
            title=APP_TITLE,
            on_show=self.show_from_tray,
            on_quit=self.quit_app,
            logger=self.logger,
        )

        self._build_ui()
        self._apply_defaults()
        self.widgets.register(self.media_panel)
        self._unsubscribe = self.coordinator.subscribe(self._render)

        self._schedule("tick", TICK_INTERVAL_SEC, self.coordinator.tick)
        self._schedule("watchdog", WATCHDOG_INTERVAL_SEC, self.coordinator.watchdog_tick)
        self._schedule("poll", POLL_INTERVAL_SEC, self._poll_signals)

    # UI
    def _build_ui(self) -> None:
        self.header = ctk.CTkLabel(self.root, text=APP_TITLE, font=("Roboto", 26, "bold"))
        self.header.pack(pady=(18, 8))

        self.frame_settings = ctk.CTkFrame(self.root)
        self.frame_settings.pack(padx=18, pady=(6, 8), fill="x")

        ctk.CTkLabel(self.frame_settings, text="Focus duration (minutes):").grid(
            row=0, column=0, sticky="w", padx=12, pady=(12, 6)
        )
        self.duration_entry = ctk.CTkEntry(self.frame_settings, width=90, justify="center")
        self.duration_entry.grid(row=0, column=1, sticky="e", padx=12, pady=(12, 6))

        ctk.CTkLabel(self.frame_settings, text="Pledge amount (symbolic):").grid(
            row=1, column=0, sticky="w", padx=12, pady=(0, 6)
        )
        self.pledge_entry = ctk.CTkEntry(self.frame_settings, width=90, justify="center")
        self.pledge_entry.grid(row=1, column=1, sticky="e", padx=12, pady=(0, 6))

        ctk.CTkLabel(self.frame_settings, text="Other apps that count as focus, comma-separated:").grid(
            row=2, column=0, columnspan=2, sticky="w", padx=12, pady=(0, 4)
        )
        self.allowed_entry = ctk.CTkEntry(self.frame_settings, placeholder_text="code.exe, *notes*")
        self.allowed_entry.grid(row=3, column=0, columnspan=2, sticky="ew", padx=12, pady=(0, 6))

        self._fullscreen_var = ctk.BooleanVar(value=GatingPolicy(DEFAULT_POLICY).fullscreen_required)
        self.policy_switch = ctk.CTkSwitch(
            self.frame_settings, text="Require fullscreen", variable=self._fullscreen_var
        )
        self.policy_switch.grid(row=4, column=0, columnspan=2, sticky="w", padx=12, pady=(0, 6))

        self._dnd_var = ctk.BooleanVar(value=False)
        self.dnd_switch = ctk.CTkSwitch(
            self.frame_settings, text="Do Not Disturb mode", variable=self._dnd_var, command=self._on_dnd_toggle
        )
        self.dnd_switch.grid(row=5, column=0, columnspan=2, sticky="w", padx=12, pady=(0, 12))
        self.frame_settings.grid_columnconfigure(0, weight=1)

        self.frame_timer = ctk.CTkFrame(self.root, fg_color="#23303a")
        self.frame_timer.pack(padx=18, pady=8, fill="x")

        self.timer_label = ctk.CTkLabel(self.frame_timer, text="25:00", font=("Consolas", 64, "bold"))
        self.timer_label.pack(pady=(12, 4))
        self.progress_bar = ctk.CTkProgressBar(self.frame_timer)
        self.progress_bar.pack(fill="x", padx=12, pady=(0, 4))
        self.progress_bar.set(0.0)
        self.progress_label = ctk.CTkLabel(self.frame_timer, text="", text_color="gray")
        self.progress_label.pack(pady=(0, 4))
        self.status_line = ctk.CTkLabel(self.frame_timer, text="Status: idle", font=("Arial", 14, "bold"))
        self.status_line.pack(pady=(0, 4))
        self.violation_label = ctk.CTkLabel(self.frame_timer, text="", text_color="gray")
        self.violation_label.pack(pady=(0, 4))
        self.message_label = ctk.CTkLabel(self.frame_timer, text="", wraplength=380, font=("Arial", 13, "italic"))
        self.message_label.pack(padx=12, pady=(4, 12))

        self.frame_control = ctk.CTkFrame(self.root)
        self.frame_control.pack(padx=18, pady=8, fill="x")

        self.start_btn = ctk.CTkButton(
            self.frame_control,
            text="Start session",
            fg_color="#c0392b",
            hover_color="#e74c3c",
            command=self.start_session,
        )
        self.start_btn.grid(row=0, column=0, padx=(12, 6), pady=12, sticky="ew")

        self.reset_btn = ctk.CTkButton(
            self.frame_control,
            text="Reset",
            fg_color="#7f8c8d",
            hover_color="#95a5a6",
            command=self.reset_session,
        )
        self.reset_btn.grid(row=0, column=1, padx=6, pady=12, sticky="ew")

        self.fullscreen_btn = ctk.CTkButton(
            self.frame_control,
            text="Fullscreen",
            fg_color="#555555",
            hover_color="#777777",
            command=lambda: self._set_fullscreen(True),
        )
        self.fullscreen_btn.grid(row=0, column=2, padx=(6, 12), pady=12, sticky="ew")
        for col in range(3):
            self.frame_control.grid_columnconfigure(col, weight=1)

        self.toast_label = ctk.CTkLabel(self.root, text="", wraplength=420, anchor="w", justify="left")
        self.toast_label.pack(fill="x", padx=18, pady=(0, 6))

        self.frame_chat = ctk.CTkFrame(self.root)
        self.frame_chat.pack(padx=18, pady=8, fill="both", expand=True)

        ctk.CTkLabel(self.frame_chat, text="Focus Assistant (Gemini)", font=("Arial", 16, "bold")).grid(
            row=0, column=0, columnspan=2, sticky="w", padx=12, pady=(10, 4)
        )
        self.chat_box = ctk.CTkTextbox(self.frame_chat, height=160)
        self.chat_box.grid(row=1, column=0, columnspan=2, sticky="nsew", padx=12, pady=(0, 6))
        self.chat_box.configure(state="disabled")
        self.chat_entry = ctk.CTkEntry(self.frame_chat, placeholder_text="Ask something...")
        self.chat_entry.grid(row=2, column=0, sticky="ew", padx=(12, 6), pady=(0, 12))
        self.chat_entry.bind("<Return>", lambda _e: self.send_chat())
        self.chat_btn = ctk.CTkButton(self.frame_chat, text="Send", width=70, command=self.send_chat)
        self.chat_btn.grid(row=2, column=1, sticky="e", padx=(0, 12), pady=(0, 12))
        self.frame_chat.grid_columnconfigure(0, weight=1)
        self.frame_chat.grid_rowconfigure(1, weight=1)

        self.media_panel = MediaPanel(self.root, self.logger)
        self.media_panel.frame.pack(padx=18, pady=(0, 8), fill="x")

        self.footer = ctk.CTkLabel(
            self.root,
            text='Tip: Click "X" to hide to tray. Press Esc to leave fullscreen.',
            text_color="gray",
        )
        self.footer.pack(pady=(0, 12))

    def _apply_defaults(self) -> None:
        if not self.duration_entry.get().strip():
            self.duration_entry.insert(0, str(DEFAULT_SESSION_MINUTES))
        if not self.pledge_entry.get().strip():
            self.pledge_entry.insert(0, str(DEFAULT_PLEDGE_AMOUNT))
        if DEFAULT_ALLOWED_APPS and not self.allowed_entry.get().strip():
            self.allowed_entry.insert(0, DEFAULT_ALLOWED_APPS)

    def _on_dnd_toggle(self) -> None:
        enabled = bool(self._dnd_var.get())
        self.root.title(DND_TITLE if enabled else APP_TITLE)
        self.logger.info(f"Do Not Disturb toggled enabled={enabled}")

    # Session controls
    def start_session(self) -> None:
        if self.coordinator.is_idle:
            try:
                mins = int(self.duration_entry.get().strip())
                pledge = int(self.pledge_entry.get().strip() or 0)
                self.coordinator.set_duration(mins * 60)
                self.coordinator.set_pledge(pledge)
                policy = GatingPolicy.FULLSCREEN if self._fullscreen_var.get() else GatingPolicy.TAB_FOCUS
                self.coordinator.set_policy(policy)
            except (ValueError, FocusFlowError) as exc:
                self._show_toast(Notification("Invalid settings", str(exc), Severity.WARNING))
                return
            self.matcher.set_from_text(self.allowed_entry.get())
            self.visibility.poll()
        self.coordinator.start_session()

    def reset_session(self) -> None:
        self.coordinator.reset_session("Session reset by user")

    def send_chat(self) -> None:
        text = self.chat_entry.get()
        try:
            sent = self.coordinator.send_chat(text)
        except ChatUnavailableError as exc:
            self._show_toast(Notification("Chat unavailable", str(exc), Severity.WARNING))
            return
        if sent:
            self.chat_entry.delete(0, "end")

    # Platform glue
    def _probe_fullscreen(self) -> bool:
        return str(self.root.attributes("-fullscreen")).lower() in ("1", "true")

    def _set_fullscreen(self, enabled: bool) -> None:
        self.root.attributes("-fullscreen", bool(enabled))
        self.fullscreen.poll()

    def _poll_signals(self) -> None:
        self.visibility.poll()
        self.fullscreen.poll()

    def _schedule(self, name: str, interval_sec: float, fn) -> None:
        def _run():
            try:
                fn()
            except Exception:
                self.logger.exception(f"Loop {name} failed")
                self.coordinator.reset_session(f"Internal error in {name}", forfeit=False)
            self._after_jobs[name] = self.root.after(int(interval_sec * 1000), _run)

        self._after_jobs[name] = self.root.after(int(interval_sec * 1000), _run)

    def _run_async(self, job, on_done) -> None:
        def worker():
            try:
                result, error = job(), None
            except Exception as exc:
                result, error = None, exc
            self.root.after(0, lambda: on_done(result, error))

        threading.Thread(target=worker, daemon=True).start()

    # Notifications
    def _on_notification(self, notification: Notification) -> None:
        self.logger.info(
            f"Notify severity={notification.severity.value} event={notification.event} "
            f"title={notification.title!r} desc={notification.description!r}"
        )
        sound_for(notification)
        self._show_toast(notification)
        if self._hidden:
            self.tray.notify(notification)

    def _show_toast(self, notification: Notification) -> None:
        self.toast_label.configure(
            text=f"{notification.title}: {notification.description}",
            text_color=_SEVERITY_COLORS[notification.severity],
        )
        if self._toast_job is not None:
            self.root.after_cancel(self._toast_job)
        self._toast_job = self.root.after(notification.duration_ms, self._clear_toast)

    def _clear_toast(self) -> None:
        self._toast_job = None
        self.toast_label.configure(text="")

    # Rendering
    def _render(self, snap: SessionSnapshot) -> None:
        self.timer_label.configure(text=seconds_to_mmss(snap.remaining_seconds))
        frac = progress_fraction(snap.remaining_seconds, snap.duration_seconds)
        self.progress_bar.set(frac)
        self.progress_label.configure(
            text=f"{int(frac * 100)}% complete | Time Remaining: {minutes_remaining(snap.remaining_seconds)} min"
        )

        if snap.is_running:
            status, color = "Status: running", "#2ecc71"
        elif snap.is_away:
            status, color = "Status: paused (return to keep your session)", "#e74c3c"
        elif snap.is_completed:
            status, color = "Status: completed", "#3498db"
        else:
            status, color = "Status: idle", "gray"
        self.status_line.configure(text=status, text_color=color)

        if snap.is_primed:
            away = f" | away {snap.away_ms // 1000}s" if snap.away_ms is not None else ""
            focus = "focused" if snap.tab_active else "window in background"
            self.violation_label.configure(
                text=f"Switches: {snap.tab_switch_count}/{snap.max_switches} | {focus}{away}"
            )
        else:
            self.violation_label.configure(text="")

        if snap.prompt_loading:
            message = "Fetching a motivational boost..."
        elif snap.is_completed:
            message = SESSION_COMPLETE_MESSAGE
        elif snap.prompt_error and not snap.motivational_message:
            message = f"Could not load a prompt: {snap.prompt_error}"
        elif snap.motivational_message:
            message = f'"{snap.motivational_message}"'
        else:
            message = "Start your session to get a motivational prompt!"
        self.message_label.configure(text=message)

        settings_state = "normal" if snap.is_idle else "disabled"
        for widget in (self.duration_entry, self.pledge_entry, self.allowed_entry, self.policy_switch):
            widget.configure(state=settings_state)
        self.start_btn.configure(state="disabled" if snap.is_primed else "normal")

        chat_state = "normal" if snap.chat_available else "disabled"
        self.chat_entry.configure(state=chat_state)
        self.chat_btn.configure(state=chat_state, text="..." if snap.chat_responding else "Send")
        self._render_transcript(snap)

    def _render_transcript(self, snap: SessionSnapshot) -> None:
        if len(snap.chat_transcript) == self._transcript_len:
            return
        self._transcript_len = len(snap.chat_transcript)
        lines = []
        for msg in snap.chat_transcript:
            who = "You" if msg.speaker is Speaker.USER else "Assistant"
            lines.append(f"{who}: {msg.text}")
        content = "\n\n".join(lines) if lines else "Ask Gemini anything..."

        self.chat_box.configure(state="normal")
        self.chat_box.delete("1.0", "end")
        self.chat_box.insert("1.0", content)
        self.chat_box.see("end")
        self.chat_box.configure(state="disabled")

    # Tray
    def hide_to_tray(self) -> None:
        self.logger.info("Hide to tray")
        self._hidden = True
        self.tray.ensure_running()
        self.root.withdraw()

    def show_from_tray(self) -> None:
        self.logger.info("Show from tray")

        def _do():
            self._hidden = False
            self.root.deiconify()
            self.root.lift()
            self.root.focus_force()

        self.root.after(0, _do)

    def quit_app(self) -> None:
        self.logger.info("Quit requested")

        def _do():
            for job in self._after_jobs.values():
                self.root.after_cancel(job)
            self._after_jobs.clear()
            if self.coordinator.is_primed:
                self.coordinator.reset_session("App closed", forfeit=False)
            self._unsubscribe()
            self.coordinator.close()
            self.widgets.dispose_all()
            self.tray.stop()
            self.root.destroy()
            self.logger.info("App stopped")

        self.root.after(0, _do)

    def run(self) -> None:
        self.root.mainloop()


def main() -> None:
    FocusFlowApp().run()
