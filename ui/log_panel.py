"""
Log Panel.
Bottom panel showing protocol log records with timestamps and levels.
A logging.Handler feeds it, so core modules only ever talk to ``logging``.
"""

import logging
from datetime import datetime

import customtkinter as ctk

from .theme import COLORS, FONTS, PADDING

LEVEL_NAMES = {
    logging.DEBUG: "DEBUG",
    logging.INFO: "INFO",
    logging.WARNING: "WARNING",
    logging.ERROR: "ERROR",
    logging.CRITICAL: "ERROR",
}


class LogPanel(ctk.CTkFrame):
    """Bottom log panel with timestamped entries."""

    def __init__(self, parent, height: int = 160):
        super().__init__(
            parent,
            height=height,
            fg_color=COLORS["bg_dark"],
            corner_radius=0
        )
        self.pack_propagate(False)
        self._build_ui()

    def _build_ui(self):
        header = ctk.CTkFrame(self, fg_color="transparent", height=28)
        header.pack(fill="x", padx=PADDING["md"], pady=(PADDING["xs"], 0))
        header.pack_propagate(False)

        ctk.CTkLabel(
            header, text="LOG",
            font=FONTS["small_bold"],
            text_color=COLORS["text_muted"]
        ).pack(side="left")

        self._show_trace = False
        self._verbose_var = ctk.BooleanVar(value=False)
        ctk.CTkCheckBox(
            header, text="APDU trace",
            variable=self._verbose_var,
            command=self._toggle_trace,
            font=FONTS["tiny"],
            text_color=COLORS["text_muted"],
            checkbox_width=14, checkbox_height=14,
        ).pack(side="right", padx=(PADDING["sm"], 0))

        ctk.CTkButton(
            header, text="Clear",
            width=50, height=22,
            font=FONTS["tiny"],
            fg_color="transparent",
            hover_color=COLORS["bg_elevated"],
            text_color=COLORS["text_muted"],
            command=self.clear
        ).pack(side="right")

        self._log_text = ctk.CTkTextbox(
            self,
            font=FONTS["mono_small"],
            fg_color=COLORS["bg_dark"],
            text_color=COLORS["text_secondary"],
            border_width=0,
            corner_radius=0,
            wrap="word",
            activate_scrollbars=True
        )
        self._log_text.pack(fill="both", expand=True, padx=PADDING["md"], pady=(0, PADDING["xs"]))
        self._log_text.configure(state="disabled")

    def _toggle_trace(self):
        self._show_trace = self._verbose_var.get()

    @property
    def show_trace(self) -> bool:
        return self._show_trace

    def log(self, message: str, level: str = "INFO"):
        """
        Add a log entry.
        Args:
            message: Log message text
            level: One of INFO, SUCCESS, WARNING, ERROR, DEBUG
        """
        timestamp = datetime.now().strftime("%H:%M:%S")
        self._log_text.configure(state="normal")
        self._log_text.insert("end", f"[{timestamp}] [{level}] {message}\n")
        self._log_text.see("end")
        self._log_text.configure(state="disabled")

    def success(self, message: str):
        self.log(message, "SUCCESS")

    def error(self, message: str):
        self.log(message, "ERROR")

    def clear(self):
        self._log_text.configure(state="normal")
        self._log_text.delete("1.0", "end")
        self._log_text.configure(state="disabled")


class LogPanelHandler(logging.Handler):
    """Routes log records to a LogPanel on the Tk main loop."""

    def __init__(self, panel: LogPanel, level: int = logging.DEBUG):
        super().__init__(level)
        self._panel = panel

    def emit(self, record: logging.LogRecord):
        # APDU exchanges log at DEBUG; show them only with the trace box ticked
        if record.levelno < logging.INFO and not self._panel.show_trace:
            return
        try:
            message = self.format(record)
            level = LEVEL_NAMES.get(record.levelno, "INFO")
            self._panel.after(0, self._panel.log, message, level)
        except Exception:
            self.handleError(record)
