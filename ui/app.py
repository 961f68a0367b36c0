"""
Main Application Window.
Orchestrates all UI components and connects them to the core modules.
Card commands run on a worker thread; results come back through after().
"""

import logging
import threading
from typing import Callable, Optional

import customtkinter as ctk

from .theme import COLORS, DIMENSIONS, PADDING
from .reader_panel import ReaderPanel
from .tag_view import TagView
from .desfire_view import DESFireView
from .log_panel import LogPanel, LogPanelHandler

from core.apdu import bytes_to_hex
from core.config import AppConfig
from core.errors import CardError
from core.keys import load_or_create_signing_key
from core.reader_manager import ReaderManager
from core.workflow import CardWorkflow

logger = logging.getLogger(__name__)


class TagSignerApp(ctk.CTk):
    """Main application window."""

    def __init__(self, config: AppConfig = AppConfig()):
        super().__init__()
        self._config = config

        # Window config
        self.title("NFC Tag Signer")
        self.geometry("1180x820")
        self.minsize(960, 680)

        # Theme
        ctk.set_appearance_mode("dark")
        ctk.set_default_color_theme("blue")
        self.configure(fg_color=COLORS["bg_main"])

        # Core modules
        self._reader_mgr = ReaderManager()
        self._workflow: Optional[CardWorkflow] = None
        self._signing_key = None
        self._busy = threading.Lock()

        self._build_ui()

        self._log_handler = LogPanelHandler(self._log)
        self._log_handler.setFormatter(logging.Formatter("%(message)s"))
        logging.getLogger().addHandler(self._log_handler)

        self.after(500, self._refresh_readers)
        self._reader_mgr.start_monitoring(
            on_card_inserted=self._on_card_event,
            on_card_removed=self._on_card_event,
        )

        self.protocol("WM_DELETE_WINDOW", self._on_close)

    def _build_ui(self):
        """Build the main application layout."""
        main_container = ctk.CTkFrame(self, fg_color="transparent")
        main_container.pack(fill="both", expand=True)

        # ─── Sidebar (Reader Panel) ────────────────────────────────
        self._reader_panel = ReaderPanel(
            main_container,
            on_reader_selected=self._on_reader_selected,
            on_connect=self._connect_card,
            on_disconnect=self._disconnect_card,
            on_refresh=self._refresh_readers
        )
        self._reader_panel.pack(side="left", fill="y")

        # ─── Right Content Area ─────────────────────────────────────
        right_area = ctk.CTkFrame(main_container, fg_color="transparent")
        right_area.pack(side="left", fill="both", expand=True)

        self._tabview = ctk.CTkTabview(
            right_area,
            fg_color=COLORS["bg_main"],
            segmented_button_fg_color=COLORS["bg_elevated"],
            segmented_button_selected_color=COLORS["accent_blue"],
            segmented_button_selected_hover_color=COLORS["accent_blue_hover"],
            segmented_button_unselected_color=COLORS["bg_elevated"],
            segmented_button_unselected_hover_color=COLORS["sidebar_hover"],
            text_color=COLORS["text_bright"],
            text_color_disabled=COLORS["text_muted"],
            corner_radius=DIMENSIONS["corner_radius"]
        )
        self._tabview.pack(fill="both", expand=True, padx=PADDING["sm"], pady=(PADDING["sm"], 0))

        tab_tag = self._tabview.add("NTAG215")
        tab_desfire = self._tabview.add("DESFire")

        self._tag_view = TagView(tab_tag, self._submit)
        self._tag_view.pack(fill="both", expand=True)

        self._desfire_view = DESFireView(tab_desfire, self._submit)
        self._desfire_view.pack(fill="both", expand=True)

        # ─── Log Panel ──────────────────────────────────────────────
        self._log = LogPanel(right_area)
        self._log.pack(fill="x", side="bottom")
        self._log.log("NFC Tag Signer started")

    # ─── Reader Management ──────────────────────────────────────────────

    def _refresh_readers(self):
        readers = self._reader_mgr.refresh_readers()
        self._reader_panel.update_readers([r.name for r in readers])

    def _on_reader_selected(self, index: int):
        reader = self._reader_mgr.select_reader(index)
        if reader:
            self._workflow = None
            self._reader_panel.set_status(False)
            self._log.log(f"Selected: {reader.name}")

    def _on_card_event(self, reader_name: str):
        # Monitor thread; hop onto the UI loop
        self.after(100, self._refresh_readers)

    def _connect_card(self):
        success, msg = self._reader_mgr.connect()
        if not success:
            self._log.error(f"Connection failed: {msg}")
            self._reader_panel.set_status(False, msg)
            return

        atr = self._reader_mgr.get_atr()
        self._log.success(f"Connected, ATR {bytes_to_hex(atr or b'')}")
        self._workflow = CardWorkflow(self._reader_mgr.transmit, self._config)
        self._tag_view.reset()
        self._reader_panel.set_status(True)
        self._submit("uid", lambda uid: self._reader_panel.set_status(True, uid=bytes_to_hex(uid)),
                     quiet=True)

    def _disconnect_card(self):
        self._reader_mgr.disconnect()
        self._workflow = None
        self._reader_panel.set_status(False)
        self._tag_view.reset()
        self._log.log("Disconnected")

    # ─── Command Dispatch ───────────────────────────────────────────────

    def _loaded_signing_key(self):
        if self._signing_key is None:
            self._signing_key = load_or_create_signing_key(
                self._config.key_file, self._config.key_bits)
        return self._signing_key

    def _execute(self, workflow: CardWorkflow, command: str, **kwargs):
        """Map a view command onto the workflow. Runs on the worker thread."""
        desfire = workflow.desfire
        if command == "uid":
            return workflow.memory().get_uid()
        elif command == "tag_info":
            return workflow.tag_info()
        elif command == "dump":
            return workflow.dump(kwargs["start"], kwargs["end"])
        elif command == "sign":
            return workflow.sign(self._loaded_signing_key())
        elif command == "verify":
            return workflow.verify(self._loaded_signing_key())
        elif command == "get_version":
            return desfire.get_version()
        elif command == "list_apps":
            return list(desfire.get_application_ids())
        elif command == "select_app":
            return desfire.select_application(kwargs["aid"])
        elif command == "select_picc":
            return desfire.select_picc()
        elif command == "list_files":
            return desfire.get_file_ids()
        elif command == "file_settings":
            return desfire.get_file_settings(kwargs["file_no"])
        elif command == "full_scan":
            return workflow.desfire_scan()
        elif command == "authenticate":
            return workflow.authenticate(kwargs["key"])
        elif command == "change_key":
            return workflow.change_key(kwargs["current"], kwargs["new"])
        raise ValueError(f"unknown command: {command}")

    def _submit(self, command: str, on_done: Callable, quiet: bool = False, **kwargs):
        """Run one card command off the UI thread, one at a time."""
        workflow = self._workflow
        if workflow is None:
            self._log.error("Not connected to a card")
            return
        if not self._busy.acquire(blocking=False):
            self._log.log("Card is busy, wait for the current command", "WARNING")
            return

        def _work():
            try:
                result = self._execute(workflow, command, **kwargs)
            except (CardError, ValueError, OSError) as e:
                if not quiet:
                    logger.error("%s failed: %s", command, e)
                return
            finally:
                self._busy.release()
            self.after(0, on_done, result)

        threading.Thread(target=_work, daemon=True).start()

    def _on_close(self):
        logging.getLogger().removeHandler(self._log_handler)
        self._reader_mgr.cleanup()
        self.destroy()
