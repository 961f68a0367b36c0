"""
DESFire Operations View.
Interrogation (version, applications, files), legacy AES authentication
and master key change for DESFire EV3 cards.
"""

from typing import Callable

import customtkinter as ctk

from .theme import COLORS, DIMENSIONS, FONTS, PADDING
from core.apdu import hex_to_bytes
from core.desfire import aid_to_hex


class DESFireView(ctk.CTkFrame):
    """DESFire operations tab."""

    def __init__(self, parent, on_command: Callable):
        """
        Args:
            on_command: Callback(command_name, on_done, **kwargs)
        """
        super().__init__(parent, fg_color="transparent")
        self._on_command = on_command
        self._build_ui()

    def _section(self, parent, title: str) -> ctk.CTkFrame:
        frame = ctk.CTkFrame(parent, fg_color=COLORS["bg_card"],
                             corner_radius=DIMENSIONS["corner_radius"])
        frame.pack(fill="x", pady=(0, PADDING["md"]))
        ctk.CTkLabel(
            frame, text=title,
            font=FONTS["body_bold"], text_color=COLORS["accent_blue"]
        ).pack(anchor="w", padx=PADDING["lg"], pady=(PADDING["md"], PADDING["xs"]))
        return frame

    def _row(self, parent, last: bool = False) -> ctk.CTkFrame:
        row = ctk.CTkFrame(parent, fg_color="transparent")
        row.pack(fill="x", padx=PADDING["lg"],
                 pady=(0, PADDING["md"] if last else PADDING["xs"]))
        return row

    def _label(self, parent, text: str):
        ctk.CTkLabel(
            parent, text=text,
            font=FONTS["label"], text_color=COLORS["text_secondary"]
        ).pack(side="left")

    def _entry(self, parent, width: int, placeholder: str) -> ctk.CTkEntry:
        entry = ctk.CTkEntry(
            parent, width=width,
            font=FONTS["mono"],
            fg_color=COLORS["bg_input"],
            border_color=COLORS["border"],
            text_color=COLORS["text_primary"],
            placeholder_text=placeholder
        )
        entry.pack(side="left", padx=PADDING["sm"])
        return entry

    def _button(self, parent, text: str, command: Callable, color: str, width: int = 110):
        ctk.CTkButton(
            parent, text=text,
            width=width, height=32,
            font=FONTS["small_bold"],
            fg_color=COLORS["bg_elevated"],
            hover_color=color,
            text_color=COLORS["text_secondary"],
            command=command
        ).pack(side="left", padx=(PADDING["xs"], 0))

    def _build_ui(self):
        scroll = ctk.CTkScrollableFrame(
            self,
            fg_color="transparent",
            scrollbar_button_color=COLORS["bg_elevated"],
            scrollbar_button_hover_color=COLORS["accent_blue"]
        )
        scroll.pack(fill="both", expand=True, padx=PADDING["lg"], pady=PADDING["md"])

        # ─── Card ───────────────────────────────────────────────────
        card_frame = self._section(scroll, "Card")
        card_row = self._row(card_frame, last=True)
        ctk.CTkButton(
            card_row, text="Full Card Scan",
            width=140, height=32,
            font=FONTS["small_bold"],
            fg_color=COLORS["accent_green"],
            hover_color=COLORS["accent_green_hover"],
            text_color=COLORS["bg_dark"],
            command=self._full_scan
        ).pack(side="left")
        self._button(card_row, "Get Version", self._get_version, COLORS["accent_blue"])
        self._button(card_row, "List Apps", self._list_apps, COLORS["accent_cyan"])

        # ─── Application / Files ────────────────────────────────────
        app_frame = self._section(scroll, "Application & Files")
        app_row = self._row(app_frame)
        self._label(app_row, "AID (hex):")
        self._aid_entry = self._entry(app_row, 120, "000000")
        self._button(app_row, "Select App", self._select_app, COLORS["accent_blue"])
        self._button(app_row, "PICC Level", self._select_picc, COLORS["accent_purple"])

        file_row = self._row(app_frame, last=True)
        self._button(file_row, "List Files", self._list_files, COLORS["accent_cyan"])
        self._label(file_row, "  File No:")
        self._file_no_entry = self._entry(file_row, 50, "0")
        self._button(file_row, "File Settings", self._get_file_settings, COLORS["accent_orange"])

        # ─── Authentication ─────────────────────────────────────────
        auth_frame = self._section(scroll, "Legacy AES Authentication")
        auth_row = self._row(auth_frame)
        self._label(auth_row, "Key (hex):")
        self._key_entry = self._entry(auth_row, 320, "00" * 16)
        ctk.CTkButton(
            auth_row, text="Authenticate",
            width=120, height=32,
            font=FONTS["small_bold"],
            fg_color=COLORS["accent_green"],
            hover_color=COLORS["accent_green_hover"],
            text_color=COLORS["bg_dark"],
            command=self._authenticate
        ).pack(side="left", padx=(PADDING["xs"], 0))

        change_row = self._row(auth_frame)
        self._label(change_row, "New key:  ")
        self._new_key_entry = self._entry(change_row, 320, "16-byte AES key")
        ctk.CTkButton(
            change_row, text="Change Key",
            width=120, height=32,
            font=FONTS["small_bold"],
            fg_color=COLORS["accent_red"],
            hover_color=COLORS["accent_orange"],
            text_color=COLORS["bg_dark"],
            command=self._change_key
        ).pack(side="left", padx=(PADDING["xs"], 0))

        self._auth_status = ctk.CTkLabel(
            auth_frame, text="",
            font=FONTS["small"],
            text_color=COLORS["text_muted"]
        )
        self._auth_status.pack(anchor="w", padx=PADDING["lg"], pady=(0, PADDING["md"]))

        # ─── Output ─────────────────────────────────────────────────
        output_frame = ctk.CTkFrame(scroll, fg_color=COLORS["bg_card"],
                                    corner_radius=DIMENSIONS["corner_radius"])
        output_frame.pack(fill="x", pady=(0, PADDING["md"]))

        output_header = ctk.CTkFrame(output_frame, fg_color="transparent")
        output_header.pack(fill="x", padx=PADDING["lg"], pady=(PADDING["md"], PADDING["xs"]))

        ctk.CTkLabel(
            output_header, text="Output",
            font=FONTS["body_bold"], text_color=COLORS["accent_blue"]
        ).pack(side="left")

        ctk.CTkButton(
            output_header, text="Clear",
            width=60, height=28,
            font=FONTS["small"],
            fg_color=COLORS["bg_elevated"],
            hover_color=COLORS["accent_red"],
            text_color=COLORS["text_secondary"],
            command=self._clear_output
        ).pack(side="right")

        self._output = ctk.CTkTextbox(
            output_frame,
            height=300,
            font=FONTS["mono"],
            fg_color=COLORS["bg_input"],
            text_color=COLORS["text_primary"],
            border_color=COLORS["border"],
            border_width=1,
            corner_radius=6
        )
        self._output.pack(fill="x", padx=PADDING["lg"], pady=(0, PADDING["md"]))

    def _append_output(self, text: str):
        self._output.insert("end", text + "\n")
        self._output.see("end")

    def _clear_output(self):
        self._output.delete("1.0", "end")

    def _read_key(self, entry: ctk.CTkEntry, default: str = "") -> bytes:
        key_hex = entry.get().strip() or default
        key = hex_to_bytes(key_hex)
        if len(key) != 16:
            raise ValueError("AES key must be 16 bytes (32 hex chars)")
        return key

    # ─── Interrogation ──────────────────────────────────────────────

    def _get_version(self):
        def done(version):
            self._append_output("--- Card Version ---")
            for key, val in version.to_dict().items():
                self._append_output(f"  {key}: {val}")
        self._on_command("get_version", done)

    def _list_apps(self):
        def done(aids):
            self._append_output(f"--- Applications ({len(aids)}) ---")
            for aid in aids:
                self._append_output(f"  AID: {aid_to_hex(aid)}")
        self._on_command("list_apps", done)

    def _select_app(self):
        aid_hex = self._aid_entry.get().strip().replace(" ", "") or "000000"
        try:
            aid = int(aid_hex, 16)
        except ValueError:
            self._append_output("[ERROR] AID must be hex")
            return
        if not 0 <= aid <= 0xFFFFFF:
            self._append_output("[ERROR] AID must be 3 bytes (6 hex chars)")
            return
        self._on_command(
            "select_app",
            lambda _: self._append_output(f"[OK] Selected application: {aid_to_hex(aid)}"),
            aid=aid)

    def _select_picc(self):
        self._on_command(
            "select_picc",
            lambda _: self._append_output("[OK] Selected PICC level (AID 000000)"))

    def _list_files(self):
        def done(fids):
            self._append_output(f"--- Files ({len(fids)}) ---")
            for fid in fids:
                self._append_output(f"  File ID: {fid}")
        self._on_command("list_files", done)

    def _get_file_settings(self):
        try:
            file_no = int(self._file_no_entry.get().strip() or "0")
        except ValueError:
            self._append_output("[ERROR] Invalid file number")
            return

        def done(settings):
            self._append_output(f"--- File {file_no} Settings ---")
            for key, val in settings.to_dict().items():
                self._append_output(f"  {key}: {val}")
        self._on_command("file_settings", done, file_no=file_no)

    def _full_scan(self):
        self._append_output("--- Starting Full Card Scan ---")
        self._on_command("full_scan", lambda result: self._append_output(
            self._format_scan_result(result)))

    # ─── Authentication ─────────────────────────────────────────────

    def _show_auth(self, result):
        color = COLORS["accent_green"] if result.success else COLORS["accent_red"]
        self._append_output(("[OK] " if result.success else "[FAIL] ") + result.message)
        self._auth_status.configure(text=result.message, text_color=color)

    def _authenticate(self):
        try:
            key = self._read_key(self._key_entry, "00" * 16)
        except ValueError as e:
            self._append_output(f"[ERROR] {e}")
            return
        self._auth_status.configure(text="Authenticating...", text_color=COLORS["accent_yellow"])
        self._on_command("authenticate", self._show_auth, key=key)

    def _change_key(self):
        try:
            current = self._read_key(self._key_entry, "00" * 16)
            new = self._read_key(self._new_key_entry)
        except ValueError as e:
            self._append_output(f"[ERROR] {e}")
            return

        def done(result):
            self._append_output(("[OK] " if result.changed else "[FAIL] ") + result.message)
            color = COLORS["accent_green"] if result.changed else COLORS["accent_red"]
            self._auth_status.configure(text=result.message, text_color=color)
        self._auth_status.configure(text="Changing key...", text_color=COLORS["accent_yellow"])
        self._on_command("change_key", done, current=current, new=new)

    def _format_scan_result(self, result: dict) -> str:
        """Format a full scan result into readable text."""
        lines = []
        for key, val in result.get("version", {}).items():
            lines.append(f"  {key}: {val}")

        apps = result.get("applications", [])
        lines.append(f"  Applications: {len(apps)}")
        for app in apps:
            lines.append(f"    AID: {app.get('AID', '?')}")
            if "error" in app:
                lines.append(f"      {app['error']}")
            for fid, finfo in app.get("files", {}).items():
                lines.append(f"      File {fid}: {finfo.get('File Type', '?')}"
                             f" ({finfo.get('Communication', '?')})")
        return "\n".join(lines)
