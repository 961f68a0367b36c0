"""
Reader Selection Panel (Sidebar).
Lists PC/SC readers, shows card status and the connect/disconnect controls.
"""

from typing import Callable, List

import customtkinter as ctk

from .theme import COLORS, DIMENSIONS, FONTS, PADDING


class ReaderPanel(ctk.CTkFrame):
    """Left sidebar panel for reader selection and status display."""

    def __init__(self, parent, on_reader_selected: Callable[[int], None],
                 on_connect: Callable, on_disconnect: Callable,
                 on_refresh: Callable):
        super().__init__(
            parent,
            width=DIMENSIONS["sidebar_width"],
            corner_radius=0,
            fg_color=COLORS["sidebar_bg"]
        )
        self.pack_propagate(False)

        self._on_reader_selected = on_reader_selected
        self._on_connect = on_connect
        self._on_disconnect = on_disconnect
        self._on_refresh = on_refresh

        self._selected_index = -1
        self._reader_buttons: List[ctk.CTkButton] = []

        self._build_ui()

    def _separator(self):
        ctk.CTkFrame(self, height=1, fg_color=COLORS["border"]).pack(
            fill="x", padx=PADDING["lg"], pady=PADDING["md"])

    def _build_ui(self):
        title_frame = ctk.CTkFrame(self, fg_color="transparent")
        title_frame.pack(fill="x", padx=PADDING["lg"], pady=(PADDING["xl"], PADDING["md"]))

        ctk.CTkLabel(
            title_frame, text="NFC Tag",
            font=FONTS["heading"], text_color=COLORS["accent_blue"], anchor="w"
        ).pack(fill="x")
        ctk.CTkLabel(
            title_frame, text="Signer",
            font=FONTS["title"], text_color=COLORS["text_bright"], anchor="w"
        ).pack(fill="x")

        self._separator()

        # ─── Readers ────────────────────────────────────────────────
        readers_header = ctk.CTkFrame(self, fg_color="transparent")
        readers_header.pack(fill="x", padx=PADDING["lg"], pady=(PADDING["sm"], PADDING["xs"]))

        ctk.CTkLabel(
            readers_header, text="READERS",
            font=FONTS["small_bold"], text_color=COLORS["text_muted"]
        ).pack(side="left")

        ctk.CTkButton(
            readers_header, text="Refresh",
            width=70, height=28,
            font=FONTS["small"],
            fg_color=COLORS["bg_elevated"],
            hover_color=COLORS["accent_blue"],
            text_color=COLORS["text_secondary"],
            corner_radius=6,
            command=self._on_refresh
        ).pack(side="right")

        self._reader_list = ctk.CTkScrollableFrame(
            self,
            fg_color="transparent",
            scrollbar_button_color=COLORS["bg_elevated"],
            scrollbar_button_hover_color=COLORS["accent_blue"],
        )
        self._reader_list.pack(fill="both", expand=True, padx=PADDING["sm"], pady=PADDING["xs"])

        self._no_readers_label = ctk.CTkLabel(
            self._reader_list,
            text="No readers found.\nConnect a reader and\nclick Refresh.",
            font=FONTS["small"], text_color=COLORS["text_muted"], justify="center"
        )
        self._no_readers_label.pack(pady=PADDING["xl"])

        # ─── Connection Controls ────────────────────────────────────
        controls = ctk.CTkFrame(self, fg_color="transparent")
        controls.pack(fill="x", padx=PADDING["lg"], pady=PADDING["sm"])

        ctk.CTkButton(
            controls, text="Connect",
            height=DIMENSIONS["button_height"],
            font=FONTS["button"],
            fg_color=COLORS["accent_blue"],
            hover_color=COLORS["accent_blue_hover"],
            text_color=COLORS["text_bright"],
            corner_radius=DIMENSIONS["corner_radius"],
            command=self._on_connect
        ).pack(fill="x", pady=(0, PADDING["xs"]))

        ctk.CTkButton(
            controls, text="Disconnect",
            height=DIMENSIONS["button_height"],
            font=FONTS["button"],
            fg_color=COLORS["bg_elevated"],
            hover_color=COLORS["accent_red"],
            text_color=COLORS["text_secondary"],
            corner_radius=DIMENSIONS["corner_radius"],
            command=self._on_disconnect
        ).pack(fill="x")

        self._separator()

        # ─── Status ─────────────────────────────────────────────────
        status_frame = ctk.CTkFrame(self, fg_color="transparent")
        status_frame.pack(fill="x", padx=PADDING["lg"], pady=(0, PADDING["lg"]))

        ctk.CTkLabel(
            status_frame, text="STATUS",
            font=FONTS["small_bold"], text_color=COLORS["text_muted"]
        ).pack(anchor="w")

        indicator = ctk.CTkFrame(status_frame, fg_color=COLORS["bg_card"],
                                 corner_radius=DIMENSIONS["corner_radius"])
        indicator.pack(fill="x", pady=(PADDING["xs"], 0))

        self._status_dot = ctk.CTkLabel(
            indicator, text="●", width=20,
            font=("Segoe UI", 14), text_color=COLORS["status_disconnected"]
        )
        self._status_dot.pack(side="left", padx=(PADDING["md"], 0), pady=PADDING["sm"])

        self._status_label = ctk.CTkLabel(
            indicator, text="Disconnected",
            font=FONTS["small_bold"], text_color=COLORS["text_secondary"]
        )
        self._status_label.pack(side="left", padx=(PADDING["xs"], 0))

        self._uid_label = ctk.CTkLabel(
            status_frame, text="",
            font=FONTS["mono_small"], text_color=COLORS["accent_cyan"], anchor="w"
        )
        self._uid_label.pack(fill="x", pady=(PADDING["xs"], 0))

    def update_readers(self, reader_names: List[str]):
        """Rebuild the reader list."""
        for btn in self._reader_buttons:
            btn.destroy()
        self._reader_buttons.clear()

        if not reader_names:
            self._no_readers_label.pack(pady=PADDING["xl"])
            return
        self._no_readers_label.pack_forget()

        for i, name in enumerate(reader_names):
            btn = ctk.CTkButton(
                self._reader_list, text=name,
                font=FONTS["small"],
                hover_color=COLORS["sidebar_hover"],
                anchor="w", height=40, corner_radius=6,
                command=lambda idx=i: self._select_reader(idx)
            )
            btn.pack(fill="x", pady=1)
            self._reader_buttons.append(btn)
        self._highlight()

    def _highlight(self):
        for i, btn in enumerate(self._reader_buttons):
            selected = i == self._selected_index
            btn.configure(
                fg_color=COLORS["sidebar_selected"] if selected else "transparent",
                text_color=COLORS["accent_blue"] if selected else COLORS["text_primary"],
            )

    def _select_reader(self, index: int):
        self._selected_index = index
        self._highlight()
        self._on_reader_selected(index)

    def set_status(self, connected: bool, text: str = "", uid: str = ""):
        """Update the connection status display."""
        color = COLORS["status_connected"] if connected else COLORS["status_disconnected"]
        self._status_dot.configure(text_color=color)
        self._status_label.configure(
            text=text or ("Connected" if connected else "Disconnected"),
            text_color=COLORS["status_connected"] if connected else COLORS["text_secondary"],
        )
        self._uid_label.configure(text=f"UID {uid}" if uid else "")
