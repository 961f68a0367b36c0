"""
NTAG215 Tag View.
Tag info, memory dump, and the sign/verify actions with their verdict.
"""

from typing import Callable

import customtkinter as ctk

from .theme import COLORS, DIMENSIONS, FONTS, PADDING
from core.apdu import bytes_to_hex
from core.config import NTAG215_PAGE_COUNT
from core.tag_memory import render_dump

CAVEAT = ("An 8-byte truncated signature is a tamper-evidence mark, "
          "not cryptographic proof of authenticity.")


class TagView(ctk.CTkFrame):
    """Memory tag operations tab."""

    def __init__(self, parent, on_command: Callable):
        """
        Args:
            on_command: Callback(command_name, on_done, **kwargs); runs the
                command off the UI thread and hands the result to on_done.
        """
        super().__init__(parent, fg_color="transparent")
        self._on_command = on_command
        self._build_ui()

    def _card(self, parent, title: str) -> ctk.CTkFrame:
        frame = ctk.CTkFrame(parent, fg_color=COLORS["bg_card"],
                             corner_radius=DIMENSIONS["corner_radius"])
        frame.pack(fill="x", pady=(0, PADDING["md"]))
        ctk.CTkLabel(
            frame, text=title,
            font=FONTS["body_bold"], text_color=COLORS["accent_blue"]
        ).pack(anchor="w", padx=PADDING["lg"], pady=(PADDING["md"], PADDING["xs"]))
        return frame

    def _entry(self, parent, placeholder: str, width: int = 60) -> ctk.CTkEntry:
        entry = ctk.CTkEntry(
            parent, width=width,
            font=FONTS["mono"],
            fg_color=COLORS["bg_input"],
            border_color=COLORS["border"],
            text_color=COLORS["text_primary"],
            placeholder_text=placeholder
        )
        entry.pack(side="left", padx=PADDING["xs"])
        return entry

    def _build_ui(self):
        scroll = ctk.CTkScrollableFrame(
            self,
            fg_color="transparent",
            scrollbar_button_color=COLORS["bg_elevated"],
            scrollbar_button_hover_color=COLORS["accent_blue"]
        )
        scroll.pack(fill="both", expand=True, padx=PADDING["lg"], pady=PADDING["md"])

        # ─── Memory ─────────────────────────────────────────────────
        mem_frame = self._card(scroll, "Memory")
        mem_controls = ctk.CTkFrame(mem_frame, fg_color="transparent")
        mem_controls.pack(fill="x", padx=PADDING["lg"], pady=(0, PADDING["md"]))

        ctk.CTkButton(
            mem_controls, text="Tag Info",
            width=100, height=32,
            font=FONTS["small_bold"],
            fg_color=COLORS["accent_blue"],
            hover_color=COLORS["accent_blue_hover"],
            command=self._tag_info
        ).pack(side="left", padx=(0, PADDING["sm"]))

        ctk.CTkLabel(
            mem_controls, text="Pages:",
            font=FONTS["label"], text_color=COLORS["text_secondary"]
        ).pack(side="left")
        self._start_entry = self._entry(mem_controls, "0")
        ctk.CTkLabel(
            mem_controls, text="to",
            font=FONTS["label"], text_color=COLORS["text_secondary"]
        ).pack(side="left")
        self._end_entry = self._entry(mem_controls, str(NTAG215_PAGE_COUNT - 1))

        ctk.CTkButton(
            mem_controls, text="Dump",
            width=90, height=32,
            font=FONTS["small_bold"],
            fg_color=COLORS["bg_elevated"],
            hover_color=COLORS["accent_cyan"],
            text_color=COLORS["text_secondary"],
            command=self._dump
        ).pack(side="left", padx=(PADDING["xs"], 0))

        # ─── Authenticity Mark ──────────────────────────────────────
        mark_frame = self._card(scroll, "Authenticity Mark")
        mark_controls = ctk.CTkFrame(mark_frame, fg_color="transparent")
        mark_controls.pack(fill="x", padx=PADDING["lg"], pady=(0, PADDING["xs"]))

        ctk.CTkButton(
            mark_controls, text="Sign Tag",
            width=120, height=32,
            font=FONTS["small_bold"],
            fg_color=COLORS["accent_orange"],
            hover_color=COLORS["accent_yellow"],
            text_color=COLORS["bg_dark"],
            command=self._sign
        ).pack(side="left", padx=(0, PADDING["xs"]))

        ctk.CTkButton(
            mark_controls, text="Verify Tag",
            width=120, height=32,
            font=FONTS["small_bold"],
            fg_color=COLORS["accent_green"],
            hover_color=COLORS["accent_green_hover"],
            text_color=COLORS["bg_dark"],
            command=self._verify
        ).pack(side="left", padx=(0, PADDING["xs"]))

        self._verdict = ctk.CTkLabel(
            mark_frame, text="",
            font=FONTS["heading"], text_color=COLORS["text_muted"]
        )
        self._verdict.pack(anchor="w", padx=PADDING["lg"])

        ctk.CTkLabel(
            mark_frame, text=CAVEAT,
            font=FONTS["tiny"], text_color=COLORS["text_muted"],
            wraplength=600, justify="left"
        ).pack(anchor="w", padx=PADDING["lg"], pady=(PADDING["xs"], PADDING["md"]))

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
            height=320,
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

    def _set_verdict(self, text: str, color: str):
        self._verdict.configure(text=text, text_color=color)

    # ─── Actions ────────────────────────────────────────────────────

    def _tag_info(self):
        def done(info):
            self._append_output("--- Tag Info ---")
            for key, val in info.items():
                self._append_output(f"  {key}: {val}")
        self._on_command("tag_info", done)

    def _dump(self):
        try:
            start = int(self._start_entry.get().strip() or "0")
            end = int(self._end_entry.get().strip() or str(NTAG215_PAGE_COUNT - 1))
        except ValueError:
            self._append_output("[ERROR] Page numbers must be decimal")
            return

        def done(pages):
            self._append_output(f"--- Pages {start}..{end} ---")
            self._append_output(render_dump(pages))
        self._on_command("dump", done, start=start, end=end)

    def _sign(self):
        self._set_verdict("Signing...", COLORS["accent_yellow"])

        def done(record):
            self._append_output("--- Tag Signed ---")
            self._append_output(f"  UID: {bytes_to_hex(record.uid)}")
            self._append_output(f"  Challenge: {bytes_to_hex(record.challenge)}")
            self._append_output(f"  Signature: {bytes_to_hex(record.truncated_signature)}")
            self._set_verdict("Signed", COLORS["accent_orange"])
        self._on_command("sign", done)

    def _verify(self):
        self._set_verdict("Verifying...", COLORS["accent_yellow"])

        def done(valid):
            if valid:
                self._append_output("[OK] Signature valid")
                self._set_verdict("VALID", COLORS["success"])
            else:
                self._append_output("[FAIL] Signature invalid or missing")
                self._set_verdict("INVALID", COLORS["error"])
        self._on_command("verify", done)

    def reset(self):
        self._set_verdict("", COLORS["text_muted"])
