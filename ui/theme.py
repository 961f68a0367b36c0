"""
UI Theme for the NFC Tag Signer.
Nord-style dark palette. Green and red are reserved for the verification
verdict and connection state; teal marks primary actions.
"""

# ─── Palette ────────────────────────────────────────────────────────────────

_POLAR = ("#1B1F27", "#242933", "#2E3440", "#3B4252", "#434C5E")
_SNOW = ("#ECEFF4", "#D8DEE9", "#9AA3B5", "#6B7488")

COLORS = {
    "bg_dark": _POLAR[0],
    "bg_main": _POLAR[1],
    "bg_card": _POLAR[2],
    "bg_elevated": _POLAR[3],
    "bg_input": _POLAR[4],

    "text_bright": "#FFFFFF",
    "text_primary": _SNOW[0],
    "text_secondary": _SNOW[2],
    "text_muted": _SNOW[3],

    "accent_blue": "#5E9CA0",
    "accent_blue_hover": "#4C8387",
    "accent_cyan": "#88C0D0",
    "accent_green": "#A3BE8C",
    "accent_green_hover": "#8CA875",
    "accent_orange": "#D08770",
    "accent_red": "#BF616A",
    "accent_purple": "#B48EAD",
    "accent_yellow": "#EBCB8B",

    "border": "#3F4656",

    "sidebar_bg": "#20242D",
    "sidebar_hover": _POLAR[2],
    "sidebar_selected": _POLAR[3],
}

COLORS.update({
    "status_connected": COLORS["accent_green"],
    "status_disconnected": COLORS["accent_red"],
    "success": COLORS["accent_green"],
    "error": COLORS["accent_red"],
})

# ─── Fonts ──────────────────────────────────────────────────────────────────

_UI_FAMILY = "Segoe UI"
_MONO_FAMILY = "Consolas"

FONTS = {
    "title": (_UI_FAMILY, 24, "bold"),
    "heading": (_UI_FAMILY, 18, "bold"),
    "body_bold": (_UI_FAMILY, 12, "bold"),
    "button": (_UI_FAMILY, 11, "bold"),
    "label": (_UI_FAMILY, 11),
    "small": (_UI_FAMILY, 10),
    "small_bold": (_UI_FAMILY, 10, "bold"),
    "tiny": (_UI_FAMILY, 9),
    "mono": (_MONO_FAMILY, 11),
    "mono_small": (_MONO_FAMILY, 10),
}

# ─── Layout ─────────────────────────────────────────────────────────────────

PADDING = {"xs": 4, "sm": 8, "md": 12, "lg": 16, "xl": 24}

DIMENSIONS = {
    "sidebar_width": 260,
    "corner_radius": 8,
    "button_height": 36,
}
