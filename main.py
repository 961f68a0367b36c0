#!/usr/bin/env python3
"""
NFC Tag Signer
==============
Marks NTAG215 tags with a truncated RSA signature and checks them later,
and talks to MIFARE DESFire EV3 cards (interrogation, legacy AES
authentication, master key change).

Features:
- PC/SC reader selection and card presence monitoring
- NTAG215 memory dump, version analysis, sign and verify
- DESFire version, applications, files and file settings
- DESFire legacy AES authentication and master key change
- Headless listener mode for kiosks and production lines

Usage:
    python main.py                      # GUI
    python main.py --listen --action verify
    python main.py --config signer.json --listen

Requirements:
    pip install -e .
"""

import argparse
import logging
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

logger = logging.getLogger("tag_signer")

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


def configure_logging(verbose: bool = False) -> logging.Handler:
    """Root logger passes everything; the console handler filters to INFO
    unless verbose. The GUI log panel applies its own trace gate."""
    root = logging.getLogger()
    root.setLevel(logging.DEBUG)
    console = logging.StreamHandler()
    console.setLevel(logging.DEBUG if verbose else logging.INFO)
    console.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(console)
    return console


def check_dependencies():
    """Check that required dependencies are installed."""
    missing = []

    try:
        import customtkinter
    except ImportError:
        missing.append("customtkinter")

    try:
        import smartcard
    except ImportError:
        missing.append("pyscard")

    try:
        from Crypto.Cipher import AES
    except ImportError:
        missing.append("pycryptodome")

    if missing:
        print("=" * 60)
        print("  NFC Tag Signer - Missing Dependencies")
        print("=" * 60)
        print()
        print("  The following packages need to be installed:")
        print()
        for pkg in missing:
            print(f"    - {pkg}")
        print()
        print("  Install them with:")
        print(f"    pip install {' '.join(missing)}")
        print()
        print("=" * 60)

    return missing


def parse_args(argv=None):
    from core.workflow import ACTIONS

    parser = argparse.ArgumentParser(description="NFC tag signer and DESFire tool")
    parser.add_argument("--config", help="JSON file overriding the default settings")
    parser.add_argument("--listen", action="store_true",
                        help="run headless, acting on every inserted card")
    parser.add_argument("--action", choices=ACTIONS,
                        help="action for --listen (default from config)")
    parser.add_argument("-v", "--verbose", action="store_true",
                        help="log every APDU exchange")
    return parser.parse_args(argv)


def format_result(result) -> str:
    """Render a workflow result for the console."""
    from core.auth import AuthResult, KeyChangeResult
    from core.signing import SigningRecord
    from core.tag_memory import render_dump
    from core.apdu import bytes_to_hex

    if isinstance(result, bool):
        return "signature valid" if result else "signature INVALID"
    if isinstance(result, (AuthResult, KeyChangeResult)):
        return result.message
    if isinstance(result, SigningRecord):
        return (f"UID {bytes_to_hex(result.uid)}, challenge {bytes_to_hex(result.challenge)}, "
                f"signature {bytes_to_hex(result.truncated_signature)}")
    if isinstance(result, list):
        return "\n" + render_dump(result)
    if isinstance(result, dict):
        return "\n" + "\n".join(f"  {k}: {v}" for k, v in result.items())
    return str(result)


def run_listener(config, action: str):
    """Act on each inserted card until Enter is pressed."""
    from core.errors import CardError
    from core.keys import load_or_create_signing_key
    from core.reader_manager import ReaderManager
    from core.workflow import CardWorkflow

    key = None
    if action in ("sign", "verify"):
        key = load_or_create_signing_key(config.key_file, config.key_bits)

    manager = ReaderManager()
    manager.refresh_readers()

    def on_inserted(reader_name: str):
        manager.refresh_readers()
        if manager.select_reader_by_name(reader_name) is None:
            logger.warning("Reader %s vanished", reader_name)
            return
        ok, msg = manager.connect()
        if not ok:
            logger.error("Connection failed: %s", msg)
            return
        try:
            result = CardWorkflow(manager.transmit, config).run(action, key)
            logger.info("%s: %s", action, format_result(result))
        except CardError as e:
            logger.error("%s failed: %s", action, e)
        finally:
            manager.disconnect()

    manager.start_monitoring(on_card_inserted=on_inserted)
    try:
        input(f"Listening for cards ({action}). Press Enter to exit.\n")
    finally:
        manager.cleanup()


def main(argv=None):
    """Application entry point."""
    args = parse_args(argv)
    configure_logging(args.verbose)

    missing = check_dependencies()
    if "pyscard" in missing or "pycryptodome" in missing:
        sys.exit(1)

    from core.config import AppConfig

    config = AppConfig.from_json(args.config) if args.config else AppConfig()

    if args.listen:
        run_listener(config, args.action or config.listen_action)
        return

    if "customtkinter" in missing:
        print("\n  The GUI needs customtkinter; use --listen for headless mode.\n")
        sys.exit(1)

    from ui.app import TagSignerApp

    app = TagSignerApp(config)
    app.mainloop()


if __name__ == "__main__":
    main()
