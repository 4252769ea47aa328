from __future__ import annotations

import logging
import subprocess
import sys
import webbrowser


def open_link(link: str) -> bool:
    """Open ``link`` with the system's default URL handler."""
    if sys.platform == "darwin":
        try:
            subprocess.run(["open", link], check=True)
        except (OSError, subprocess.CalledProcessError) as exc:
            logging.error("Error opening link %s: %s", link, exc)
            return False
        return True

    if not webbrowser.open(link):
        logging.error("No browser available to open %s", link)
        return False
    return True
