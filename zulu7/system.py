"""Host load averages for the system widget."""

import os


def system_load() -> dict:
    """Load averages as two-decimal strings. Raises OSError where the OS has none."""
    load1, load5, load15 = os.getloadavg()
    return {
        "load1":  f"{load1:.2f}",
        "load5":  f"{load5:.2f}",
        "load15": f"{load15:.2f}",
        "cores":  os.cpu_count(),
    }
