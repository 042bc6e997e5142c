#!/usr/bin/env python3
"""Launcher for the Ledger Insights dashboard.

Runs ``streamlit run ledger_insights/dashboard.py`` with the project root on
the import path so the package resolves without installation.
"""

import os
import subprocess
import sys
from pathlib import Path

project_root = Path(__file__).parent.resolve()
dashboard_path = project_root / "ledger_insights" / "dashboard.py"

if __name__ == "__main__":
    env = dict(os.environ)
    env["PYTHONPATH"] = os.pathsep.join(filter(None, [str(project_root), env.get("PYTHONPATH")]))
    subprocess.run(
        [sys.executable, "-m", "streamlit", "run", str(dashboard_path), *sys.argv[1:]],
        env=env,
        check=False,
    )
